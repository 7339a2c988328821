# listings/views.py
from django.views.generic import TemplateView
from drf_spectacular.utils import extend_schema
from rest_framework.permissions import AllowAny
from rest_framework.views import APIView

from core.response import ok, fail
from .executable import ARGUMENT_SEPARATOR
from .registry import registry


def _prepare_run(request, listing_name, display_id, args):
    run = registry.get_listing(listing_name)
    run.set_request(request)
    run.set_display(display_id)
    if args:
        run.set_arguments(args.split(ARGUMENT_SEPARATOR))
    return run


@extend_schema(tags=["Listings"])
class ListingResultsView(APIView):
    """
    GET /api/v1/listings/<listing>/<display>/[<arg1||arg2>/]?<identifier>=…&page=<n>

    • 200 → rendered rows of the display
    • 400 → exposed filter input did not validate
    • 404 → unknown listing / display, or an argument set to "not found"
    """
    permission_classes = (AllowAny,)

    def get(self, request, listing_name, display_id, args=""):
        run = _prepare_run(request, listing_name, display_id, args)
        run.pre_execute()
        run.execute()
        run.post_execute()

        if run.exposed_errors:
            return fail(
                "Invalid filter input.",
                error_message="One or more exposed filters rejected their value.",
                field_errors=run.exposed_errors,
            )

        return ok("OK", {
            "listing": run.name,
            "display": run.current_display,
            "title": run.get_option("title"),
            "total_rows": run.total_rows,
            "fields": run.get_field_labels(),
            "rows": run.rendered_rows(),
        })


class ListingPageView(TemplateView):
    """HTML page: exposed filter form (with its scripts) and a results table."""
    template_name = "listings/listing.html"

    def get_context_data(self, listing_name, display_id, args="", **kwargs):
        context = super().get_context_data(**kwargs)
        run = _prepare_run(self.request, listing_name, display_id, args)
        form = run.build_exposed_form()
        run.pre_execute()
        run.execute()
        run.post_execute()

        context.update({
            "run": run,
            "title": run.get_option("title") or run.listing.label,
            "form": form,
            "media": form.media + run.assets.media,
            "labels": run.get_field_labels(),
            "rows": run.rendered_rows(),
        })
        return context
