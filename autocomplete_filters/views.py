# autocomplete_filters/views.py
import logging

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema, OpenApiParameter
from rest_framework.exceptions import NotFound
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from listings.executable import ARGUMENT_SEPARATOR
from listings.registry import registry
from .conf import app_settings
from .suggestions import collect_suggestions, min_chars_message, no_results_message, serialize

logger = logging.getLogger(__name__)


@extend_schema(
    tags=["Autocomplete"],
    parameters=[OpenApiParameter("q", OpenApiTypes.STR, description="Text typed into the filter so far")],
    responses={200: OpenApiTypes.OBJECT, 404: None},
)
class AutocompleteFilterView(APIView):
    """
    GET /autocomplete_filter/<filter>/<listing>/<display>/[<arg1||arg2>/]?q=<text>

    • 200 → suggestions (list of {value, label}, or {value: label} in mapping mode)
    • 200 → one informational entry when ``q`` is too short or nothing matched
    • 200 → empty body when the source field is misconfigured (logged)
    • 404 → filter missing, not exposed, or autocomplete disabled on it
    """
    permission_classes = (AllowAny,)
    response_format = None  # None → settings.AUTOCOMPLETE_FILTERS["RESPONSE_FORMAT"]

    def get(self, request, filter_name, view_name, view_display, view_args=""):
        string = request.query_params.get("q", "")

        run = registry.get_listing(view_name)
        run.set_request(request)
        run.set_display(view_display)
        if view_args:
            run.set_arguments(view_args.split(ARGUMENT_SEPARATOR))

        # a missing contextual argument must never block suggestions
        arguments = run.get_option("arguments")
        for argument in arguments.values():
            argument["default_action"] = "ignore"
        run.set_option("arguments", arguments)

        handler = run.get_handler("filter", filter_name)
        autocomplete = getattr(handler, "autocomplete", None)
        if handler is None or not handler.is_exposed() or autocomplete is None or not autocomplete.enabled:
            raise NotFound()

        if len(string.strip()) < autocomplete.min_chars:
            return self.respond([min_chars_message(string, autocomplete.min_chars)])

        field_names, force_raw = self.resolve_fields(run, handler, autocomplete)
        if not field_names:
            return self.respond([])

        if autocomplete.dependent:
            exposed_input = run.get_exposed_input()
        else:
            exposed_input = {}
        exposed_input[autocomplete.identifier] = string
        run.set_exposed_input(exposed_input)

        run.set_option("cache", {"type": "none"})
        run.set_option("pager", autocomplete.pager)

        run.pre_execute()
        run.execute()
        run.post_execute()

        matches = collect_suggestions(
            run, field_names, string,
            use_raw_suggestion=autocomplete.raw_suggestion or force_raw,
            use_raw_dropdown=autocomplete.raw_dropdown or force_raw,
        )
        if not matches:
            matches = [no_results_message(string)]
        return self.respond(matches)

    def resolve_fields(self, run, handler, autocomplete):
        """
        Field ids to scan, and whether raw values must be used for both sides.
        Returns ``([], False)`` (after logging) when nothing usable is configured.
        """
        force_raw = False
        if autocomplete.field:
            field_names = [autocomplete.field]
        elif handler.combined_fields:
            field_names = list(handler.combined_fields)
        elif run.get_handler("field", handler.id) is not None:
            # no formatter settings to honour → raw data only
            field_names = [handler.id]
            force_raw = True
        else:
            logger.warning(
                "Field for autocomplete filter %s is not set in listing %s, display %s",
                autocomplete.label, run.name, run.current_display,
            )
            return [], False

        for field_name in field_names:
            if run.get_handler("field", field_name) is None:
                logger.warning(
                    "Field %s for autocomplete filter %s does not exist in listing %s, display %s",
                    field_name, autocomplete.label, run.name, run.current_display,
                )
                return [], False
        return field_names, force_raw

    def get_response_format(self):
        return self.response_format or app_settings.RESPONSE_FORMAT

    def respond(self, suggestions):
        return Response(serialize(suggestions, self.get_response_format()))
