# listings/executable.py
import hashlib
import json
import logging

import django_filters
from django.core.cache import cache

from .assets import AssetManifest
from .handlers import FieldHandler, ArgumentHandler, get_filter_plugin

logger = logging.getLogger(__name__)

ARGUMENT_SEPARATOR = "||"

# query parameters that are never treated as exposed filter input
RESERVED_INPUT = ("q", "page")

_HANDLER_BLOCKS = {
    "field": "fields",
    "filter": "filters",
    "argument": "arguments",
}


class ListingRun:
    """
    One request's worth of a listing.

    Holds its own copy of the display options; ``set_option`` rebinds that
    copy and never touches the registered Listing. Typical use::

        run = registry.get_listing("articles")
        run.set_display("page")
        run.set_arguments(["news"])
        run.pre_execute()
        run.execute()
        run.post_execute()
        run.render_field(0, "title")
    """

    def __init__(self, listing):
        self.listing = listing
        self.name = listing.name
        self.current_display = None
        self.options = None
        self.args = []
        self.request = None
        self.current_page = 0
        self.query = None
        self.result = []
        self.total_rows = 0
        self.exposed_errors = {}
        self.executed = False
        self.assets = AssetManifest()
        self._exposed_input = None
        self._handlers = {}
        self._rendered = {}
        self._cache_key = None
        self._cache_hit = False

    def __repr__(self):
        return f"<ListingRun {self.name}:{self.current_display}>"

    # -------- setup ----------------------------------------------
    def set_display(self, display_id="default"):
        self.options = self.listing.display_options(display_id)
        self.current_display = display_id
        self._handlers = {}

    def set_arguments(self, args):
        self.args = [str(arg) for arg in args]

    def set_request(self, request):
        self.request = request
        try:
            self.current_page = max(int(request.GET.get("page", 0)), 0)
        except (TypeError, ValueError):
            self.current_page = 0

    def _ensure_display(self):
        if self.options is None:
            self.set_display()

    def get_option(self, name):
        self._ensure_display()
        return self.options.get_option(name)

    def set_option(self, name, value):
        self._ensure_display()
        self.options = self.options.with_option(name, value)
        self._handlers = {}

    # -------- handlers -------------------------------------------
    def get_handlers(self, kind):
        if kind not in _HANDLER_BLOCKS:
            raise KeyError(f"Unknown handler type '{kind}'.")
        if kind not in self._handlers:
            block = self.get_option(_HANDLER_BLOCKS[kind])
            self._handlers[kind] = {
                handler_id: self._make_handler(kind, handler_id, config)
                for handler_id, config in block.items()
            }
        return self._handlers[kind]

    def get_handler(self, kind, handler_id):
        return self.get_handlers(kind).get(handler_id)

    def _make_handler(self, kind, handler_id, config):
        if kind == "field":
            return FieldHandler(self, handler_id, config)
        if kind == "argument":
            return ArgumentHandler(self, handler_id, config)
        factory = get_filter_plugin(config.get("plugin", "string"))
        return factory(self, handler_id, config)

    def get_field_labels(self):
        return {field_id: handler.label for field_id, handler in self.get_handlers("field").items()}

    def exposed_filters(self):
        return [handler for handler in self.get_handlers("filter").values() if handler.is_exposed()]

    # -------- exposed input --------------------------------------
    def set_exposed_input(self, data):
        self._exposed_input = dict(data)

    def get_exposed_input(self):
        if self._exposed_input is not None:
            return dict(self._exposed_input)
        if self.request is None:
            return {}
        return {
            key: value for key, value in self.request.GET.items()
            if key not in RESERVED_INPUT
        }

    def build_filterset(self, data=None, queryset=None):
        attrs = {handler.identifier: handler.build_filter() for handler in self.exposed_filters()}
        attrs["Meta"] = type("Meta", (), {"model": self.listing.model, "fields": []})
        filterset_class = type("ExposedFilterSet", (django_filters.FilterSet,), attrs)
        if queryset is None:
            queryset = self.listing.get_queryset()
        return filterset_class(data=data if data is not None else {}, queryset=queryset)

    def build_exposed_form(self):
        """The exposed filter form, after every exposed handler decorated its widget."""
        self._ensure_display()
        form = self.build_filterset(self.get_exposed_input()).form
        for handler in self.exposed_filters():
            handler.value_form(form, exposed=True)
        return form

    # -------- execution ------------------------------------------
    def pre_execute(self):
        self._ensure_display()
        self.query = self.listing.get_queryset()
        self.result = []
        self.total_rows = 0
        self.exposed_errors = {}
        self._rendered = {}
        self._cache_hit = False

    def execute(self):
        if self.query is None:
            self.pre_execute()

        cache_options = self.get_option("cache")
        self._cache_key = None
        if cache_options.get("type", "none") != "none":
            self._cache_key = self._results_cache_key()
            cached = cache.get(self._cache_key)
            if cached is not None:
                self.result, self.total_rows = cached["result"], cached["total_rows"]
                self._cache_hit = True
                self.executed = True
                return

        queryset = self._build_query(self.query)
        self.result, self.total_rows = self._apply_pager(queryset)
        self.executed = True

    def post_execute(self):
        if self._cache_key and not self._cache_hit:
            lifespan = self.get_option("cache").get("results_lifespan", 300)
            cache.set(self._cache_key, {"result": self.result, "total_rows": self.total_rows}, lifespan)
        self.query = None

    def _build_query(self, queryset):
        queryset = self._apply_arguments(queryset)

        for handler in self.get_handlers("filter").values():
            if not handler.is_exposed() and handler.options.get("value") not in (None, ""):
                queryset = handler.apply(queryset, handler.options["value"])

        exposed_input = self.get_exposed_input()
        filterset = self.build_filterset(exposed_input, queryset)
        if not filterset.is_valid():
            self.exposed_errors = dict(filterset.errors)
        queryset = filterset.qs

        for handler in self.exposed_filters():
            if handler.options["expose"].get("required") and not exposed_input.get(handler.identifier):
                return queryset.none()

        sorts = list(self.get_option("sorts"))
        if sorts:
            queryset = queryset.order_by(*sorts)
        return queryset

    def _apply_arguments(self, queryset):
        for position, handler in enumerate(self.get_handlers("argument").values()):
            if position < len(self.args) and self.args[position] != "":
                queryset = handler.apply(queryset, self.args[position])
            else:
                queryset = handler.default_action(queryset)
        return queryset

    def _apply_pager(self, queryset):
        pager = self.get_option("pager")
        pager_type = pager.get("type", "none")
        pager_options = pager.get("options", {})
        items = int(pager_options.get("items_per_page") or 0)
        offset = int(pager_options.get("offset") or 0)

        if pager_type == "full" and items > 0:
            total = max(queryset.count() - offset, 0)
            start = offset + self.current_page * items
            return list(queryset[start:start + items]), total
        if pager_type in ("some", "full") and items > 0:
            rows = list(queryset[offset:offset + items])
            return rows, len(rows)
        if pager_type not in ("none", "some", "full"):
            logger.warning("Unknown pager type %s on listing %s; showing all rows.", pager_type, self.name)
        rows = list(queryset[offset:])
        return rows, len(rows)

    def _results_cache_key(self):
        payload = json.dumps({
            "listing": self.name,
            "display": self.current_display,
            "args": self.args,
            "input": self.get_exposed_input(),
            "pager": self.get_option("pager"),
            "page": self.current_page,
        }, sort_keys=True, default=str)
        return "listing-results:" + hashlib.md5(payload.encode("utf-8")).hexdigest()

    # -------- rows -----------------------------------------------
    def _field_handler(self, field_id):
        handler = self.get_handler("field", field_id)
        if handler is None:
            raise KeyError(f"Field '{field_id}' is not part of display '{self.current_display}'.")
        return handler

    def render_field(self, index, field_id):
        """Formatted markup of ``field_id`` on result row ``index``."""
        key = (index, field_id)
        if key not in self._rendered:
            self._rendered[key] = self._field_handler(field_id).render(self.result[index])
        return self._rendered[key]

    def get_field_value(self, index, field_id):
        """Raw items of ``field_id`` on result row ``index``."""
        return self._field_handler(field_id).get_items(self.result[index])

    def rendered_rows(self):
        field_ids = list(self.get_handlers("field"))
        return [
            {field_id: str(self.render_field(index, field_id)) for field_id in field_ids}
            for index in range(len(self.result))
        ]


