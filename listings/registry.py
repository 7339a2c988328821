# listings/registry.py
import logging

from .exceptions import ListingDoesNotExist, DisplayDoesNotExist
from .executable import ListingRun
from .options import DisplayOptions

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY = "default"


class Listing:
    """
    A named, code-declared listing: a base queryset plus one or more displays.

    ``displays`` maps display ids to option blocks. Every display other than
    ``default`` inherits each block it leaves out from ``default``::

        Listing(
            name="articles",
            queryset=Article.objects.all(),
            displays={
                "default": {"fields": {...}, "filters": {...}},
                "block": {"pager": {"type": "some", "options": {"items_per_page": 5}}},
            },
        )
    """

    def __init__(self, name, queryset, displays=None, label=""):
        self.name = name
        self.label = label or name
        self.queryset = queryset

        displays = dict(displays or {})
        default = DisplayOptions(**displays.pop(DEFAULT_DISPLAY, {}))
        self.displays = {DEFAULT_DISPLAY: default}
        for display_id, overrides in displays.items():
            self.displays[display_id] = default.inherit(overrides)

    def __repr__(self):
        return f"<Listing {self.name}>"

    @property
    def model(self):
        return self.queryset.model

    def get_queryset(self):
        # fresh clone, never evaluated on the shared definition
        return self.queryset.all()

    def display_options(self, display_id):
        try:
            return self.displays[display_id]
        except KeyError:
            raise DisplayDoesNotExist(f"Listing '{self.name}' has no display '{display_id}'.")


class ListingRegistry:
    def __init__(self):
        self._listings = {}

    def register(self, listing):
        if listing.name in self._listings:
            logger.warning("Listing %s registered twice; keeping the latest definition.", listing.name)
        self._listings[listing.name] = listing
        return listing

    def unregister(self, name):
        self._listings.pop(name, None)

    def is_registered(self, name):
        return name in self._listings

    def get(self, name):
        try:
            return self._listings[name]
        except KeyError:
            raise ListingDoesNotExist(f"Listing '{name}' does not exist.")

    def get_listing(self, name):
        """Return a fresh, request-scoped executable for the named listing."""
        return ListingRun(self.get(name))


registry = ListingRegistry()
