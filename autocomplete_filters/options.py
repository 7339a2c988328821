# autocomplete_filters/options.py
from dataclasses import dataclass

from listings.options import merge_options

# keys added to a filter's "expose" block
AUTOCOMPLETE_DEFAULTS = {
    "autocomplete_filter": False,
    "autocomplete_items": 10,
    "autocomplete_min_chars": 1,
    "autocomplete_field": "",
    "autocomplete_raw_suggestion": True,
    "autocomplete_raw_dropdown": True,
    "autocomplete_dependent": False,
}


def _as_int(value, default=0):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class AutocompleteOptions:
    enabled: bool
    items: int
    min_chars: int
    field: str
    raw_suggestion: bool
    raw_dropdown: bool
    dependent: bool
    identifier: str
    label: str

    @classmethod
    def from_expose(cls, expose, identifier=""):
        values = merge_options(AUTOCOMPLETE_DEFAULTS, expose)
        return cls(
            enabled=bool(values["autocomplete_filter"]),
            items=_as_int(values["autocomplete_items"]),
            min_chars=_as_int(values["autocomplete_min_chars"]),
            field=values["autocomplete_field"] or "",
            raw_suggestion=bool(values["autocomplete_raw_suggestion"]),
            raw_dropdown=bool(values["autocomplete_raw_dropdown"]),
            dependent=bool(values["autocomplete_dependent"]),
            identifier=values.get("identifier") or identifier,
            label=values.get("label") or identifier,
        )

    @property
    def pager(self):
        """Pager block for a suggestion query: first ``items`` rows, or all of them."""
        if self.items <= 0:
            return {"type": "none", "options": {"items_per_page": 0, "offset": 0}}
        return {"type": "some", "options": {"items_per_page": self.items, "offset": 0}}
