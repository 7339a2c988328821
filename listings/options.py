# listings/options.py
import copy
from dataclasses import dataclass, field, fields, replace


def merge_options(defaults, overrides):
    """
    Deep-merge ``overrides`` onto ``defaults`` and return a new dict.
    Nested dicts merge key by key; any other value in ``overrides`` wins.
    Neither argument is modified.
    """
    merged = copy.deepcopy(defaults)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_options(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _default_pager():
    return {"type": "full", "options": {"items_per_page": 10, "offset": 0}}


def _default_cache():
    return {"type": "none"}


@dataclass(frozen=True)
class DisplayOptions:
    """
    Option blocks of one display.

    Instances are never changed in place: ``with_option`` hands back a new
    object, so a run can override pager / cache / arguments for a single
    request while the registered listing keeps its configuration.
    """
    title: str = ""
    fields: dict = field(default_factory=dict)
    filters: dict = field(default_factory=dict)
    arguments: dict = field(default_factory=dict)
    sorts: tuple = ()
    pager: dict = field(default_factory=_default_pager)
    cache: dict = field(default_factory=_default_cache)

    @classmethod
    def option_names(cls):
        return tuple(f.name for f in fields(cls))

    def get_option(self, name):
        if name not in self.option_names():
            raise KeyError(f"Unknown display option '{name}'.")
        return copy.deepcopy(getattr(self, name))

    def with_option(self, name, value):
        if name not in self.option_names():
            raise KeyError(f"Unknown display option '{name}'.")
        return replace(self, **{name: copy.deepcopy(value)})

    def inherit(self, overrides):
        """Options for a non-default display: blocks it overrides replace ours."""
        options = self
        for name, value in (overrides or {}).items():
            options = options.with_option(name, value)
        return options
