# listings/handlers.py
from dataclasses import dataclass
from functools import reduce
from operator import and_, or_

import django_filters
from django import forms
from django.core.exceptions import ImproperlyConfigured
from django.db.models import Q
from django.http import Http404

from .formatters import get_formatter
from .options import merge_options


@dataclass(frozen=True)
class FieldItem:
    value: str


def resolve_path(obj, path):
    """Follow a ``__`` separated attribute path; stops at the first None."""
    for part in path.split("__"):
        if obj is None:
            return None
        obj = getattr(obj, part, None)
    return obj


class Handler:
    """Base for the field, argument and filter handlers of one run."""

    def __init__(self, run, handler_id, config):
        self.run = run
        self.id = handler_id
        self.config = dict(config or {})
        self.options = merge_options(self.define_options(), self.config)

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.id}>"

    def define_options(self):
        return {"id": self.id, "field": self.id}

    @property
    def real_field(self):
        return self.options.get("field") or self.id


# ───────────────── Fields ─────────────────────────────
class FieldHandler(Handler):
    def define_options(self):
        options = super().define_options()
        options.update({"label": "", "formatter": "plain", "settings": {}})
        return options

    @property
    def label(self):
        return self.options["label"] or self.id.replace("_", " ").capitalize()

    def get_items(self, row):
        """Raw value of this field on ``row`` as a list of FieldItem."""
        value = resolve_path(row, self.real_field)
        if value is None:
            return []
        if hasattr(value, "all"):
            # related manager → one item per related object
            return [FieldItem(str(obj)) for obj in value.all()]
        if isinstance(value, (list, tuple)):
            return [FieldItem(str(v)) for v in value if v is not None]
        return [FieldItem(str(value))]

    def render(self, row):
        formatter = get_formatter(self.options["formatter"])
        return formatter(self.get_items(row), row, self.options["settings"])


# ───────────────── Contextual arguments ───────────────
class ArgumentHandler(Handler):
    """
    Positional URL argument narrowing the listing.

    default_action (argument missing):
    • ignore    → display all values
    • empty     → no rows
    • not found → 404
    • default   → use ``default_argument``
    """
    DEFAULT_ACTIONS = ("ignore", "empty", "not found", "default")

    def define_options(self):
        options = super().define_options()
        options.update({"default_action": "ignore", "default_argument": None, "exception_value": "all"})
        return options

    def apply(self, queryset, value):
        if str(value) == str(self.options["exception_value"]):
            return queryset
        return queryset.filter(**{self.real_field: value})

    def default_action(self, queryset):
        action = self.options["default_action"]
        if action == "ignore":
            return queryset
        if action == "empty":
            return queryset.none()
        if action == "not found":
            raise Http404(f"Missing contextual argument '{self.id}'.")
        if action == "default":
            value = self.options["default_argument"]
            if value in (None, ""):
                return queryset
            return self.apply(queryset, value)
        raise ImproperlyConfigured(f"Unknown default action '{action}' on argument '{self.id}'.")


# ───────────────── Filters ────────────────────────────
class FilterHandler(Handler):
    plugin_id = None
    operators = {}
    default_operator = None

    def define_options(self):
        options = super().define_options()
        options.update({
            "operator": self.default_operator,
            "value": "",
            "exposed": False,
            "expose": {
                "identifier": self.id,
                "label": "",
                "required": False,
            },
        })
        return options

    def can_expose(self):
        return True

    def is_exposed(self):
        return bool(self.options.get("exposed"))

    @property
    def identifier(self):
        return self.options["expose"].get("identifier") or self.id

    @property
    def label(self):
        return self.options["expose"].get("label") or self.id.replace("_", " ").capitalize()

    @property
    def combined_fields(self):
        return ()

    def operator_choices(self):
        return [(key, title) for key, title in self.operators.items()]

    # -------- configuration form ---------------------------------
    def build_options_form(self, form):
        form.fields["operator"] = forms.ChoiceField(
            label="Operator", choices=self.operator_choices(), initial=self.options["operator"],
        )
        form.fields["value"] = forms.CharField(
            label="Value", required=False, initial=self.options["value"],
        )
        form.fields["exposed"] = forms.BooleanField(
            label="Expose this filter to visitors", required=False, initial=self.is_exposed(),
        )
        if self.can_expose() and self.is_exposed():
            expose = self.options["expose"]
            form.add_expose_field("identifier", forms.SlugField(
                label="Filter identifier", initial=self.identifier,
                help_text="This will appear in the URL after the ? to identify this filter.",
            ))
            form.add_expose_field("label", forms.CharField(
                label="Label", required=False, initial=expose.get("label", ""),
            ))
            form.add_expose_field("required", forms.BooleanField(
                label="Required", required=False, initial=expose.get("required", False),
            ))

    # -------- exposed form ---------------------------------------
    def value_form(self, form, exposed=False):
        if not exposed:
            return
        field = form.fields.get(self.identifier)
        if field is not None:
            field.label = self.label

    def build_filter(self):
        """django-filter Filter for the exposed FilterSet, keyed by ``identifier``."""
        handler = self

        def method(queryset, name, value):
            return handler.apply(queryset, value)

        return django_filters.CharFilter(label=self.label, method=method)

    def apply(self, queryset, value):
        raise NotImplementedError


class StringFilter(FilterHandler):
    """Case-insensitive string comparison on one model path."""
    plugin_id = "string"
    default_operator = "contains"
    operators = {
        "contains": "Contains",
        "word": "Contains any word",
        "allwords": "Contains all words",
        "starts": "Starts with",
        "ends": "Ends with",
        "=": "Is equal to",
        "!=": "Is not equal to",
        "not": "Does not contain",
    }
    lookups = {
        "contains": ("icontains", False),
        "starts": ("istartswith", False),
        "ends": ("iendswith", False),
        "=": ("iexact", False),
        "!=": ("iexact", True),
        "not": ("icontains", True),
    }

    def apply(self, queryset, value):
        operator = self.options["operator"]
        path = self.real_field
        if operator in ("word", "allwords"):
            words = str(value).split()
            if not words:
                return queryset
            conditions = [Q(**{f"{path}__icontains": word}) for word in words]
            return queryset.filter(reduce(or_ if operator == "word" else and_, conditions))

        try:
            lookup, negate = self.lookups[operator]
        except KeyError:
            raise ImproperlyConfigured(f"Unknown operator '{operator}' on filter '{self.id}'.")
        condition = Q(**{f"{path}__{lookup}": value})
        return queryset.exclude(condition) if negate else queryset.filter(condition)


class FulltextFilter(FilterHandler):
    """
    Search several fields at once.

    ``fields`` lists field handler ids of the display; with the ``and``
    operator every term must occur in at least one of them, with ``or`` any
    term is enough.
    """
    plugin_id = "fulltext"
    default_operator = "and"
    operators = {
        "and": "Contains all of these words",
        "or": "Contains any of these words",
    }

    def define_options(self):
        options = super().define_options()
        options["fields"] = []
        return options

    @property
    def combined_fields(self):
        return tuple(self.options.get("fields") or ())

    def search_paths(self):
        paths = []
        for field_id in self.combined_fields:
            handler = self.run.get_handler("field", field_id)
            if handler is not None:
                paths.append(handler.real_field)
        return paths

    def apply(self, queryset, value):
        terms = str(value).split()
        paths = self.search_paths()
        if not terms or not paths:
            return queryset

        def any_field(term):
            return reduce(or_, (Q(**{f"{path}__icontains": term}) for path in paths))

        if self.options["operator"] == "or":
            return queryset.filter(reduce(or_, (any_field(term) for term in terms)))
        for term in terms:
            queryset = queryset.filter(any_field(term))
        return queryset


FILTER_PLUGINS = {
    StringFilter.plugin_id: StringFilter,
    FulltextFilter.plugin_id: FulltextFilter,
}


def register_filter_plugin(plugin_id, factory):
    """``factory(run, handler_id, config)`` must return a filter handler."""
    FILTER_PLUGINS[plugin_id] = factory
    return factory


def get_filter_plugin(plugin_id):
    try:
        return FILTER_PLUGINS[plugin_id]
    except KeyError:
        raise ImproperlyConfigured(f"Unknown filter plugin '{plugin_id}'.")
