# autocomplete_filters/filters.py
import json

from django import forms
from django.urls import reverse

from listings.executable import ARGUMENT_SEPARATOR
from listings.handlers import StringFilter, FulltextFilter, register_filter_plugin
from listings.options import merge_options
from .conf import app_settings
from .options import AUTOCOMPLETE_DEFAULTS, AutocompleteOptions

NO_FIELDS_PLACEHOLDER = "<Add some fields to view>"
DEPENDENT_CLASS = "views-ac-dependent-filter"
AUTOCOMPLETE_CLASS = "form-autocomplete"

# Declarative rule for whatever admin UI renders the options form: show the
# control only while "Use Autocomplete" is checked. No bundled script reads it.
VISIBLE_WHEN_ENABLED = json.dumps({
    "visible": {':input[name="autocomplete_filter"]': {"checked": True}},
})


def add_css_class(widget, css_class):
    classes = widget.attrs.get("class", "").split()
    if css_class not in classes:
        classes.append(css_class)
    widget.attrs["class"] = " ".join(classes)


class AutocompleteFilter:
    """
    Wraps a string or fulltext filter handler and adds autocomplete.

    Everything the wrapper does not define is delegated to the wrapped
    handler, which shares the wrapper's options dict.
    """

    def __init__(self, base):
        self.base = base
        self.options = merge_options(self.define_options(), base.config)
        base.options = self.options

    def __getattr__(self, name):
        if name == "base":
            raise AttributeError(name)
        return getattr(self.base, name)

    def __repr__(self):
        return f"<AutocompleteFilter {self.base!r}>"

    def define_options(self):
        options = self.base.define_options()
        expose = options.setdefault("expose", {})
        for key, default in AUTOCOMPLETE_DEFAULTS.items():
            expose.setdefault(key, default)
        return options

    @property
    def autocomplete(self):
        return AutocompleteOptions.from_expose(self.options["expose"], identifier=self.identifier)

    def source_real_fields(self):
        if self.combined_fields:
            real_fields = set()
            for field_id in self.combined_fields:
                handler = self.run.get_handler("field", field_id)
                if handler is not None:
                    real_fields.add(handler.real_field)
            return real_fields
        return {self.real_field}

    def source_field_choices(self):
        """Display fields backed by the same model field as this filter."""
        labels = self.run.get_field_labels()
        real_fields = self.source_real_fields()
        choices = [
            (field_id, labels[field_id])
            for field_id, handler in self.run.get_handlers("field").items()
            if handler.real_field in real_fields
        ]
        return choices or [("", NO_FIELDS_PLACEHOLDER)]

    # -------- configuration form ---------------------------------
    def build_options_form(self, form):
        self.base.build_options_form(form)
        if not self.can_expose() or not getattr(form, "has_expose_section", False):
            return

        expose = self.options["expose"]
        choices = self.source_field_choices()
        field_initial = expose["autocomplete_field"]
        if not field_initial and self.id in dict(choices):
            field_initial = self.id

        gated = {"data-states": VISIBLE_WHEN_ENABLED}
        form.add_expose_field("autocomplete_filter", forms.BooleanField(
            label="Use Autocomplete", required=False,
            initial=bool(expose["autocomplete_filter"]),
            help_text="Use Autocomplete for this filter.",
        ))
        form.add_expose_field("autocomplete_items", forms.IntegerField(
            label="Maximum number of items in Autocomplete", min_value=0, required=False,
            initial=expose["autocomplete_items"],
            help_text="Enter 0 for no limit.",
            widget=forms.NumberInput(attrs=gated),
        ))
        form.add_expose_field("autocomplete_min_chars", forms.IntegerField(
            label="Minimum number of characters to start filter", min_value=0, required=False,
            initial=expose["autocomplete_min_chars"],
            widget=forms.NumberInput(attrs=gated),
        ))
        form.add_expose_field("autocomplete_dependent", forms.BooleanField(
            label="Suggestions depend on other filter fields", required=False,
            initial=bool(expose["autocomplete_dependent"]),
            help_text="Autocomplete suggestions will be filtered by other filter fields",
            widget=forms.CheckboxInput(attrs=gated),
        ))
        form.add_expose_field("autocomplete_field", forms.ChoiceField(
            label="Field with autocomplete results", required=False,
            choices=choices, initial=field_initial,
            help_text="Selected field will be used for dropdown results of autocomplete. "
                      "In most cases it should be the same field you use for filter.",
            widget=forms.Select(attrs=gated),
        ))
        form.add_expose_field("autocomplete_raw_dropdown", forms.BooleanField(
            label="Unformatted dropdown", required=False,
            initial=bool(expose["autocomplete_raw_dropdown"]),
            help_text="Use unformatted data from database for dropdown list instead of field "
                      "formatter result. Value will be printed as plain text.",
            widget=forms.CheckboxInput(attrs=gated),
        ))
        form.add_expose_field("autocomplete_raw_suggestion", forms.BooleanField(
            label="Unformatted suggestion", required=False,
            initial=bool(expose["autocomplete_raw_suggestion"]),
            help_text="The same as above, but for suggestion (text appearing inside textfield "
                      "when item is selected).",
            widget=forms.CheckboxInput(attrs=gated),
        ))

    # -------- exposed form ---------------------------------------
    def value_form(self, form, exposed=False):
        self.base.value_form(form, exposed)
        if not exposed or not self.autocomplete.enabled:
            return

        field = form.fields.get(self.identifier)
        widget = getattr(field, "widget", None)
        if not isinstance(widget, forms.TextInput) or widget.input_type != "text":
            return

        widget.attrs["data-autocomplete-path"] = reverse("autocomplete_filters:autocomplete", kwargs={
            "filter_name": self.id,
            "view_name": self.run.name,
            "view_display": self.run.current_display,
        })
        widget.attrs["data-autocomplete-args"] = ARGUMENT_SEPARATOR.join(self.run.args)
        add_css_class(widget, AUTOCOMPLETE_CLASS)
        self.run.assets.add_script(app_settings.AUTOCOMPLETE_SCRIPT, weight=0)

        if self.autocomplete.dependent:
            self.run.assets.add_script(app_settings.DEPENDENT_SCRIPT, weight=app_settings.DEPENDENT_SCRIPT_WEIGHT)
            add_css_class(widget, DEPENDENT_CLASS)


def autocomplete_string(run, handler_id, config):
    return AutocompleteFilter(StringFilter(run, handler_id, config))


def autocomplete_fulltext(run, handler_id, config):
    return AutocompleteFilter(FulltextFilter(run, handler_id, config))


register_filter_plugin("autocomplete_string", autocomplete_string)
register_filter_plugin("autocomplete_fulltext", autocomplete_fulltext)
