# listings/forms.py
from django import forms

from .options import merge_options


class FilterOptionsForm(forms.Form):
    """
    Configuration form of one filter handler.

    The handler adds its controls in ``build_options_form``; controls that
    belong to the "expose" section are registered through
    ``add_expose_field`` and come back nested under ``expose`` in
    ``cleaned_options``.
    """

    def __init__(self, handler, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.handler = handler
        self.expose_fields = []
        handler.build_options_form(self)

    def add_expose_field(self, name, field):
        self.fields[name] = field
        if name not in self.expose_fields:
            self.expose_fields.append(name)

    @property
    def has_expose_section(self):
        return bool(self.expose_fields)

    def cleaned_options(self):
        """Handler options with the submitted values applied (call after is_valid)."""
        submitted = {
            name: value for name, value in self.cleaned_data.items()
            if name not in self.expose_fields
        }
        submitted["expose"] = {
            name: self.cleaned_data[name] for name in self.expose_fields
            if name in self.cleaned_data
        }
        return merge_options(self.handler.options, submitted)
