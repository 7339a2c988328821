# autocomplete_filters/conf.py
from django.conf import settings

DEFAULTS = {
    # "list" → [{"value": …, "label": …}]; "mapping" → {value: label}
    "RESPONSE_FORMAT": "list",
    "LABEL_WRAPPER_CLASS": "reference-autocomplete",
    "AUTOCOMPLETE_SCRIPT": "autocomplete_filters/js/autocomplete.js",
    "DEPENDENT_SCRIPT": "autocomplete_filters/js/autocomplete-dependent.js",
    "DEPENDENT_SCRIPT_WEIGHT": 99,
}


class AppSettings:
    """Reads ``settings.AUTOCOMPLETE_FILTERS`` on every access, falling back to DEFAULTS."""

    def __getattr__(self, name):
        if name not in DEFAULTS:
            raise AttributeError(f"Invalid autocomplete filters setting: '{name}'")
        user_settings = getattr(settings, "AUTOCOMPLETE_FILTERS", {}) or {}
        return user_settings.get(name, DEFAULTS[name])


app_settings = AppSettings()
