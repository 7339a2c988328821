# autocomplete_filters/suggestions.py
import html
from dataclasses import dataclass

from django.core.exceptions import ImproperlyConfigured
from django.utils.html import escape, format_html
from django.utils.safestring import mark_safe

from listings.handlers import FieldItem
from .conf import app_settings

LIST = "list"
MAPPING = "mapping"
RESPONSE_FORMATS = (LIST, MAPPING)


@dataclass(frozen=True)
class Suggestion:
    value: str   # text put into the textfield when picked
    label: str   # dropdown markup


def placeholder(value):
    return format_html('<em class="placeholder">{}</em>', value)


def wrap_label(label):
    # labels are markup already (escaped raw value or formatter output)
    return format_html('<div class="{}">{}</div>', app_settings.LABEL_WRAPPER_CLASS, mark_safe(label))


def min_chars_message(string, min_chars):
    return Suggestion("", format_html(
        "The {} should have at least {} characters.", placeholder(string), placeholder(min_chars),
    ))


def no_results_message(string):
    return Suggestion("", format_html(
        "The {} return no results. Please try something else.", placeholder(string),
    ))


def collect_suggestions(run, field_names, string, use_raw_suggestion=True, use_raw_dropdown=True):
    """
    Scan every result row of an executed run for field values containing
    ``string`` (case-insensitive) and build one Suggestion per matching item.

    The formatted value is rendered only when one side is not raw, the raw
    items are read only when one side is raw.
    """
    needle = string.lower()
    matches = []
    for index in range(len(run.result)):
        for field_name in field_names:
            rendered = ""
            items = []
            if not use_raw_suggestion or not use_raw_dropdown:
                rendered = run.render_field(index, field_name)
            if use_raw_suggestion or use_raw_dropdown:
                items = run.get_field_value(index, field_name)
            if not items:
                items = [FieldItem(rendered)]

            for item in items:
                if needle not in item.value.lower():
                    continue
                dropdown = escape(item.value) if use_raw_dropdown else rendered
                if dropdown == "":
                    continue
                suggestion = escape(item.value) if use_raw_suggestion else rendered
                matches.append(Suggestion(html.unescape(suggestion), dropdown))
    return matches


def serialize(suggestions, response_format=LIST):
    """
    * list    → [{"value": …, "label": …}, …] in match order
    * mapping → {value: label}; repeated values keep the last label
    """
    if response_format == LIST:
        return [{"value": s.value, "label": wrap_label(s.label)} for s in suggestions]
    if response_format == MAPPING:
        return {s.value: wrap_label(s.label) for s in suggestions}
    raise ImproperlyConfigured(
        f"Unknown autocomplete response format '{response_format}'; use one of {RESPONSE_FORMATS}."
    )
