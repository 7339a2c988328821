# listings/formatters.py
"""
Field formatters: turn a field's raw items into display markup.

Every formatter receives ``(items, row, settings)`` and returns safe HTML.
"""
from django.core.exceptions import ImproperlyConfigured
from django.utils.html import format_html, format_html_join
from django.utils.text import Truncator


def plain(items, row, settings):
    separator = settings.get("separator", ", ")
    return format_html_join(separator, "{}", ((item.value,) for item in items))


def emphasis(items, row, settings):
    if not items:
        return plain(items, row, settings)
    return format_html("<em>{}</em>", plain(items, row, settings))


def link(items, row, settings):
    """Link to ``settings["path"]`` (formatted with ``row``) or ``row.get_absolute_url()``."""
    text = plain(items, row, settings)
    if not items:
        return text
    path = settings.get("path")
    if path:
        url = path.format(row=row)
    elif hasattr(row, "get_absolute_url"):
        url = row.get_absolute_url()
    else:
        return text
    return format_html('<a href="{}">{}</a>', url, text)


def trimmed(items, row, settings):
    text = settings.get("separator", ", ").join(item.value for item in items)
    short = Truncator(text).chars(settings.get("max_length", 60), truncate="…")
    return format_html("{}", short)


FORMATTERS = {
    "plain": plain,
    "emphasis": emphasis,
    "link": link,
    "trimmed": trimmed,
}


def register_formatter(name, func):
    FORMATTERS[name] = func
    return func


def get_formatter(name):
    try:
        return FORMATTERS[name]
    except KeyError:
        raise ImproperlyConfigured(f"Unknown field formatter '{name}'.")
