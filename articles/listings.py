# articles/listings.py
from listings.registry import Listing, registry

from .models import Article

ARTICLE_FIELDS = {
    "title": {"field": "title", "label": "Title", "formatter": "emphasis"},
    "category": {"field": "category__name", "label": "Category"},
    "author_name": {"field": "author_name", "label": "Author"},
    "tags": {"field": "tags", "label": "Tags"},
    "summary": {"field": "summary", "label": "Summary", "formatter": "trimmed",
                "settings": {"max_length": 80}},
}

ARTICLE_FILTERS = {
    "title": {
        "plugin": "autocomplete_string",
        "field": "title",
        "exposed": True,
        "expose": {
            "identifier": "title",
            "label": "Title",
            "autocomplete_filter": True,
            "autocomplete_field": "title",
            "autocomplete_items": 10,
            "autocomplete_min_chars": 2,
            "autocomplete_dependent": True,
        },
    },
    "author_name": {
        "plugin": "autocomplete_string",
        "field": "author_name",
        "exposed": True,
        "expose": {
            "identifier": "author",
            "label": "Author",
            "autocomplete_filter": True,
            "autocomplete_dependent": True,
        },
    },
    "search": {
        "plugin": "autocomplete_fulltext",
        "fields": ["title", "summary"],
        "exposed": True,
        "expose": {
            "identifier": "search",
            "label": "Search",
            "autocomplete_filter": True,
            "autocomplete_raw_suggestion": True,
            "autocomplete_raw_dropdown": False,
        },
    },
}

registry.register(Listing(
    name="articles",
    label="Articles",
    queryset=Article.objects.filter(published=True).select_related("category").prefetch_related("tags"),
    displays={
        "default": {
            "title": "Articles",
            "fields": ARTICLE_FIELDS,
            "filters": ARTICLE_FILTERS,
            "arguments": {
                "category": {"field": "category__slug", "default_action": "ignore"},
            },
            "sorts": ("title",),
            "pager": {"type": "full", "options": {"items_per_page": 20, "offset": 0}},
            "cache": {"type": "time", "results_lifespan": 300},
        },
        "page": {},
        "block": {
            "title": "Latest articles",
            "sorts": ("-created_at",),
            "pager": {"type": "some", "options": {"items_per_page": 5, "offset": 0}},
        },
    },
))
