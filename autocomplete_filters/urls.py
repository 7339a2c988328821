# autocomplete_filters/urls.py
from django.urls import path

from .suggestions import MAPPING
from .views import AutocompleteFilterView

app_name = "autocomplete_filters"

_ROUTE = "<str:filter_name>/<str:view_name>/<str:view_display>/"

urlpatterns = [
    path("autocomplete_filter/" + _ROUTE,
         AutocompleteFilterView.as_view(), name="autocomplete"),
    path("autocomplete_filter/" + _ROUTE + "<str:view_args>/",
         AutocompleteFilterView.as_view(), name="autocomplete-args"),

    # {value: label} responses for the legacy generic autocomplete widget
    path("autocomplete_filter_legacy/" + _ROUTE,
         AutocompleteFilterView.as_view(response_format=MAPPING), name="autocomplete-legacy"),
    path("autocomplete_filter_legacy/" + _ROUTE + "<str:view_args>/",
         AutocompleteFilterView.as_view(response_format=MAPPING), name="autocomplete-legacy-args"),
]
