# listings/api_urls.py
from django.urls import path

from .views import ListingResultsView

app_name = "listings_api"

urlpatterns = [
    path("<str:listing_name>/<str:display_id>/",
         ListingResultsView.as_view(), name="results"),
    path("<str:listing_name>/<str:display_id>/<str:args>/",
         ListingResultsView.as_view(), name="results-args"),
]
