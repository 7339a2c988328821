# listings/urls.py
from django.urls import path

from .views import ListingPageView

app_name = "listings"

urlpatterns = [
    path("<str:listing_name>/<str:display_id>/",
         ListingPageView.as_view(), name="page"),
    path("<str:listing_name>/<str:display_id>/<str:args>/",
         ListingPageView.as_view(), name="page-args"),
]
