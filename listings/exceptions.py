from django.http import Http404


class ListingDoesNotExist(Http404):
    """No listing is registered under the requested name."""


class DisplayDoesNotExist(Http404):
    """The listing has no display with the requested id."""
