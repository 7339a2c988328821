import logging

from django.core.exceptions import ImproperlyConfigured
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)

GENERIC_500 = {"detail": "Sorry, something went wrong. Please try again later."}


def _view_name(context):
    view = context.get("view")
    return view.__class__.__name__ if view is not None else "unknown view"


def custom_exception_handler(exc, context):
    """
    JSON errors for the listing and autocomplete APIs.

    Http404 from a missing listing or display becomes DRF's 404 body. A broken
    listing definition (unknown plugin, operator, formatter or response
    format) and anything else DRF does not handle are logged and answered
    with a generic 500.
    """
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, ImproperlyConfigured):
        logger.error("Listing misconfigured in %s: %s", _view_name(context), exc)
    else:
        logger.exception("Unhandled exception in %s", _view_name(context), exc_info=exc)
    return Response(GENERIC_500, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
