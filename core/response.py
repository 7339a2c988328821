from rest_framework import status as http_status
from rest_framework.response import Response

SUCCESS = 1
FAILURE = 0


def envelope(code, message, **extra):
    body = {"code": code, "message": message}
    body.update({key: value for key, value in extra.items() if value is not None})
    return body


def ok(message="OK", data=None, status=http_status.HTTP_200_OK):
    return Response(envelope(SUCCESS, message, data=data), status=status)


def fail(message, error_message="", field_errors=None, status=http_status.HTTP_400_BAD_REQUEST):
    """``field_errors``: {field: [error, …]}, e.g. an exposed filter form's ``errors``."""
    errors = None
    if field_errors:
        errors = {name: [str(error) for error in messages] for name, messages in field_errors.items()}
    return Response(envelope(FAILURE, message, error_message=error_message, errors=errors), status=status)
