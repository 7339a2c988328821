from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase
from rest_framework.exceptions import NotFound

from .exceptions import custom_exception_handler, GENERIC_500
from .response import ok, fail


class ExceptionHandlerTestCase(SimpleTestCase):
    def test_known_exceptions_keep_drf_response(self):
        response = custom_exception_handler(NotFound(), {"view": None})
        self.assertEqual(response.status_code, 404)

    def test_unknown_exceptions_are_logged(self):
        with self.assertLogs("core.exceptions", level="ERROR"):
            response = custom_exception_handler(ValueError("boom"), {"view": None})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data, GENERIC_500)

    def test_misconfigured_listing_is_a_logged_500(self):
        exc = ImproperlyConfigured("Unknown filter plugin 'regex'.")
        with self.assertLogs("core.exceptions", level="ERROR") as logs:
            response = custom_exception_handler(exc, {"view": None})

        self.assertEqual(response.status_code, 500)
        self.assertIn("regex", logs.output[0])


class ResponseTestCase(SimpleTestCase):
    def test_ok(self):
        response = ok("Fetched", {"rows": []})
        self.assertEqual(response.data, {"code": 1, "message": "Fetched", "data": {"rows": []}})

    def test_fail_with_field_errors(self):
        response = fail("Invalid", "bad input", field_errors={"title": ("Too long",)})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["errors"], {"title": ["Too long"]})
