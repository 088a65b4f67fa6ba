"""
Stage library tests, each stage driven directly with a `RequestFactory` request.

What these tests verify
-----------------------
- Method override: POST + `_method=DELETE` (form field or header) reaches the
  terminal handler as DELETE; non-POST requests and unknown verbs are untouched.
- Request id: safe client ids are echoed, unsafe ones replaced; one log line
  per request; the contextvar is bound during dispatch and reset afterwards.
- Size limit: oversized unsafe requests short-circuit with a 413 JSON error.
- Best standards: `X-UA-Compatible` is added or extended on responses.
"""

from __future__ import annotations

from django.http import HttpResponse
from django.test import SimpleTestCase, RequestFactory, override_settings

from core.logging import request_id_var
from request_pipeline.engine import Pipeline
from request_pipeline.stages import (
    BestStandardsStage,
    MethodOverrideStage,
    RequestIDStage,
    RequestSizeLimitStage,
)


def _pipeline(*stages, terminal=None):
    seen = {}

    def app(request):
        seen["method"] = request.method
        seen["original_method"] = getattr(request, "original_method", None)
        seen["request_id"] = request_id_var.get()
        return HttpResponse("ok")

    p = Pipeline(terminal or app)
    for s in stages:
        p.register(s)
    return p.freeze(), seen


class MethodOverrideStageTests(SimpleTestCase):
    def setUp(self):
        self.rf = RequestFactory()

    def test_form_field_overrides_post(self):
        p, seen = _pipeline(MethodOverrideStage())
        request = self.rf.post("/things/1/", {"_method": "DELETE"})
        p.handle(request)
        self.assertEqual(seen["method"], "DELETE")
        self.assertEqual(seen["original_method"], "POST")
        self.assertEqual(request.META["REQUEST_METHOD"], "DELETE")

    def test_urlencoded_form_and_lowercase_value(self):
        p, seen = _pipeline(MethodOverrideStage())
        request = self.rf.post(
            "/things/1/",
            "_method=patch&name=x",
            content_type="application/x-www-form-urlencoded",
        )
        p.handle(request)
        self.assertEqual(seen["method"], "PATCH")

    def test_header_overrides_post(self):
        p, seen = _pipeline(MethodOverrideStage())
        request = self.rf.post(
            "/things/1/",
            data='{"a": 1}',
            content_type="application/json",
            HTTP_X_HTTP_METHOD_OVERRIDE="PUT",
        )
        p.handle(request)
        self.assertEqual(seen["method"], "PUT")

    def test_form_field_wins_over_header(self):
        p, seen = _pipeline(MethodOverrideStage())
        request = self.rf.post(
            "/things/1/", {"_method": "DELETE"}, HTTP_X_HTTP_METHOD_OVERRIDE="PUT"
        )
        p.handle(request)
        self.assertEqual(seen["method"], "DELETE")

    def test_non_post_requests_are_untouched(self):
        p, seen = _pipeline(MethodOverrideStage())
        p.handle(self.rf.get("/things/1/", HTTP_X_HTTP_METHOD_OVERRIDE="DELETE"))
        self.assertEqual(seen["method"], "GET")
        self.assertIsNone(seen["original_method"])

    def test_unknown_verb_is_ignored(self):
        p, seen = _pipeline(MethodOverrideStage())
        p.handle(self.rf.post("/things/1/", {"_method": "TRACE"}))
        self.assertEqual(seen["method"], "POST")
        self.assertIsNone(seen["original_method"])

    def test_body_field_ignored_for_json_requests(self):
        p, seen = _pipeline(MethodOverrideStage())
        p.handle(self.rf.post("/things/1/", data='{"_method": "DELETE"}', content_type="application/json"))
        self.assertEqual(seen["method"], "POST")

    def test_override_is_not_restored_on_the_way_out(self):
        observed = {}

        class Outer:
            name = "outer"

            def __call__(self, request, call_next):
                response = call_next(request)
                observed["after"] = request.method
                return response

        p, _ = _pipeline(Outer(), MethodOverrideStage())
        p.handle(self.rf.post("/things/1/", {"_method": "DELETE"}))
        self.assertEqual(observed["after"], "DELETE")

    @override_settings(METHOD_OVERRIDE_PARAM="verb", METHOD_OVERRIDE_HEADER="X-Verb")
    def test_field_and_header_names_come_from_settings(self):
        p, seen = _pipeline(MethodOverrideStage())
        p.handle(self.rf.post("/things/1/", {"verb": "PUT"}))
        self.assertEqual(seen["method"], "PUT")

        p, seen = _pipeline(MethodOverrideStage())
        p.handle(self.rf.post("/things/1/", {}, HTTP_X_VERB="DELETE"))
        self.assertEqual(seen["method"], "DELETE")


class RequestIDStageTests(SimpleTestCase):
    def setUp(self):
        self.rf = RequestFactory()

    def test_client_id_echoed_and_logged_once(self):
        p, seen = _pipeline(RequestIDStage())
        with self.assertLogs("railsauth.request", level="INFO") as cap:
            resp = p.handle(self.rf.get("/x/", HTTP_X_REQUEST_ID="custom-123_OK"))
        self.assertEqual(resp["X-Request-ID"], "custom-123_OK")
        self.assertEqual(seen["request_id"], "custom-123_OK")
        self.assertEqual(len(cap.records), 1)
        record = cap.records[0]
        self.assertEqual(record.status, 200)
        self.assertEqual(record.method, "GET")
        self.assertEqual(record.path, "/x/")

    def test_unsafe_id_replaced_with_uuid_hex(self):
        p, _ = _pipeline(RequestIDStage())
        with self.assertLogs("railsauth.request", level="INFO"):
            resp = p.handle(self.rf.get("/x/", HTTP_X_REQUEST_ID="BAD ID"))
        self.assertRegex(resp["X-Request-ID"], r"^[a-f0-9]{32}$")

    def test_contextvar_reset_after_dispatch(self):
        p, _ = _pipeline(RequestIDStage())
        with self.assertLogs("railsauth.request", level="INFO"):
            p.handle(self.rf.get("/x/", HTTP_X_REQUEST_ID="abc"))
        self.assertEqual(request_id_var.get(), "-")

    def test_fallback_response_carries_request_id(self):
        def boom(request):
            raise RuntimeError("down")

        p, _ = _pipeline(RequestIDStage(), terminal=boom)
        with self.assertLogs("request_pipeline.engine", level="ERROR"):
            resp = p.handle(self.rf.get("/x/", HTTP_X_REQUEST_ID="abc"))
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.data["request_id"], "abc")


class RequestSizeLimitStageTests(SimpleTestCase):
    def setUp(self):
        self.rf = RequestFactory()

    def test_oversized_post_short_circuits_with_413(self):
        p, seen = _pipeline(RequestSizeLimitStage(max_bytes=10))
        resp = p.handle(self.rf.post("/x/", data="A" * 50, content_type="text/plain"))
        self.assertEqual(resp.status_code, 413)
        self.assertEqual(resp.data["code"], "request_too_large")
        self.assertEqual(resp.data["max_bytes"], 10)
        self.assertEqual(seen, {})

    def test_small_post_and_large_get_pass(self):
        p, seen = _pipeline(RequestSizeLimitStage(max_bytes=10))
        self.assertEqual(p.handle(self.rf.post("/x/", data="A", content_type="text/plain")).status_code, 200)
        self.assertEqual(p.handle(self.rf.get("/x/", {"q": "A" * 50})).status_code, 200)

    def test_zero_disables_the_check(self):
        p, _ = _pipeline(RequestSizeLimitStage(max_bytes=0))
        resp = p.handle(self.rf.post("/x/", data="A" * 50, content_type="text/plain"))
        self.assertEqual(resp.status_code, 200)

    def test_unparsable_length_passes(self):
        p, _ = _pipeline(RequestSizeLimitStage(max_bytes=10))
        request = self.rf.post("/x/", data="A" * 50, content_type="text/plain")
        request.META["CONTENT_LENGTH"] = "lots"
        self.assertEqual(p.handle(request).status_code, 200)

    @override_settings(MAX_REQUEST_BYTES=5)
    def test_limit_defaults_to_setting(self):
        self.assertEqual(RequestSizeLimitStage().max_bytes, 5)


class BestStandardsStageTests(SimpleTestCase):
    def setUp(self):
        self.rf = RequestFactory()

    def test_header_added(self):
        p, _ = _pipeline(BestStandardsStage())
        resp = p.handle(self.rf.get("/x/"))
        self.assertEqual(resp["X-UA-Compatible"], "IE=Edge,chrome=1")

    def test_builtin_only(self):
        p, _ = _pipeline(BestStandardsStage(chrome_frame=False))
        self.assertEqual(p.handle(self.rf.get("/x/"))["X-UA-Compatible"], "IE=Edge")

    def test_existing_header_extended_once(self):
        def app(request):
            resp = HttpResponse("ok")
            resp["X-UA-Compatible"] = "requiresActiveX=true"
            return resp

        p, _ = _pipeline(BestStandardsStage(chrome_frame=False), terminal=app)
        resp = p.handle(self.rf.get("/x/"))
        self.assertEqual(resp["X-UA-Compatible"], "requiresActiveX=true,IE=Edge")


class MethodOverrideBodyErrorTests(SimpleTestCase):
    def setUp(self):
        self.rf = RequestFactory()

    @override_settings(DATA_UPLOAD_MAX_NUMBER_FIELDS=100)
    def test_too_many_fields_short_circuits_with_400(self):
        p, seen = _pipeline(MethodOverrideStage())
        body = "&".join(f"f{i}=x" for i in range(150)) + "&_method=DELETE"
        request = self.rf.post("/things/1/", body, content_type="application/x-www-form-urlencoded")

        with self.assertLogs("request_pipeline.stages", level="WARNING"):
            resp = p.handle(request)

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.data["code"], "bad_request_body")
        self.assertEqual(seen, {})

    def test_broken_multipart_short_circuits_with_400(self):
        p, seen = _pipeline(MethodOverrideStage())
        request = self.rf.post(
            "/things/1/",
            "not really multipart",
            content_type="multipart/form-data; boundary=",
        )
        with self.assertLogs("request_pipeline.stages", level="WARNING"):
            resp = p.handle(request)

        self.assertEqual(resp.status_code, 400)
        self.assertEqual(seen, {})


class MethodOverrideCsrfTokenTests(SimpleTestCase):
    def setUp(self):
        self.rf = RequestFactory()

    def test_form_token_copied_to_csrf_header(self):
        p, _ = _pipeline(MethodOverrideStage())
        request = self.rf.post("/things/1/", {"_method": "DELETE", "csrfmiddlewaretoken": "tok"})
        p.handle(request)
        self.assertEqual(request.META["HTTP_X_CSRFTOKEN"], "tok")

    def test_existing_csrf_header_is_kept(self):
        p, _ = _pipeline(MethodOverrideStage())
        request = self.rf.post(
            "/things/1/",
            {"_method": "DELETE", "csrfmiddlewaretoken": "form"},
            HTTP_X_CSRFTOKEN="header",
        )
        p.handle(request)
        self.assertEqual(request.META["HTTP_X_CSRFTOKEN"], "header")

    def test_header_override_does_not_touch_csrf(self):
        p, _ = _pipeline(MethodOverrideStage())
        request = self.rf.post(
            "/things/1/", {"csrfmiddlewaretoken": "tok"}, HTTP_X_HTTP_METHOD_OVERRIDE="PUT"
        )
        p.handle(request)
        self.assertNotIn("HTTP_X_CSRFTOKEN", request.META)
