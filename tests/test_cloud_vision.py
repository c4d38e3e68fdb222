from __future__ import annotations

import base64
import json
import unittest

import httpx

from snaplingo.exceptions import CredentialMissing, EmptyResult, RemoteAPIError, TransportError
from snaplingo.services.cloud_vision import CLOUD_LANGUAGE_HINTS, CloudVisionClient, parse_annotation
from ocr_stubs import sample_image


def make_client(handler, api_key="test-key", **kwargs) -> CloudVisionClient:
    return CloudVisionClient(api_key=api_key, transport=httpx.MockTransport(handler), **kwargs)


class TestCloudVisionRequest(unittest.TestCase):
    def test_annotate_sends_image_and_hints(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.url.params.get("key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "responses": [{
                    "fullTextAnnotation": {"text": "  Hello\nWorld  "},
                    "textAnnotations": [{"description": "Hello World", "locale": "en"}],
                }]
            })

        result = make_client(handler).annotate(sample_image())

        self.assertEqual(result.text, "Hello\nWorld")
        self.assertEqual(result.locale, "en")
        self.assertEqual(seen["key"], "test-key")
        req = seen["body"]["requests"][0]
        self.assertEqual(req["features"], [{"type": "TEXT_DETECTION"}])
        self.assertEqual(req["imageContext"]["languageHints"], list(CLOUD_LANGUAGE_HINTS))
        self.assertTrue(base64.b64decode(req["image"]["content"]).startswith(b"\x89PNG"))

    def test_document_feature_type_is_forwarded(self) -> None:
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"responses": [{"fullTextAnnotation": {"text": "x"}}]})

        make_client(handler, feature_type="DOCUMENT_TEXT_DETECTION").annotate(sample_image())

        self.assertEqual(seen["body"]["requests"][0]["features"], [{"type": "DOCUMENT_TEXT_DETECTION"}])

    def test_missing_key_makes_no_request(self) -> None:
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={})

        with self.assertRaises(CredentialMissing):
            make_client(handler, api_key="  ").annotate(sample_image())
        self.assertEqual(calls, [])

    def test_network_failure_is_transport_error(self) -> None:
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with self.assertRaises(TransportError):
            make_client(handler).annotate(sample_image())


class TestCloudVisionResponse(unittest.TestCase):
    def test_text_annotations_fallback(self) -> None:
        result = parse_annotation({
            "responses": [{"textAnnotations": [{"description": "こんにちは", "locale": "ja"}]}]
        })
        self.assertEqual(result.text, "こんにちは")
        self.assertEqual(result.locale, "ja")

    def test_missing_locale_is_none(self) -> None:
        result = parse_annotation({"responses": [{"fullTextAnnotation": {"text": "abc"}}]})
        self.assertIsNone(result.locale)

    def test_empty_payloads(self) -> None:
        payloads = [
            {},
            {"responses": []},
            {"responses": [{}]},
            {"responses": [{"fullTextAnnotation": {"text": "   "}}]},
        ]
        for payload in payloads:
            with self.subTest(payload=payload):
                with self.assertRaises(EmptyResult):
                    parse_annotation(payload)

    def test_error_inside_successful_response(self) -> None:
        def handler(request):
            return httpx.Response(200, json={
                "responses": [{"error": {"code": 3, "message": "Bad image data."}}]
            })

        with self.assertRaises(RemoteAPIError) as ctx:
            make_client(handler).annotate(sample_image())

        self.assertIn("Bad image data.", str(ctx.exception))
        self.assertEqual(ctx.exception.code, 3)

    def test_top_level_error_in_successful_response(self) -> None:
        def handler(request):
            return httpx.Response(200, json={"error": {"code": 403, "message": "API key not valid"}})

        with self.assertRaises(RemoteAPIError) as ctx:
            make_client(handler).annotate(sample_image())

        self.assertEqual(str(ctx.exception), "Cloud Vision API Error: API key not valid")
        self.assertEqual(ctx.exception.code, 403)

    def test_top_level_error_message(self) -> None:
        def handler(request):
            return httpx.Response(403, json={"error": {"code": 403, "message": "API key not valid."}})

        with self.assertRaises(RemoteAPIError) as ctx:
            make_client(handler).annotate(sample_image())

        self.assertEqual(str(ctx.exception), "Cloud Vision API Error: API key not valid.")
        self.assertEqual(ctx.exception.code, 403)

    def test_nested_error_message_on_failure_status(self) -> None:
        def handler(request):
            return httpx.Response(400, json={"responses": [{"error": {"message": "Image too large"}}]})

        with self.assertRaises(RemoteAPIError) as ctx:
            make_client(handler).annotate(sample_image())

        self.assertIn("Image too large", str(ctx.exception))

    def test_raw_body_when_error_is_not_json(self) -> None:
        def handler(request):
            return httpx.Response(500, text="upstream exploded")

        with self.assertRaisesRegex(RemoteAPIError, "upstream exploded"):
            make_client(handler).annotate(sample_image())


if __name__ == "__main__":
    unittest.main()
