"""Unit tests for firehorse.core.providers.parsers - response-shape parsing."""

import pytest

from firehorse.core.errors import NoImageInResponse
from firehorse.core.providers.parsers import (
    parse_b64_json,
    parse_embedded_url,
    parse_image_response,
    parse_inline_data,
    parse_url_field,
)


class TestInlineData:
    def test_camel_case(self, gemini_body, tiny_png_b64):
        ref = parse_inline_data(gemini_body)
        assert ref == f"data:image/png;base64,{tiny_png_b64}"

    def test_snake_case_with_mime(self):
        body = {
            "candidates": [
                {"content": {"parts": [{"inline_data": {"mime_type": "image/jpeg", "data": "abc"}}]}}
            ]
        }
        assert parse_inline_data(body) == "data:image/jpeg;base64,abc"

    def test_text_only_reply(self):
        body = {"candidates": [{"content": {"parts": [{"text": "sorry"}]}}]}
        assert parse_inline_data(body) is None

    def test_non_dict_body(self):
        assert parse_inline_data(["not", "a", "dict"]) is None


class TestB64Json:
    def test_openai_shape(self):
        assert parse_b64_json({"data": [{"b64_json": "xyz"}]}) == "data:image/png;base64,xyz"

    def test_missing(self):
        assert parse_b64_json({"data": [{"revised_prompt": "x"}]}) is None


class TestUrlField:
    def test_top_level(self):
        assert parse_url_field({"url": "https://cdn.test/a.png"}) == "https://cdn.test/a.png"

    def test_nested(self):
        body = {"result": {"images": [{"meta": {}, "url": "https://cdn.test/deep.png"}]}}
        assert parse_url_field(body) == "https://cdn.test/deep.png"

    def test_shallowest_wins(self):
        body = {"a": {"b": {"url": "https://cdn.test/deep.png"}}, "c": {"url": "https://cdn.test/shallow.png"}}
        assert parse_url_field(body) == "https://cdn.test/shallow.png"

    def test_ignores_non_url_values(self):
        assert parse_url_field({"url": "not a url", "x": {"url": 3}}) is None


class TestEmbeddedUrl:
    def test_url_in_text_part(self):
        body = {"candidates": [{"content": {"parts": [{"text": "Done: ![img](https://cdn.test/x/horse.webp)"}]}}]}
        assert parse_embedded_url(body) == "https://cdn.test/x/horse.webp"

    def test_non_image_url_ignored(self):
        assert parse_embedded_url({"text": "see https://example.test/page"}) is None

    def test_plain_text(self):
        assert parse_embedded_url("look at http://cdn.test/a.JPG now") == "http://cdn.test/a.JPG"


class TestParseImageResponse:
    def test_inline_data_has_priority_over_urls(self, gemini_body):
        body = gemini_body
        body["url"] = "https://cdn.test/other.png"
        assert parse_image_response(body).startswith("data:image/png;base64,")

    def test_url_field_before_embedded_text(self):
        body = {"data": [{"url": "https://cdn.test/field.png"}], "note": "https://cdn.test/text.png"}
        assert parse_image_response(body) == "https://cdn.test/field.png"

    def test_raises_when_nothing_matches(self):
        with pytest.raises(NoImageInResponse) as excinfo:
            parse_image_response({"candidates": []}, provider="primary")
        assert excinfo.value.provider == "primary"


class TestMalformedShapes:
    """Unexpected node types are treated as "no image here", never as errors."""

    @pytest.mark.parametrize(
        "body",
        [
            {"candidates": [{"content": "blocked by safety filter"}]},
            {"candidates": [{"content": {"parts": "none"}}]},
            {"candidates": "none"},
            {"candidates": [{"content": {"parts": [{"inlineData": {"data": 7}}]}}]},
        ],
    )
    def test_inline_data(self, body):
        assert parse_inline_data(body) is None

    @pytest.mark.parametrize("body", [{"data": 5}, {"data": "abc"}, {"data": [{"b64_json": 1}]}])
    def test_b64_json(self, body):
        assert parse_b64_json(body) is None

    @pytest.mark.parametrize("body", [{"data": 5}, {"candidates": [{"content": "blocked"}]}, None, 42])
    def test_parse_image_response_raises_no_image(self, body):
        with pytest.raises(NoImageInResponse):
            parse_image_response(body)
