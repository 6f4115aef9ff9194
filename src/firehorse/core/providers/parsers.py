"""Response-shape parsers for image provider replies.

Providers disagree on where the image lives in a JSON reply.  Each parser
below handles one shape and returns an image reference (URL or ``data:``
URI) or ``None``.  :func:`parse_image_response` tries them in the fixed
priority order of :data:`RESPONSE_PARSERS` and returns the first hit.

=====================  ===================================================
Parser                 Shape
=====================  ===================================================
``parse_inline_data``  ``candidates[].content.parts[].inlineData.data``
``parse_b64_json``     ``data[].b64_json``
``parse_url_field``    a ``url`` key at any depth (breadth-first)
``parse_embedded_url`` an image URL anywhere in the serialised body
=====================  ===================================================
"""

from __future__ import annotations

import json
import re
from collections import deque
from collections.abc import Callable
from typing import Any

from firehorse.core.errors import NoImageInResponse

ResponseParser = Callable[[Any], "str | None"]

_IMAGE_URL_RE = re.compile(r"https?://[^\s\"'<>\\]+?\.(?:jpe?g|png|gif|webp)\b", re.IGNORECASE)


def to_data_uri(image_b64: str, mime_type: str = "image/png") -> str:
    """Wrap base64 image data in a ``data:`` URI."""
    return f"data:{mime_type};base64,{image_b64}"


def _dict(node: Any) -> dict:
    return node if isinstance(node, dict) else {}


def _list(node: Any) -> list:
    return node if isinstance(node, list) else []


def parse_inline_data(body: Any) -> str | None:
    """Gemini ``generateContent`` replies carry base64 data in content parts."""
    for candidate in _list(_dict(body).get("candidates")):
        parts = _list(_dict(_dict(candidate).get("content")).get("parts"))
        for part in parts:
            if not isinstance(part, dict):
                continue
            inline = part.get("inlineData") or part.get("inline_data")
            if isinstance(inline, dict) and isinstance(inline.get("data"), str) and inline["data"]:
                mime = inline.get("mimeType") or inline.get("mime_type") or "image/png"
                return to_data_uri(inline["data"], mime)
    return None


def parse_b64_json(body: Any) -> str | None:
    """OpenAI image replies carry ``data[].b64_json``."""
    for item in _list(_dict(body).get("data")):
        if isinstance(item, dict) and isinstance(item.get("b64_json"), str) and item["b64_json"]:
            return to_data_uri(item["b64_json"])
    return None


def parse_url_field(body: Any) -> str | None:
    """Return the shallowest ``url`` string found anywhere in the body."""
    queue: deque[Any] = deque([body])
    while queue:
        node = queue.popleft()
        if isinstance(node, dict):
            value = node.get("url")
            if isinstance(value, str) and value.startswith(("http://", "https://", "data:image/")):
                return value
            queue.extend(node.values())
        elif isinstance(node, list):
            queue.extend(node)
    return None


def parse_embedded_url(body: Any) -> str | None:
    """Look for an image URL inside free text, e.g. a markdown link in a chat reply."""
    text = body if isinstance(body, str) else json.dumps(body, ensure_ascii=False)
    match = _IMAGE_URL_RE.search(text)
    return match.group(0) if match else None


RESPONSE_PARSERS: tuple[ResponseParser, ...] = (
    parse_inline_data,
    parse_b64_json,
    parse_url_field,
    parse_embedded_url,
)


def parse_image_response(
    body: Any,
    *,
    provider: str = "",
    parsers: tuple[ResponseParser, ...] = RESPONSE_PARSERS,
) -> str:
    """Extract an image reference from a provider reply.

    Args:
        body: Decoded JSON body (or raw text) returned by the provider.
        provider: Provider name, used in the error message.
        parsers: Parsers to try, in priority order.

    Returns:
        The first image reference any parser finds.

    Raises:
        NoImageInResponse: If no parser matches.
    """
    for parser in parsers:
        image_ref = parser(body)
        if image_ref:
            return image_ref
    raise NoImageInResponse("No image data in provider response", provider=provider)
