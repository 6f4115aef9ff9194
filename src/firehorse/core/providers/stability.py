"""Stability AI Stable Image client (``/v2beta/stable-image/generate/core``).

Unlike the JSON providers, Stability answers with the raw image bytes when
``Accept: image/*`` is sent.  The bytes are opened with Pillow to confirm
they really are an image and to learn the format, then embedded as a
``data:`` URI so the gallery can store them like any other reference.
"""

from __future__ import annotations

import base64
import io

from PIL import Image, UnidentifiedImageError

from firehorse.core.errors import NoImageInResponse
from firehorse.core.providers.base import ProviderClientBase, provider_registry
from firehorse.core.providers.parsers import parse_image_response


def image_bytes_to_data_uri(content: bytes) -> str:
    """Embed raw image bytes as a ``data:`` URI.

    Raises:
        ValueError: If *content* is not a readable image.
    """
    try:
        with Image.open(io.BytesIO(content)) as image:
            image_format = (image.format or "PNG").lower()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError("content is not a recognised image") from e
    mime = "image/jpeg" if image_format == "jpeg" else f"image/{image_format}"
    return f"data:{mime};base64,{base64.b64encode(content).decode('ascii')}"


@provider_registry.register
class StabilityClient(ProviderClientBase):
    kind = "stability"
    description = "Stability AI Stable Image Core"

    async def _generate(self, prompt: str, *, size: str, style: str) -> str:
        async with self.client() as client:
            response = await client.post(
                f"{self.provider.base_url}/v2beta/stable-image/generate/core",
                headers={**self.auth_headers(), "Accept": "image/*"},
                # multipart/form-data is required, even with no file parts
                files={"none": ("", b"")},
                data={"prompt": prompt, "output_format": "png", "aspect_ratio": "1:1"},
            )
        self.raise_for_status(response)

        content_type = response.headers.get("content-type", "")
        if content_type.startswith("application/json"):
            body = self.json_body(response)
            if isinstance(body, dict) and body.get("image"):
                return f"data:image/png;base64,{body['image']}"
            return parse_image_response(body, provider=self.name)

        try:
            return image_bytes_to_data_uri(response.content)
        except ValueError as e:
            raise NoImageInResponse(
                f"{self.name} returned an unreadable image", provider=self.name
            ) from e

    async def _check(self) -> int:
        async with self.client(timeout=10.0) as client:
            response = await client.get(
                f"{self.provider.base_url}/v1/user/account", headers=self.auth_headers()
            )
        self.raise_for_status(response)
        return response.status_code
