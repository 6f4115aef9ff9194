"""Gemini-compatible ``generateContent`` client.

Works against Google's endpoint as well as the OpenAI-style proxies that
re-expose it under ``/v1/models/{model}:generateContent`` with a bearer
token.  Replies usually carry the image as inline base64 data, but some
proxies answer with a URL inside a text part, so the full parser chain is
applied.
"""

from __future__ import annotations

from firehorse.core.providers.base import ProviderClientBase, provider_registry
from firehorse.core.providers.parsers import parse_image_response


@provider_registry.register
class GeminiClient(ProviderClientBase):
    kind = "gemini"
    description = "Gemini image preview models via generateContent"

    @property
    def endpoint(self) -> str:
        return f"{self.provider.base_url}/v1/models/{self.provider.model}:generateContent"

    def build_payload(self, prompt: str, *, size: str) -> dict:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseModalities": ["IMAGE", "TEXT"],
                "imageConfig": {"imageSize": size},
                "temperature": 0.7,
            },
        }

    async def _generate(self, prompt: str, *, size: str, style: str) -> str:
        async with self.client() as client:
            response = await client.post(
                self.endpoint,
                headers={**self.auth_headers(), "Accept": "application/json"},
                json=self.build_payload(prompt, size=size),
            )
        self.raise_for_status(response)
        return parse_image_response(self.json_body(response), provider=self.name)

    async def _check(self) -> int:
        # A text-only request is the cheapest call that exercises auth and model.
        async with self.client(timeout=10.0) as client:
            response = await client.post(
                self.endpoint,
                headers=self.auth_headers(),
                json={
                    "contents": [{"role": "user", "parts": [{"text": "test connection"}]}],
                    "generationConfig": {"responseModalities": ["TEXT"], "temperature": 0.7},
                },
            )
        self.raise_for_status(response)
        return response.status_code
