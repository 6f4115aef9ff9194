"""OpenAI Images API client (``/v1/images/generations``)."""

from __future__ import annotations

from firehorse.core.providers.base import ProviderClientBase, provider_registry
from firehorse.core.providers.parsers import parse_image_response

# The Images API only accepts a handful of pixel sizes.
OPENAI_SIZES: dict[str, str] = {
    "1K": "1024x1024",
    "2K": "1536x1024",
    "4K": "1536x1024",
}


@provider_registry.register
class OpenAIClient(ProviderClientBase):
    kind = "openai"
    description = "OpenAI Images API (gpt-image-1, dall-e-3)"

    async def _generate(self, prompt: str, *, size: str, style: str) -> str:
        async with self.client() as client:
            response = await client.post(
                f"{self.provider.base_url}/v1/images/generations",
                headers={**self.auth_headers(), "Content-Type": "application/json"},
                json={
                    "model": self.provider.model or "gpt-image-1",
                    "prompt": prompt,
                    "size": OPENAI_SIZES.get(size, OPENAI_SIZES["1K"]),
                    "n": 1,
                },
            )
        self.raise_for_status(response)
        # gpt-image-1 answers with b64_json, dall-e models with a url.
        return parse_image_response(self.json_body(response), provider=self.name)

    async def _check(self) -> int:
        async with self.client(timeout=10.0) as client:
            response = await client.get(
                f"{self.provider.base_url}/v1/models", headers=self.auth_headers()
            )
        self.raise_for_status(response)
        return response.status_code
