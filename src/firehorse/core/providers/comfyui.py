"""ComfyUI client: queue a workflow, then poll its history until it finishes.

ComfyUI does not return the image in the reply to ``POST /prompt``; it
returns a ``prompt_id``.  The client polls ``GET /history/{prompt_id}`` with
a fixed delay until an output image appears.  The whole attempt, polling
included, is bounded by the provider timeout enforced in
:meth:`~firehorse.core.providers.base.ProviderClientBase.generate`.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any
from urllib.parse import urlencode

from firehorse.core.errors import NoImageInResponse, ProviderRejected
from firehorse.core.providers.base import ProviderClientBase, provider_registry

logger = logging.getLogger(__name__)

COMFY_SIZES: dict[str, int] = {"1K": 1024, "2K": 1536, "4K": 2048}


def build_workflow(prompt: str, *, checkpoint: str, side: int, seed: int) -> dict[str, Any]:
    """Minimal text-to-image graph in ComfyUI's API format."""
    return {
        "3": {
            "class_type": "KSampler",
            "inputs": {
                "seed": seed,
                "steps": 20,
                "cfg": 7.0,
                "sampler_name": "euler",
                "scheduler": "normal",
                "denoise": 1.0,
                "model": ["4", 0],
                "positive": ["6", 0],
                "negative": ["7", 0],
                "latent_image": ["5", 0],
            },
        },
        "4": {"class_type": "CheckpointLoaderSimple", "inputs": {"ckpt_name": checkpoint}},
        "5": {
            "class_type": "EmptyLatentImage",
            "inputs": {"width": side, "height": side, "batch_size": 1},
        },
        "6": {"class_type": "CLIPTextEncode", "inputs": {"text": prompt, "clip": ["4", 1]}},
        "7": {
            "class_type": "CLIPTextEncode",
            "inputs": {"text": "blurry, low quality, watermark", "clip": ["4", 1]},
        },
        "8": {"class_type": "VAEDecode", "inputs": {"samples": ["3", 0], "vae": ["4", 2]}},
        "9": {
            "class_type": "SaveImage",
            "inputs": {"filename_prefix": "firehorse", "images": ["8", 0]},
        },
    }


def first_output_image(record: dict[str, Any]) -> dict[str, Any] | None:
    """Return the first image descriptor in a history record, if any."""
    outputs = record.get("outputs")
    if not isinstance(outputs, dict):
        return None
    for node_output in outputs.values():
        images = node_output.get("images") if isinstance(node_output, dict) else None
        if isinstance(images, list) and images and isinstance(images[0], dict):
            return images[0]
    return None


@provider_registry.register
class ComfyUIClient(ProviderClientBase):
    kind = "comfyui"
    description = "Self-hosted ComfyUI server"
    # Local ComfyUI servers normally run without authentication.
    requires_api_key = False

    poll_interval: float = 1.0

    async def _generate(self, prompt: str, *, size: str, style: str) -> str:
        base = self.provider.base_url
        workflow = build_workflow(
            prompt,
            checkpoint=self.provider.model or "sd_xl_base_1.0.safetensors",
            side=COMFY_SIZES.get(size, COMFY_SIZES["1K"]),
            seed=random.randint(0, 2**32 - 1),
        )

        async with self.client() as client:
            response = await client.post(
                f"{base}/prompt", headers=self.auth_headers(), json={"prompt": workflow}
            )
            self.raise_for_status(response)
            body = self.json_body(response)
            prompt_id = body.get("prompt_id") if isinstance(body, dict) else None
            if not prompt_id:
                raise NoImageInResponse(
                    f"{self.name} response missing prompt_id", provider=self.name
                )
            logger.info(f"{self.name} queued prompt_id={prompt_id}")

            while True:
                history = await client.get(f"{base}/history/{prompt_id}", headers=self.auth_headers())
                self.raise_for_status(history)
                entries = self.json_body(history)
                record = entries.get(prompt_id) if isinstance(entries, dict) else None
                if isinstance(record, dict):
                    status = record.get("status")
                    if isinstance(status, dict):
                        status = status.get("status_str")
                    if status == "error":
                        raise ProviderRejected(
                            f"{self.name} workflow {prompt_id} failed", provider=self.name
                        )
                    image = first_output_image(record)
                    if image:
                        return self.view_url(image)
                await asyncio.sleep(self.poll_interval)

    def view_url(self, image: dict[str, Any]) -> str:
        query = urlencode(
            {
                "filename": image.get("filename", ""),
                "subfolder": image.get("subfolder", ""),
                "type": image.get("type", "output"),
            }
        )
        return f"{self.provider.base_url}/view?{query}"

    async def _check(self) -> int:
        async with self.client(timeout=10.0) as client:
            response = await client.get(
                f"{self.provider.base_url}/system_stats", headers=self.auth_headers()
            )
        self.raise_for_status(response)
        return response.status_code
