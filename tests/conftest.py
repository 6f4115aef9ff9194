"""Shared pytest fixtures for Fire Horse tests."""

import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Generator

import httpx
import pytest
from fastapi.testclient import TestClient

from firehorse.api.main import create_app
from firehorse.core.artwork_store import ArtworkStore
from firehorse.core.config import FirehorseConfig, ProviderConfig

# Smallest valid PNG (1x1 transparent pixel), base64-encoded.
TINY_PNG_B64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


def gemini_image_body(data: str = TINY_PNG_B64) -> dict:
    """A Gemini generateContent reply carrying one inline image."""
    return {
        "candidates": [
            {
                "content": {
                    "parts": [
                        {"text": "Here is your Fire Horse."},
                        {"inlineData": {"mimeType": "image/png", "data": data}},
                    ]
                }
            }
        ]
    }


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def make_config(temp_dir: Path) -> Callable[..., FirehorseConfig]:
    """Factory for test configurations rooted in the temporary directory.

    Keyword arguments override individual fields.  The environment and any
    ``.env`` file are ignored for fields that are passed explicitly.
    """

    def _make(**overrides) -> FirehorseConfig:
        values = {
            "data_dir": temp_dir / "data",
            "database_path": temp_dir / "data" / "gallery.db",
            "server_port": 10000,
            "provider_kind": "gemini",
            "provider_base_url": "https://images.test",
            "provider_model": "gemini-test-image",
            "provider_api_key": "sk-test-key-123456",
            "provider_timeout": 5.0,
            "extra_providers": [],
            "seed_sample_artworks": False,
            "_env_file": None,
        }
        values.update(overrides)
        return FirehorseConfig(**values)

    return _make


@pytest.fixture
def test_config(make_config) -> FirehorseConfig:
    """Configuration with a keyed Gemini provider and no sample seeding."""
    return make_config()


@pytest.fixture
def store(temp_dir: Path) -> ArtworkStore:
    """Empty artwork store in a temporary database."""
    return ArtworkStore(temp_dir / "store" / "gallery.db")


@pytest.fixture
def provider_config() -> ProviderConfig:
    return ProviderConfig(
        name="primary",
        kind="gemini",
        base_url="https://images.test",
        api_key="sk-test-key-123456",
        model="gemini-test-image",
        timeout=5.0,
    )


@pytest.fixture
def gemini_success_transport() -> httpx.MockTransport:
    """Transport where every provider request returns an inline image."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=gemini_image_body())

    return httpx.MockTransport(handler)


@pytest.fixture
def failing_transport() -> httpx.MockTransport:
    """Transport where every provider request fails to connect."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    return httpx.MockTransport(handler)


@pytest.fixture
def make_client(make_config) -> Generator[Callable[..., TestClient], None, None]:
    """Factory for TestClients with a stubbed provider transport.

    The lifespan (store creation, provider chain) runs on entry and every
    client is closed at teardown.
    """
    clients: list[TestClient] = []

    def _make(transport: httpx.AsyncBaseTransport | None = None, **config_overrides) -> TestClient:
        app = create_app(make_config(**config_overrides), transport=transport)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def test_client(make_client, gemini_success_transport) -> TestClient:
    """API client whose provider always returns an image."""
    return make_client(gemini_success_transport)


@pytest.fixture
def offline_client(make_client, failing_transport) -> TestClient:
    """API client whose provider is unreachable."""
    return make_client(failing_transport)


@pytest.fixture
def sample_artworks(store: ArtworkStore) -> list:
    """Seven artworks across the four styles, created oldest first."""
    rows = [
        ("red dragon over the city", "fantasy"),
        ("golden horse in the clouds", "digital"),
        ("ink painting of a fire horse", "chinese"),
        ("neon Dragon with mech armour", "cyberpunk"),
        ("lantern festival", "chinese"),
        ("fire horse galloping", "digital"),
        ("starry dragon sky", "fantasy"),
    ]
    artworks = [
        store.create_artwork(prompt, f"https://img.test/{i}.png", style, "10.0.0.1", "pytest")
        for i, (prompt, style) in enumerate(rows)
    ]
    return artworks


@pytest.fixture
def tiny_png_b64() -> str:
    return TINY_PNG_B64


@pytest.fixture
def gemini_body() -> dict:
    """A fresh Gemini reply carrying the 1x1 PNG."""
    return gemini_image_body()
