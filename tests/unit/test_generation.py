"""Tests for firehorse.core.generation - the provider fallback chain."""

import asyncio

import pytest

from firehorse.core.config import ProviderConfig
from firehorse.core.errors import (
    NoImageInResponse,
    ProviderRejected,
    ProviderTimeout,
    ProviderUnavailable,
    ValidationError,
)
from firehorse.core.fallback import FALLBACK_ANNOTATION, STYLE_PLACEHOLDERS, SIZE_PLACEHOLDERS
from firehorse.core.generation import FALLBACK_SOURCE, GenerationOrchestrator, GenerationState
from firehorse.core.providers.base import ProviderClientBase


class ScriptedClient(ProviderClientBase):
    """Provider client that replays a fixed outcome and records its calls."""

    kind = "scripted"

    def __init__(self, name, outcome):
        super().__init__(ProviderConfig(name=name, base_url="https://scripted.test", api_key="sk-x"))
        self.outcome = outcome
        self.calls = []

    async def _generate(self, prompt, *, size, style):
        self.calls.append((prompt, size, style))
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def run(coro):
    return asyncio.run(coro)


class TestResolveImage:
    def test_first_success_wins(self):
        first = ScriptedClient("a", "https://img.test/a.png")
        second = ScriptedClient("b", "https://img.test/b.png")

        resolution = run(GenerationOrchestrator([first, second]).resolve_image("p", size="2K", style="digital"))

        assert resolution.image_ref == "https://img.test/a.png"
        assert resolution.provider == "a"
        assert resolution.source == "scripted"
        assert not resolution.is_fallback
        assert second.calls == []
        assert resolution.trace == [GenerationState.ATTEMPTING, GenerationState.SUCCESS]

    def test_recoverable_failures_move_down_the_chain(self):
        clients = [
            ScriptedClient("a", ProviderTimeout("a timed out", provider="a")),
            ScriptedClient("b", NoImageInResponse("no image", provider="b")),
            ScriptedClient("c", "https://img.test/c.png"),
        ]

        resolution = run(GenerationOrchestrator(clients).resolve_image("p", size="1K", style="fantasy"))

        assert resolution.provider == "c"
        assert [len(client.calls) for client in clients] == [1, 1, 1]
        assert len(resolution.errors) == 2
        assert resolution.trace == [
            GenerationState.ATTEMPTING,
            GenerationState.NEXT_PROVIDER,
            GenerationState.ATTEMPTING,
            GenerationState.NEXT_PROVIDER,
            GenerationState.ATTEMPTING,
            GenerationState.SUCCESS,
        ]

    def test_unrecoverable_failure_skips_remaining_providers(self):
        rejected = ProviderRejected("payment required", provider="a", status_code=402, unrecoverable=True)
        first = ScriptedClient("a", rejected)
        second = ScriptedClient("b", "https://img.test/b.png")

        resolution = run(GenerationOrchestrator([first, second]).resolve_image("p", size="2K", style="cyberpunk"))

        assert second.calls == []
        assert resolution.is_fallback
        assert resolution.image_ref == STYLE_PLACEHOLDERS["cyberpunk"]
        assert resolution.source == FALLBACK_SOURCE
        assert resolution.trace == [GenerationState.ATTEMPTING, GenerationState.FALLBACK]

    def test_every_provider_failing_falls_back(self):
        clients = [
            ScriptedClient("a", ProviderUnavailable("down", provider="a")),
            ScriptedClient("b", ProviderRejected("busy", provider="b", status_code=503)),
        ]
        resolution = run(GenerationOrchestrator(clients).resolve_image("p", size="2K", style="chinese"))

        assert resolution.is_fallback
        assert resolution.image_ref == STYLE_PLACEHOLDERS["chinese"]
        assert resolution.errors[0].startswith("a: ")
        assert resolution.errors[1].startswith("b: ")

    def test_empty_chain_uses_size_placeholder_without_style(self):
        resolution = run(GenerationOrchestrator([]).resolve_image("p", size="4K", style=None))
        assert resolution.image_ref == SIZE_PLACEHOLDERS["4K"]
        assert resolution.trace == [GenerationState.FALLBACK]

    def test_unconfigured_client_falls_back_without_io(self):
        client = ScriptedClient("a", "https://img.test/a.png")
        client.provider = client.provider.model_copy(update={"api_key": None})

        resolution = run(GenerationOrchestrator([client]).resolve_image("p", size="2K", style="digital"))

        assert resolution.is_fallback
        assert client.calls == []


class TestGenerate:
    def test_successful_generation_is_persisted(self, store):
        client = ScriptedClient("primary", "https://img.test/ok.png")
        orchestrator = GenerationOrchestrator([client])

        result = run(
            orchestrator.generate(
                "  golden lake  ", store=store, style="Fantasy", size="4k", user_ip="1.2.3.4", user_agent="pytest"
            )
        )

        prompt, size, style = client.calls[0]
        assert prompt == result.enhanced_prompt
        assert prompt.startswith("Fire Dragon Horse, golden lake,")
        assert (size, style) == ("4K", "fantasy")

        artwork = result.artwork
        assert store.get_artwork(artwork.id) == artwork
        assert artwork.prompt == result.enhanced_prompt
        assert artwork.image_url == "https://img.test/ok.png"
        assert artwork.style == "fantasy"
        assert (artwork.user_ip, artwork.user_agent, artwork.likes) == ("1.2.3.4", "pytest", 0)
        assert result.resolution.trace[0] is GenerationState.ENHANCING
        assert result.resolution.trace[-1] is GenerationState.PERSISTED

    def test_fallback_generation_is_annotated(self, store):
        client = ScriptedClient("primary", ProviderUnavailable("down", provider="primary"))

        result = run(GenerationOrchestrator([client]).generate("red dragon", store=store, style="chinese"))

        assert result.resolution.is_fallback
        assert result.artwork.prompt == result.enhanced_prompt + FALLBACK_ANNOTATION
        assert result.artwork.image_url == STYLE_PLACEHOLDERS["chinese"]
        assert store.count_artworks() == 1
        assert GenerationState.FALLBACK in result.resolution.trace
        assert result.resolution.trace[-1] is GenerationState.PERSISTED

    def test_defaults(self, store):
        result = run(GenerationOrchestrator([]).generate("fire horse", store=store))
        assert result.artwork.style == "digital"
        assert "2K quality" in result.enhanced_prompt

    @pytest.mark.parametrize("prompt", ["", "  ", "ab"])
    def test_short_prompt_rejected_before_any_attempt(self, store, prompt):
        client = ScriptedClient("primary", "https://img.test/ok.png")
        with pytest.raises(ValidationError):
            run(GenerationOrchestrator([client]).generate(prompt, store=store))
        assert client.calls == []
        assert store.count_artworks() == 0
