"""Shared fixtures for linkscribe tests."""

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from linkscribe.config.schema import TranscriptionConfig
from linkscribe.deps import LinkResolverDeps, ProgressEvent
from linkscribe.transcription.models import TranscriptionOutcome, TranscriptionRequest
from linkscribe.utils.retry import TEST_RETRY_CONFIG

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def fast_retry_config(monkeypatch):
    """Use fast retry configuration for all tests to avoid long delays."""
    monkeypatch.setattr("linkscribe.utils.retry.DEFAULT_RETRY_CONFIG", TEST_RETRY_CONFIG)


def no_network(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"Unexpected request: {request.method} {request.url}")


class FakeTranscriber:
    """Transcriber returning a canned outcome and recording requests."""

    def __init__(self, text: str | None = "transcribed audio", provider_id: str = "groq"):
        self.text = text
        self.provider_id = provider_id
        self.requests: list[TranscriptionRequest] = []

    async def transcribe(self, request: TranscriptionRequest) -> TranscriptionOutcome:
        self.requests.append(request)
        if self.text is None:
            return TranscriptionOutcome(provider_id=self.provider_id, error="no speech")
        return TranscriptionOutcome(text=self.text, provider_id=self.provider_id)


@pytest.fixture
def progress_events() -> list[ProgressEvent]:
    return []


@pytest.fixture
def make_deps(progress_events: list[ProgressEvent]) -> Callable[..., LinkResolverDeps]:
    """Factory for deps backed by an ``httpx.MockTransport``.

    Requests fail the test unless a handler is given.
    """

    def factory(handler: Handler | None = None, **overrides: Any) -> LinkResolverDeps:
        http = httpx.AsyncClient(transport=httpx.MockTransport(handler or no_network))
        values: dict[str, Any] = {
            "http": http,
            "transcription": TranscriptionConfig(),
            "on_progress": progress_events.append,
        }
        values.update(overrides)
        return LinkResolverDeps(**values)

    return factory


@pytest.fixture
def transcription_keys() -> TranscriptionConfig:
    return TranscriptionConfig(groq_api_key="gsk_" + "a" * 40)


@pytest.fixture
def fake_transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def transcriber_factory() -> Callable[..., FakeTranscriber]:
    return FakeTranscriber
