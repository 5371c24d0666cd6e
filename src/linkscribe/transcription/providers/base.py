"""Provider base class and the ordered cascade every provider runs.

A provider tries a fixed sequence of steps. Each step either produces text,
fails softly (recorded as a note) or is skipped because a prerequisite is
missing. Steps run strictly in order and the first success wins.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

from linkscribe.content.diagnostics import DiagnosticNote, NoteOutcome, TranscriptSource
from linkscribe.content.models import ResolveOptions
from linkscribe.deps import LinkResolverDeps
from linkscribe.transcription.models import ProviderResult, TranscriptSegment

logger = logging.getLogger(__name__)


@dataclass
class ProviderContext:
    """Everything a provider needs for one link."""

    url: str
    html: str | None
    resource_key: str
    options: ResolveOptions
    deps: LinkResolverDeps
    notes: list[DiagnosticNote] = field(default_factory=list)

    def note(self, step: str, message: str, outcome: NoteOutcome = "info") -> None:
        self.notes.append(DiagnosticNote(step=step, outcome=outcome, message=message))

    @property
    def timeout(self) -> float:
        return self.options.timeout_seconds


@dataclass
class StepOutput:
    """What a successful step produced."""

    text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    segments: list[TranscriptSegment] | None = None
    source: TranscriptSource | None = None  # overrides the step's source


class StepState(str, Enum):
    NOT_ATTEMPTED = "not_attempted"
    SUCCEEDED = "succeeded"
    SOFT_FAILED = "soft_failed"
    SKIPPED = "skipped"


@dataclass
class CascadeStep:
    """One provider attempt.

    Attributes:
        source: Identifier appended to ``attempted_providers`` when it runs
        run: Coroutine returning a ``StepOutput`` or None on a soft miss
        enabled: False when a prerequisite (key, downloader) is missing
        skip_reason: Note recorded for a disabled step
    """

    source: TranscriptSource
    run: Callable[[], Awaitable[StepOutput | None]]
    enabled: bool = True
    skip_reason: str | None = None
    state: StepState = StepState.NOT_ATTEMPTED


@dataclass
class CascadeOutcome:
    output: StepOutput | None
    source: TranscriptSource | None
    attempted_providers: list[TranscriptSource]
    steps: list[CascadeStep]


class ProviderCascade:
    """Runs steps in order, recording every attempt.

    Step exceptions listed in ``soft_errors`` count as soft failures; anything
    else propagates.
    """

    def __init__(
        self,
        context: ProviderContext,
        soft_errors: tuple[type[Exception], ...] = (),
    ):
        self.context = context
        self.soft_errors = soft_errors
        self.attempted: list[TranscriptSource] = []

    async def run(self, steps: list[CascadeStep]) -> CascadeOutcome:
        for step in steps:
            if not step.enabled:
                step.state = StepState.SKIPPED
                if step.skip_reason:
                    self.context.note(step.source, step.skip_reason, "skipped")
                continue

            self.attempted.append(step.source)
            try:
                output = await step.run()
            except self.soft_errors as e:
                step.state = StepState.SOFT_FAILED
                logger.warning(f"{step.source} failed for {self.context.url}: {e}")
                self.context.note(step.source, f"{step.source} failed: {e}", "soft_fail")
                continue

            if output is None or not output.text.strip():
                step.state = StepState.SOFT_FAILED
                continue

            step.state = StepState.SUCCEEDED
            source = output.source or step.source
            logger.info(f"Transcript for {self.context.url} found via {source}")
            return CascadeOutcome(output, source, list(self.attempted), steps)

        return CascadeOutcome(None, None, list(self.attempted), steps)


def unavailable_result(
    context: ProviderContext,
    attempted: list[TranscriptSource],
    metadata: dict[str, Any],
) -> ProviderResult:
    return ProviderResult(
        text=None,
        source="unavailable",
        metadata=metadata,
        attempted_providers=attempted,
        notes=list(context.notes),
    )


def result_from_outcome(context: ProviderContext, outcome: CascadeOutcome) -> ProviderResult:
    assert outcome.output is not None
    return ProviderResult(
        text=outcome.output.text,
        source=outcome.source,
        metadata=outcome.output.metadata,
        segments=outcome.output.segments,
        attempted_providers=outcome.attempted_providers,
        notes=list(context.notes),
    )


class TranscriptProvider(ABC):
    """Base class for transcript providers.

    Class Attributes:
        NAME: Service name, also the cache namespace
    """

    NAME: ClassVar[str]

    @abstractmethod
    def can_handle(self, url: str, html: str | None) -> bool:
        """Whether this provider owns ``url``."""

    def resource_key(self, url: str) -> str:
        """Cache key for ``url`` within this provider's namespace."""
        return url

    @abstractmethod
    async def fetch(self, context: ProviderContext) -> ProviderResult:
        """Run the provider's cascade for one link."""
