"""Assessment service shared by the CLI and embedding applications.

An assessment runs a probe suite, aggregates the records into a
DefenseScore and appends it to history. Only one assessment may run at a
time per service instance.

Usage:
    >>> service = AssessmentService(HistoryStore())
    >>> result = asyncio.run(service.assess(probes))
    >>> result.score.grade
    'A'
"""

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field

from holdfast.core.categories import CATEGORY_WEIGHTS
from holdfast.core.db import HistoryStore
from holdfast.core.models import DefenseScore, ProgressEvent, ProgressPhase, TestRecord
from holdfast.core.probe import Probe
from holdfast.core.runner import run_probes
from holdfast.core.scoring import aggregate

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ProgressEvent], None]


class RunInProgressError(RuntimeError):
    """Raised when an assessment is started while another is running."""


@dataclass
class AssessmentResult:
    """Result of one assessment.

    Attributes:
        score: The aggregated defense score.
        records: Per-probe records, in suite order.
        previous: Most recent stored score before this one, if any.
        saved: Whether ``score`` was appended to history.
    """

    score: DefenseScore
    records: list[TestRecord] = field(default_factory=list)
    previous: DefenseScore | None = None
    saved: bool = False

    @property
    def delta(self) -> int | None:
        """Change in total score since the previous stored run."""
        if self.previous is None:
            return None
        return self.score.total_score - self.previous.total_score


class AssessmentService:
    """Runs probe suites and records their scores.

    Args:
        store: History store to append scores to. None disables saving.
        weights: Category weights used for aggregation.
    """

    def __init__(
        self,
        store: HistoryStore | None = None,
        weights: Mapping[str, float] = CATEGORY_WEIGHTS,
    ) -> None:
        self.store = store
        self.weights = weights
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        """True while an assessment is in progress."""
        return self._lock.locked()

    async def assess(
        self,
        probes: Sequence[Probe],
        on_event: ProgressListener | None = None,
        save: bool = True,
    ) -> AssessmentResult:
        """Run ``probes``, score them and append the score to history.

        Args:
            probes: The probe suite, in execution order.
            on_event: Receives a ``running`` event before each probe and a
                ``completed`` event once all probes have finished.
            save: Append the score to the store when one is configured.

        Returns:
            The AssessmentResult.

        Raises:
            RunInProgressError: If another assessment is running.
            DuplicateKeyError: If the score's timestamp is already stored.
            ValueError: If probe ids are not unique.
        """
        if self._lock.locked():
            raise RunInProgressError("An assessment is already running")

        async with self._lock:
            logger.info("Starting %d probe(s)", len(probes))

            def on_progress(index: int, total: int, probe: Probe) -> None:
                if on_event is not None:
                    on_event(ProgressEvent(completed=index + 1, total=total, current=probe.info))

            records = await run_probes(probes, on_progress)
            if on_event is not None:
                on_event(
                    ProgressEvent(
                        completed=len(records),
                        total=len(records),
                        phase=ProgressPhase.COMPLETED,
                    )
                )

            score = aggregate(records, self.weights)
            logger.info("Assessment complete. Score: %d (%s)", score.total_score, score.grade.value)

            previous = None
            saved = False
            if self.store is not None:
                previous = self.store.latest()
                if save:
                    self.store.append(score)
                    saved = True

            return AssessmentResult(score=score, records=records, previous=previous, saved=saved)
