"""Tests for the assessment service."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from helpers import make_probe

from holdfast.assess import AssessmentService, RunInProgressError
from holdfast.core.db import HistoryStore
from holdfast.core.models import Category, Grade, Outcome, ProgressEvent, ProgressPhase, Severity
from holdfast.core.probe import Probe


@pytest.fixture
def store(tmp_path: Path) -> HistoryStore:
    return HistoryStore(tmp_path / "history.db")


class TestAssess:
    def test_scores_and_saves(self, store: HistoryStore) -> None:
        service = AssessmentService(store)
        probes = [
            make_probe("n1", Category.NETWORK, Severity.CRITICAL, blocked=True),
            make_probe("n2", Category.NETWORK, Severity.LOW, blocked=False),
            make_probe("s1", Category.STORAGE, Severity.HIGH, blocked=True),
        ]
        result = asyncio.run(service.assess(probes))

        assert [r.id for r in result.records] == ["n1", "n2", "s1"]
        assert result.score.total_score == 90
        assert result.score.grade == Grade.A
        assert result.saved is True
        assert result.previous is None
        assert result.delta is None
        assert store.latest() == result.score

    def test_previous_and_delta(self, store: HistoryStore) -> None:
        service = AssessmentService(store)
        first = asyncio.run(service.assess([make_probe("a", blocked=True)]))
        second = asyncio.run(service.assess([make_probe("a", blocked=False)]))

        assert second.previous == first.score
        assert second.delta == -100
        assert store.count() == 2

    def test_no_save(self, store: HistoryStore) -> None:
        service = AssessmentService(store)
        result = asyncio.run(service.assess([make_probe("a")], save=False))
        assert result.saved is False
        assert store.count() == 0

    def test_without_store(self) -> None:
        result = asyncio.run(AssessmentService().assess([make_probe("a")]))
        assert result.saved is False
        assert result.previous is None
        assert result.score.total_score == 100

    def test_empty_suite(self, store: HistoryStore) -> None:
        result = asyncio.run(AssessmentService(store).assess([]))
        assert result.score.total_score == 0
        assert result.score.grade == Grade.F
        assert result.records == []
        assert store.count() == 1

    def test_custom_weights(self) -> None:
        service = AssessmentService(weights={"network": 1.0})
        probes = [
            make_probe("n", Category.NETWORK, blocked=True),
            make_probe("s", Category.STORAGE, blocked=False),
        ]
        result = asyncio.run(service.assess(probes))
        assert result.score.total_score == 100
        assert len(result.records) == 2


class TestProgressEvents:
    def test_event_sequence(self) -> None:
        events: list[ProgressEvent] = []
        probes = [make_probe("a"), make_probe("b")]
        asyncio.run(AssessmentService().assess(probes, on_event=events.append))

        assert [(e.completed, e.total, e.phase) for e in events] == [
            (1, 2, ProgressPhase.RUNNING),
            (2, 2, ProgressPhase.RUNNING),
            (2, 2, ProgressPhase.COMPLETED),
        ]
        assert [e.current.id for e in events[:2]] == ["a", "b"]
        assert events[-1].current is None

    def test_empty_suite_still_completes(self) -> None:
        events: list[ProgressEvent] = []
        asyncio.run(AssessmentService().assess([], on_event=events.append))
        assert len(events) == 1
        assert events[0].phase == ProgressPhase.COMPLETED
        assert events[0].total == 0


class TestConcurrency:
    def test_second_run_rejected(self) -> None:
        service = AssessmentService()

        async def slow() -> Outcome:
            await asyncio.sleep(0.1)
            return Outcome(blocked=True)

        probe = Probe("slow", "Slow", Category.NETWORK, Severity.LOW, "", slow)

        async def main() -> None:
            first = asyncio.create_task(service.assess([probe]))
            await asyncio.sleep(0.01)
            assert service.running is True
            with pytest.raises(RunInProgressError, match="already running"):
                await service.assess([make_probe("other")])
            await first

        asyncio.run(main())
        assert service.running is False

    def test_lock_released_after_failure(self) -> None:
        service = AssessmentService()
        with pytest.raises(ValueError):
            asyncio.run(service.assess([make_probe("a"), make_probe("a")]))
        assert service.running is False
        result = asyncio.run(service.assess([make_probe("a")]))
        assert result.score.total_score == 100
