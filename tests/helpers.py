"""Builders shared by the test suite."""

from __future__ import annotations

from datetime import UTC, datetime

from holdfast.core.models import Category, Outcome, Severity, TestRecord
from holdfast.core.probe import Probe


def make_probe(
    probe_id: str,
    category: Category = Category.NETWORK,
    severity: Severity = Severity.MEDIUM,
    blocked: bool = True,
    raises: Exception | None = None,
    calls: list[str] | None = None,
) -> Probe:
    """Build an async probe that returns a fixed outcome or raises."""

    async def execute() -> Outcome:
        if calls is not None:
            calls.append(probe_id)
        if raises is not None:
            raise raises
        return Outcome(blocked=blocked, execution_time=0.01, details=f"{probe_id} ran")

    return Probe(
        id=probe_id,
        name=f"Probe {probe_id}",
        category=category,
        severity=severity,
        description=f"Test probe {probe_id}",
        execute=execute,
    )


def make_record(
    record_id: str,
    category: Category = Category.NETWORK,
    severity: Severity = Severity.MEDIUM,
    blocked: bool = True,
) -> TestRecord:
    """Build a TestRecord without running anything."""
    return TestRecord(
        id=record_id,
        name=f"Probe {record_id}",
        category=category,
        severity=severity,
        description="",
        outcome=Outcome(blocked=blocked),
        timestamp=datetime.now(UTC),
    )
