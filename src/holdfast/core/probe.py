"""Probe definition consumed by the runner."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from .models import Category, Outcome, ProbeInfo, Severity

ProbeExecute = Callable[[], Outcome | Awaitable[Outcome]]


@dataclass(frozen=True)
class Probe:
    """A single attack simulation.

    Args:
        id: Unique identifier within a run.
        name: Human-readable name.
        category: Attack category the probe belongs to.
        severity: Severity, which sets how many points the probe is worth.
        description: What the probe attempts.
        execute: No-argument callable returning an Outcome, or an
            awaitable resolving to one.
    """

    id: str
    name: str
    category: Category
    severity: Severity
    description: str
    execute: ProbeExecute

    def __post_init__(self) -> None:
        # Plain strings are accepted and normalized to the enums
        try:
            object.__setattr__(self, "category", Category(self.category))
        except ValueError:
            raise ValueError(f"Probe {self.id}: unknown category {self.category!r}") from None
        try:
            object.__setattr__(self, "severity", Severity(self.severity))
        except ValueError:
            raise ValueError(f"Probe {self.id}: unknown severity {self.severity!r}") from None

    @property
    def info(self) -> ProbeInfo:
        """Metadata for this probe without the callable."""
        return ProbeInfo(
            id=self.id,
            name=self.name,
            category=self.category,
            severity=self.severity,
            description=self.description,
        )


def check_unique_ids(probes: list[Probe]) -> None:
    """Raise ValueError if two probes share an id.

    Args:
        probes: Probes about to be run together.

    Raises:
        ValueError: Listing every duplicated id.
    """
    seen: set[str] = set()
    duplicates: list[str] = []
    for probe in probes:
        if probe.id in seen and probe.id not in duplicates:
            duplicates.append(probe.id)
        seen.add(probe.id)
    if duplicates:
        raise ValueError(f"Duplicate probe id(s): {', '.join(duplicates)}")


async def invoke(execute: ProbeExecute) -> Outcome:
    """Call ``execute`` and await the result if it is awaitable."""
    result = execute()
    if inspect.isawaitable(result):
        result = await result
    if not isinstance(result, Outcome):
        raise TypeError(f"Probe returned {type(result).__name__}, expected Outcome")
    return result
