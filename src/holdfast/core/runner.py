"""Sequential probe runner.

Probes run one at a time, in order, so timing-sensitive or
resource-hungry probes never interfere with each other. A probe that
raises is recorded as blocked with the error attached; the rest of the
sequence still runs.
"""

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from .models import Outcome, TestRecord
from .probe import Probe, check_unique_ids, invoke

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, Probe], None]
"""Called as ``on_progress(index, total, probe)`` before each probe runs."""


def _failure_outcome(exc: Exception) -> Outcome:
    """Build the outcome recorded for a probe that raised.

    An exception during an attack simulation most plausibly means the
    environment interfered with it, so the attack counts as blocked.
    """
    message = str(exc) or type(exc).__name__
    return Outcome(
        blocked=True,
        execution_time=0.0,
        details=f"Test error: {message}",
        error=message,
    )


async def run_probe(probe: Probe) -> Outcome:
    """Execute one probe, converting any exception into a failure outcome."""
    try:
        return await invoke(probe.execute)
    except Exception as e:
        logger.warning("Probe %s failed: %s", probe.id, e)
        return _failure_outcome(e)


async def run_probes(
    probes: Sequence[Probe],
    on_progress: ProgressCallback | None = None,
) -> list[TestRecord]:
    """Run every probe in order and record its outcome.

    Args:
        probes: Probes to run. Ids must be unique.
        on_progress: Optional callback invoked synchronously before each
            probe starts, with the zero-based index, the total and the probe.

    Returns:
        One TestRecord per probe, in input order, with non-decreasing
        timestamps.

    Raises:
        ValueError: If two probes share an id. Nothing is run in that case.
    """
    probes = list(probes)
    check_unique_ids(probes)

    records: list[TestRecord] = []
    total = len(probes)
    last_timestamp: datetime | None = None

    for index, probe in enumerate(probes):
        if on_progress is not None:
            on_progress(index, total, probe)

        outcome = await run_probe(probe)

        # Wall clock can step backwards; records must not.
        timestamp = datetime.now(UTC)
        if last_timestamp is not None and timestamp < last_timestamp:
            timestamp = last_timestamp
        last_timestamp = timestamp

        records.append(
            TestRecord(
                id=probe.id,
                name=probe.name,
                category=probe.category,
                severity=probe.severity,
                description=probe.description,
                outcome=outcome,
                timestamp=timestamp,
            )
        )

    logger.info("Ran %d probe(s)", total)
    return records
