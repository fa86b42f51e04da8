"""Shared data models for probe results and defense scores.

Outcome, TestRecord, CategoryScore and DefenseScore are the canonical
models passed between the runner, the scoring aggregator and the history
store. DetectionSignal is the event an out-of-band monitor raises while a
probe is running.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Severity(StrEnum):
    """Probe severity. Drives the points a probe is worth when scoring."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Category(StrEnum):
    """Closed set of attack categories a probe can belong to."""

    NETWORK = "network"
    PHISHING = "phishing"
    CLIENT_SIDE = "client-side"
    DOWNLOAD = "download"
    PERSISTENCE = "persistence"
    SIDE_CHANNEL = "side-channel"
    FINGERPRINTING = "fingerprinting"
    CRYPTOJACKING = "cryptojacking"
    PRIVACY = "privacy"
    MEDIA = "media"
    STORAGE = "storage"
    WORKER = "worker"
    INJECTION = "injection"
    COVERT = "covert"
    ADVANCED = "advanced"


class Grade(StrEnum):
    """Letter grade derived from a total score."""

    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"


class SignalKind(StrEnum):
    """Detection events an external monitor can raise.

    Attributes:
        DATA_EXFILTRATION: Outbound transfer of page or user data.
        TRACKING_BEACON: Beacon or pixel sent to a tracking endpoint.
        CLIPBOARD_HIJACK: Clipboard read or overwrite.
        COOKIE_ACCESS: Script access to cookies.
        XSS: Script injection into the page.
        DOM_SCRAPING: Bulk reads of DOM content.
        SUSPICIOUS_DOWNLOAD: Download of a risky file type.
    """

    DATA_EXFILTRATION = "data_exfiltration"
    TRACKING_BEACON = "tracking_beacon"
    CLIPBOARD_HIJACK = "clipboard_hijack"
    COOKIE_ACCESS = "cookie_access"
    XSS = "xss"
    DOM_SCRAPING = "dom_scraping"
    SUSPICIOUS_DOWNLOAD = "suspicious_download"


class Outcome(BaseModel):
    """Result of one probe invocation.

    Attributes:
        blocked: True if the target environment prevented or mitigated
            the attack.
        detected: True if an independent monitor observed the attempt.
            None when no monitor was consulted.
        execution_time: Seconds the probe took to run.
        details: Human-readable description of what happened.
        error: Set when the probe itself failed rather than completed.
    """

    model_config = ConfigDict(frozen=True)

    blocked: bool
    detected: bool | None = None
    execution_time: float = Field(default=0.0, ge=0)
    details: str = ""
    error: str | None = None


class DetectionSignal(BaseModel):
    """An out-of-band detection event raised by a monitor.

    Attributes:
        kind: Which kind of activity was observed.
        payload: Opaque monitor-specific data.
        received_at: UTC timestamp when the signal was raised.
    """

    model_config = ConfigDict(frozen=True)

    kind: SignalKind
    payload: dict[str, Any] = Field(default_factory=dict)
    received_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ProbeInfo(BaseModel):
    """Probe metadata without the callable, safe to persist and display."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: Category
    severity: Severity
    description: str = ""


class TestRecord(ProbeInfo):
    """Snapshot of a probe's metadata plus its reconciled outcome.

    Attributes:
        outcome: The outcome the runner recorded for the probe.
        timestamp: UTC time the runner created the record. Non-decreasing
            across one run.
    """

    outcome: Outcome
    timestamp: datetime


class CategoryScore(BaseModel):
    """Points earned and possible for one category.

    Attributes:
        category: The category the records belong to.
        score: Sum of severity points for blocked records.
        max_score: Sum of severity points for all records.
        records: Records that contributed to this category.
    """

    model_config = ConfigDict(frozen=True)

    category: Category
    score: int = Field(ge=0)
    max_score: int = Field(ge=0)
    records: list[TestRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _score_within_max(self) -> "CategoryScore":
        if self.score > self.max_score:
            raise ValueError(f"score {self.score} exceeds max_score {self.max_score}")
        return self

    @property
    def percentage(self) -> float:
        """Normalized score in the range 0-100 (0 for an empty category)."""
        if self.max_score <= 0:
            return 0.0
        return self.score / self.max_score * 100


class DefenseScore(BaseModel):
    """Aggregated result of one assessment run.

    Created once per run and never modified. ``tested_at`` is the key the
    history store persists it under.

    Attributes:
        total_score: Weighted score, 0-100.
        max_score: Always 100.
        grade: Letter grade for ``total_score``.
        categories: Per-category breakdown, in the order categories first
            appeared in the run.
        tested_at: UTC time the score was aggregated.
    """

    model_config = ConfigDict(frozen=True)

    total_score: int = Field(ge=0, le=100)
    max_score: int = 100
    grade: Grade
    categories: list[CategoryScore] = Field(default_factory=list)
    tested_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def record_count(self) -> int:
        """Number of probe records across all categories."""
        return sum(len(c.records) for c in self.categories)


class ProgressPhase(StrEnum):
    """Phase reported in a ProgressEvent."""

    RUNNING = "running"
    COMPLETED = "completed"


class ProgressEvent(BaseModel):
    """Progress update emitted while an assessment runs.

    Attributes:
        completed: Probes finished so far (1-based while running).
        total: Probes in the run.
        current: Probe about to execute, or None once the run completes.
        phase: ``running`` for per-probe updates, ``completed`` at the end.
    """

    model_config = ConfigDict(frozen=True)

    completed: int
    total: int
    current: ProbeInfo | None = None
    phase: ProgressPhase = ProgressPhase.RUNNING
