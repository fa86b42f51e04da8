"""Reconcile a probe's own verdict with out-of-band detection signals.

A probe reports whether the attack was blocked. A separate monitor may
also notice the attempt and raise a DetectionSignal, often slightly after
the probe has finished. The correlator listens for the relevant signal
kinds for the duration of the probe plus a short grace window, and marks
an unblocked outcome as detected when a signal arrived.

Typical usage:
    >>> bus = SignalBus()
    >>> correlator = DetectionCorrelator(bus)
    >>> probe = correlator.monitor(probe, {SignalKind.COOKIE_ACCESS})
"""

import asyncio
import dataclasses
import logging
from collections.abc import Iterable

from .models import DetectionSignal, Outcome, SignalKind
from .probe import Probe, ProbeExecute, invoke
from .signals import SignalSource

logger = logging.getLogger(__name__)

SHORT_GRACE_WINDOW = 0.1
"""Grace window in seconds for probes wrapped with the short form."""

MONITORED_GRACE_WINDOW = 0.5
"""Grace window in seconds for probes that expect a slow monitor."""


class _DetectionLatch:
    """Single-fire record of the first qualifying signal.

    ``on_signal`` may be called from any thread; the asyncio event is set
    on the owning loop.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop
        self._event = asyncio.Event()
        self.signal: DetectionSignal | None = None

    def on_signal(self, signal: DetectionSignal) -> None:
        if self.signal is not None:
            return
        self.signal = signal
        self._loop.call_soon_threadsafe(self._event.set)

    async def wait(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for a signal; True if one arrived."""
        if self.signal is not None:
            return True
        if timeout <= 0:
            return False
        try:
            await asyncio.wait_for(self._event.wait(), timeout)
        except TimeoutError:
            pass
        return self.signal is not None


class DetectionCorrelator:
    """Wraps probe execution with detection-signal listening.

    Args:
        source: Where detection signals come from. Injected so tests and
            embedding applications can supply their own.
        grace_window: Default grace window for probes wrapped with
            ``monitor``.
    """

    def __init__(self, source: SignalSource, grace_window: float = MONITORED_GRACE_WINDOW) -> None:
        self.source = source
        self.grace_window = grace_window

    async def correlate(
        self,
        execute: ProbeExecute,
        signal_kinds: Iterable[SignalKind],
        grace_window: float = SHORT_GRACE_WINDOW,
    ) -> Outcome:
        """Run ``execute`` while listening for ``signal_kinds``.

        Listening starts before the probe is invoked and continues for up to
        ``grace_window`` seconds after it returns. Handlers are removed on
        every exit path, including when the probe raises.

        Args:
            execute: The probe callable.
            signal_kinds: Signal kinds that count as detecting this probe.
            grace_window: Extra seconds to wait for a late signal.

        Returns:
            The probe's outcome, with ``detected=True`` and annotated details
            if a signal arrived and the probe was not blocked.

        Raises:
            ValueError: If ``signal_kinds`` is empty or ``grace_window`` is
                negative.
            Exception: Whatever the probe raised, after cleanup.
        """
        kinds = list(dict.fromkeys(SignalKind(k) for k in signal_kinds))
        if not kinds:
            raise ValueError("signal_kinds must not be empty")
        if grace_window < 0:
            raise ValueError("grace_window must be non-negative")

        latch = _DetectionLatch(asyncio.get_running_loop())
        subscribed: list[SignalKind] = []
        try:
            for kind in kinds:
                self.source.subscribe(kind, latch.on_signal)
                subscribed.append(kind)

            outcome = await invoke(execute)
            if outcome.blocked:
                return outcome

            if not await latch.wait(grace_window):
                return outcome
        finally:
            for kind in subscribed:
                self.source.unsubscribe(kind, latch.on_signal)

        signal = latch.signal
        if signal is None:
            return outcome
        logger.debug("Out-of-band detection via %s", signal.kind.value)
        return outcome.model_copy(
            update={
                "detected": True,
                "details": _annotate(outcome.details, signal.kind),
            }
        )

    def monitor(
        self,
        probe: Probe,
        signal_kinds: Iterable[SignalKind],
        grace_window: float | None = None,
    ) -> Probe:
        """Return a copy of ``probe`` whose execute is correlated.

        The runner can then treat the returned probe as opaque. Without an
        explicit ``grace_window`` the correlator's default is used.
        """
        kinds = list(signal_kinds)
        if not kinds:
            raise ValueError("signal_kinds must not be empty")
        window = self.grace_window if grace_window is None else grace_window
        inner = probe.execute

        async def execute() -> Outcome:
            return await self.correlate(inner, kinds, window)

        return dataclasses.replace(probe, execute=execute)


def _annotate(details: str, kind: SignalKind) -> str:
    note = f"Attack executed but detected out-of-band ({kind.value})"
    if not details:
        return note
    return f"{details} | {note}"
