"""Detection signal plumbing.

The correlator only needs a way to subscribe and unsubscribe handlers for
signal kinds. SignalSource is that contract; SignalBus is the in-process
implementation the monitor server and tests publish into.
"""

import logging
import threading
from collections.abc import Callable
from typing import Protocol

from .models import DetectionSignal, SignalKind

logger = logging.getLogger(__name__)

SignalHandler = Callable[[DetectionSignal], None]


class SignalSource(Protocol):
    """Anything that can deliver DetectionSignals to subscribed handlers."""

    def subscribe(self, kind: SignalKind, handler: SignalHandler) -> None: ...

    def unsubscribe(self, kind: SignalKind, handler: SignalHandler) -> None: ...


class SignalBus:
    """Thread-safe publish/subscribe registry for detection signals.

    Handlers run synchronously in the publisher's thread. The handler list
    is copied under the lock before dispatch, so a handler removed by
    ``unsubscribe`` never sees a signal published after the removal
    returned.
    """

    def __init__(self) -> None:
        self._handlers: dict[SignalKind, list[SignalHandler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, kind: SignalKind, handler: SignalHandler) -> None:
        """Register ``handler`` for signals of ``kind``."""
        with self._lock:
            self._handlers.setdefault(SignalKind(kind), []).append(handler)

    def unsubscribe(self, kind: SignalKind, handler: SignalHandler) -> None:
        """Remove one registration of ``handler`` for ``kind``.

        Unknown handlers are ignored so cleanup paths can call this
        unconditionally.
        """
        with self._lock:
            handlers = self._handlers.get(SignalKind(kind))
            if not handlers:
                return
            try:
                handlers.remove(handler)
            except ValueError:
                return
            if not handlers:
                del self._handlers[SignalKind(kind)]

    def publish(self, signal: DetectionSignal) -> int:
        """Deliver ``signal`` to every handler subscribed to its kind.

        A failing handler is logged and does not stop delivery to the rest.

        Args:
            signal: The detection signal to deliver.

        Returns:
            Number of handlers the signal was delivered to.
        """
        with self._lock:
            handlers = list(self._handlers.get(signal.kind, ()))
        for handler in handlers:
            try:
                handler(signal)
            except Exception:
                logger.exception("Signal handler failed for %s", signal.kind.value)
        logger.debug("Published %s to %d handler(s)", signal.kind.value, len(handlers))
        return len(handlers)

    def handler_count(self, kind: SignalKind | None = None) -> int:
        """Return how many handlers are registered, optionally for one kind."""
        with self._lock:
            if kind is not None:
                return len(self._handlers.get(SignalKind(kind), ()))
            return sum(len(h) for h in self._handlers.values())
