"""FastAPI receiver for out-of-band detection signals.

An external monitor (a browser extension, an EDR hook, a proxy) reports
what it observed by posting to ``/signals/{kind}``. Each post is turned into
a DetectionSignal and published on the SignalBus the correlator listens
to, so a probe running at the time is marked as detected.

The receiver runs in the same event loop as the assessment so published
signals reach the correlator without crossing threads.

Usage:
    From the CLI (preferred):

    >>> holdfast run --probes mysuite:PROBES --monitor --port 8765

    Programmatic:

    >>> app = create_monitor_app(bus)
    >>> async with running_monitor(app, port=8765):
    ...     await service.assess(probes)
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import Body, FastAPI
from fastapi.responses import JSONResponse
from rich.console import Console
from rich.markup import escape

from holdfast.core.models import DetectionSignal, SignalKind
from holdfast.core.signals import SignalBus

console = Console(stderr=True)


def log_signal_to_console(signal: DetectionSignal, delivered: int) -> None:
    """Print a one-line notice for a received signal.

    Args:
        signal: The signal that was published.
        delivered: How many listeners received it.
    """
    style = "bold green" if delivered else "dim"
    console.print(
        f"[{style}]>>> SIGNAL[/{style}] {signal.received_at.strftime('%H:%M:%S')} "
        f"{escape(signal.kind.value)} -> {delivered} listener(s)"
    )


def create_monitor_app(bus: SignalBus, echo: bool = False) -> FastAPI:
    """Build the signal receiver application.

    Args:
        bus: Bus that received signals are published on.
        echo: Print each received signal to the console.

    Returns:
        The FastAPI application.
    """
    app = FastAPI(
        title="Holdfast Signal Receiver",
        description="Receives out-of-band detection signals during an assessment",
    )

    @app.post("/signals/{kind}", status_code=202)
    async def receive_signal(
        kind: SignalKind,
        payload: dict[str, Any] | None = Body(default=None),
    ) -> JSONResponse:
        """Publish a detection signal of ``kind``.

        Args:
            kind: Signal kind path parameter. Unknown kinds are rejected
                with 422 by FastAPI's enum validation.
            payload: Optional JSON object passed through as the signal
                payload.

        Returns:
            202 with the accepted kind and the number of listeners reached.
        """
        signal = DetectionSignal(kind=kind, payload=payload or {})
        delivered = bus.publish(signal)
        if echo:
            log_signal_to_console(signal, delivered)
        return JSONResponse(
            {"accepted": kind.value, "delivered": delivered},
            status_code=202,
        )

    @app.get("/health")
    async def health() -> dict:
        """Return receiver health status."""
        return {"status": "ok"}

    return app


@asynccontextmanager
async def running_monitor(
    app: FastAPI, host: str = "127.0.0.1", port: int = 8765
) -> AsyncIterator[uvicorn.Server]:
    """Serve ``app`` in the current event loop for the duration of the block.

    Args:
        app: The receiver application.
        host: Network interface to bind (default ``"127.0.0.1"``).
        port: TCP port to listen on (default ``8765``).

    Yields:
        The running uvicorn server.
    """
    config = uvicorn.Config(app, host=host, port=port, log_level="warning")
    server = uvicorn.Server(config)
    task = asyncio.create_task(server.serve())
    try:
        while not server.started:
            if task.done():
                # serve() exits early if the port cannot be bound
                task.result()
                raise RuntimeError(f"Signal receiver failed to start on {host}:{port}")
            await asyncio.sleep(0.05)
        yield server
    finally:
        server.should_exit = True
        await task
