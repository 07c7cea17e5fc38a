"""
Process-wide timing registry with per-request span labels.

This module implements the instrumentation service every hydration step
reports to. It provides:

- ``start(base_label, request_id=None)``: open a span and return its label.
- ``stop(label, request_id=None)``: close a span, log and emit its duration.
- ``wrap(base_label, operation, request_id=None)``: time an awaitable with a
  guaranteed stop on every exit path (success, failure, cancellation).
- ``span(base_label, request_id=None)``: the same guarantee for sync code.
- ``active_count()`` / ``reset()`` / ``sweep(max_age_seconds)``: diagnostics.

Labels
------
One registry is shared by every in-flight request of the process, so a base
label such as ``"get_trending_topics"`` is never used as a key on its own:

- with a request id the label is ``f"{base}_{request_id}"``; repeating the
  same (base, request id) pair addresses the same span;
- without one the label is ``f"{base}_{monotonic_ms}_{random9}"``. This gives
  probabilistic uniqueness only, which is accepted: two callers would need the
  same millisecond and the same 9-character base-36 suffix to collide.

When the registry is disabled nothing is allocated: ``start`` returns ``None``
and every other call is a no-op.
"""

from __future__ import annotations

import secrets
import string
import threading
import time
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import TypeVar

from pagestate.core.settings import Settings, get_logger, load_settings

from .trace import TimingRecord

T = TypeVar("T")

TimingSink = Callable[[TimingRecord], None]

_SUFFIX_ALPHABET = string.digits + string.ascii_lowercase
_SUFFIX_LENGTH = 9

logger = get_logger(__name__)


def make_label(base_label: str, request_id: str | None = None) -> str:
    """Return the span label for ``base_label``, scoped by ``request_id`` if given."""
    if request_id:
        return f"{base_label}_{request_id}"
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(_SUFFIX_LENGTH))
    return f"{base_label}_{time.monotonic_ns() // 1_000_000}_{suffix}"


class RequestTimer:
    """
    Named phase durations collected for a single request.

    Unlike the registry, a request timer is owned by one request and is not
    shared, so it needs no locking. Phases that are started but never stopped
    simply do not appear in :meth:`durations`.
    """

    __slots__ = ("_started", "_durations")

    def __init__(self) -> None:
        self._started: dict[str, float] = {}
        self._durations: dict[str, float] = {}

    def start_timer(self, name: str) -> None:
        self._started[name] = time.perf_counter()

    def stop_timer(self, name: str) -> None:
        started = self._started.pop(name, None)
        if started is not None:
            self._durations[name] = (time.perf_counter() - started) * 1000.0

    def durations(self) -> dict[str, float]:
        """Return completed phases as ``{name: milliseconds}`` in stop order."""
        return dict(self._durations)


class TimingRegistry:
    """
    Concurrency-safe store of active timer spans.

    Attributes
    ----------
    _enabled : bool
        Fixed at construction; a disabled registry never touches ``_active``.
    _sink : TimingSink | None
        Optional callback receiving a :class:`TimingRecord` per stopped span.
    _active : dict[str, float]
        Span label → ``time.perf_counter()`` value at start.
    _lock : threading.Lock
        Guards ``_active``; safe for both worker threads and event-loop tasks.
    """

    __slots__ = ("_enabled", "_sink", "_active", "_lock")

    def __init__(self, enabled: bool = False, sink: TimingSink | None = None) -> None:
        self._enabled = enabled
        self._sink = sink
        self._active: dict[str, float] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(
        cls, settings: Settings | None = None, sink: TimingSink | None = None
    ) -> TimingRegistry:
        """Build a registry whose enable flag comes from ``TIME_LOG``."""
        cfg = settings if settings is not None else load_settings()
        return cls(enabled=cfg.time_log, sink=sink)

    @property
    def enabled(self) -> bool:
        return self._enabled

    # ------------------------------- Span API -------------------------------

    def start(self, base_label: str, request_id: str | None = None) -> str | None:
        """
        Open a span and return its label, or ``None`` when disabled.

        Parameters
        ----------
        base_label : str
            Operation name, usually including its parameters
            (e.g. ``"get_discussion_alice_abc123"``).
        request_id : str | None
            Opaque request identifier; makes the label deterministic.
        """
        if not self._enabled:
            return None
        label = make_label(base_label, request_id)
        with self._lock:
            self._active[label] = time.perf_counter()
        return label

    def stop(self, label: str | None, request_id: str | None = None) -> float | None:
        """
        Close a span and return its duration in milliseconds.

        ``label`` may be the token returned by :meth:`start`, or the original
        base label together with the same ``request_id``. A span that is
        missing (never started, already stopped, or swept) is logged as a
        warning and ``None`` is returned; this method never raises for it.
        """
        if not self._enabled or label is None:
            return None

        stopped = time.perf_counter()
        with self._lock:
            resolved = label if label in self._active else make_label(label, request_id)
            started = self._active.pop(resolved, None)

        if started is None:
            logger.warning("Timer %s not found or already ended", resolved)
            return None

        elapsed_ms = (stopped - started) * 1000.0
        logger.info("%s: %.3fms", resolved, elapsed_ms)
        if self._sink is not None:
            stopped_at = datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
            self._sink(TimingRecord(label=resolved, elapsed_ms=elapsed_ms, stopped_at=stopped_at))
        return elapsed_ms

    async def wrap(
        self,
        base_label: str,
        operation: Callable[[], Awaitable[T]],
        request_id: str | None = None,
    ) -> T:
        """Await ``operation()`` inside a span; failures are re-raised unchanged."""
        if not self._enabled:
            return await operation()

        label = self.start(base_label, request_id)
        try:
            return await operation()
        finally:
            self.stop(label)

    @contextmanager
    def span(self, base_label: str, request_id: str | None = None) -> Iterator[str | None]:
        """Time the body of a ``with`` block; yields the span label."""
        label = self.start(base_label, request_id)
        try:
            yield label
        finally:
            self.stop(label)

    # ------------------------------ Phase API -------------------------------

    def start_phase(self, request_timer: RequestTimer | None, name: str) -> None:
        """Start a named phase on ``request_timer`` if timing is enabled."""
        if self._enabled and request_timer is not None:
            request_timer.start_timer(name)

    def stop_phase(self, request_timer: RequestTimer | None, name: str) -> None:
        """Stop a named phase on ``request_timer`` if timing is enabled."""
        if self._enabled and request_timer is not None:
            request_timer.stop_timer(name)

    # ---------------------------- Diagnostics -------------------------------

    def active_count(self) -> int:
        """Return the number of spans currently open."""
        with self._lock:
            return len(self._active)

    def reset(self) -> None:
        """Drop every open span."""
        with self._lock:
            self._active.clear()

    def sweep(self, max_age_seconds: float) -> int:
        """
        Remove spans open for longer than ``max_age_seconds``.

        Orphans come from callers that call :meth:`start` without a matching
        :meth:`stop`. Each removed span is logged as a warning.

        Returns
        -------
        int
            Number of spans removed.
        """
        cutoff = time.perf_counter() - max_age_seconds
        with self._lock:
            orphans = [label for label, started in self._active.items() if started < cutoff]
            for label in orphans:
                del self._active[label]

        for label in orphans:
            logger.warning("Swept orphaned timer %s", label)
        return len(orphans)


__all__ = ["RequestTimer", "TimingRegistry", "TimingSink", "make_label"]
