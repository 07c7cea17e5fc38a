"""
Step runner shared by every hydration step.

Each step declares its failure policy instead of wrapping itself in an ad hoc
``try``/``except``:

- ``StepPolicy.REQUIRED``: a failure aborts the hydration; the exception is
  re-raised unchanged.
- ``StepPolicy.BEST_EFFORT``: a failure is logged and returned as ``Err``;
  the snapshot is assembled without that step's data.

Regardless of policy, a :class:`NetworkError` invokes the endpoint-reset hook
once, at the step where it surfaced, and every step is timed through the
registry so its span is closed on success, failure and cancellation.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TypeVar

from pagestate.backend.errors import NetworkError
from pagestate.core.result import Result, err, ok
from pagestate.core.settings import get_logger
from pagestate.core.timing.registry import TimingRegistry

T = TypeVar("T")

logger = get_logger(__name__)


class StepPolicy(str, Enum):
    """How a step's failure affects the hydration."""

    REQUIRED = "required"
    BEST_EFFORT = "best_effort"


async def run_step(
    step: str,
    operation: Callable[[], Awaitable[T]],
    *,
    policy: StepPolicy,
    timing: TimingRegistry,
    label: str,
    request_id: str | None = None,
    on_network_error: Callable[[], None] | None = None,
) -> Result[T, Exception]:
    """Run ``operation`` under ``label`` and apply ``policy`` to its failure.

    Parameters
    ----------
    step:
        Logical step name used in log lines (e.g. ``"community"``).
    operation:
        Zero-argument coroutine factory performing the step.
    policy:
        Failure policy, see :class:`StepPolicy`.
    timing:
        Registry the step reports its duration to.
    label:
        Base timer label, usually including the step's parameters.
    request_id:
        Scopes the timer label to one request.
    on_network_error:
        Endpoint-reset hook invoked when the step fails with
        :class:`NetworkError`.

    Returns
    -------
    Result[T, Exception]
        ``Ok(value)`` on success; ``Err(exc)`` for a failed best-effort step.
        Required steps never return ``Err``; they raise.
    """
    try:
        value = await timing.wrap(label, operation, request_id)
    except Exception as exc:
        if isinstance(exc, NetworkError) and on_network_error is not None:
            on_network_error()
        if policy is StepPolicy.REQUIRED:
            raise
        logger.warning(
            "best-effort step '%s' failed (request_id=%s): %r", step, request_id, exc
        )
        return err(exc)
    return ok(value)


__all__ = ["StepPolicy", "run_step"]
