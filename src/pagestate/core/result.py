"""Typed Result container for the outcome of a best-effort hydration step.

Required steps raise; best-effort steps must not. A best-effort step instead
hands back a :class:`Result` so the caller decides, at the call site, what a
missing value means for the snapshot:

- ``Ok(value)``: the step produced ``value``.
- ``Err(error)``: the step failed with ``error`` (already logged).

Example
-------
>>> from pagestate.core.result import ok, err
>>> ok({"name": "alice"}).get_or(None)
{'name': 'alice'}
>>> err(RuntimeError("down")).get_or(None) is None
True
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar, cast

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E")


class Result(Generic[T, E]):
    """Sum type representing either success (`Ok[T]`) or failure (`Err[E]`)."""

    def is_ok(self) -> bool:
        """Return ``True`` if this is an :class:`Ok` value."""
        return isinstance(self, Ok)

    def is_err(self) -> bool:
        """Return ``True`` if this is an :class:`Err` value."""
        return isinstance(self, Err)

    def unwrap(self) -> T:
        """Return the inner value, or raise ``RuntimeError`` on ``Err``.

        The original failure is chained as ``__cause__`` when it is an
        exception, so tracebacks still point at the failing step.
        """
        if isinstance(self, Ok):
            return cast(Ok[T, E], self).value
        error = cast(Err[T, E], self).error
        if isinstance(error, BaseException):
            raise RuntimeError(f"Attempted to unwrap Err: {error!r}") from error
        raise RuntimeError(f"Attempted to unwrap Err: {error!r}")

    def unwrap_err(self) -> E:
        """Return the error value if ``Err``, else raise."""
        if isinstance(self, Err):
            return cast(Err[T, E], self).error
        raise RuntimeError(f"Attempted to unwrap_err on Ok: {self!r}")

    def get_or(self, default: U) -> T | U:
        """Return the success value, or ``default`` when this is ``Err``."""
        if isinstance(self, Ok):
            return cast(Ok[T, E], self).value
        return default

    def map(self, fn: Callable[[T], U]) -> Result[U, E]:
        """Apply ``fn`` to the success value; propagate the error unchanged."""
        if isinstance(self, Ok):
            return Ok(fn(cast(Ok[T, E], self).value))
        return cast(Result[U, E], self)


@dataclass(frozen=True)
class Ok(Result[T, E]):
    """Successful result wrapping a value of type ``T``."""

    value: T


@dataclass(frozen=True)
class Err(Result[T, E]):
    """Failed result wrapping an error payload of type ``E``."""

    error: E


def ok(value: T) -> Result[T, E]:
    """Construct :class:`Ok` with better type inference at call sites."""
    return Ok(value)


def err(error: E) -> Result[T, E]:
    """Construct :class:`Err` with better type inference at call sites."""
    return Err(error)


__all__ = ["Result", "Ok", "Err", "ok", "err"]
