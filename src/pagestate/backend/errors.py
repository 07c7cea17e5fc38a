"""Backend failure taxonomy.

- :class:`NetworkError`: the request never produced a usable HTTP exchange
  (connection refused, DNS, timeout). Callers react by resetting the endpoint.
- :class:`RemoteError`: the backend answered, but with an error: a non-200
  status, an undecodable body, or a JSON-RPC ``error`` member.
"""

from __future__ import annotations

from typing import Any


class BackendError(RuntimeError):
    """Base class for every failure raised by :class:`BackendClient`."""

    def __init__(self, message: str, *, method: str | None = None) -> None:
        super().__init__(message)
        self.method = method


class NetworkError(BackendError):
    """Transport-level failure reaching the backend."""


class RemoteError(BackendError):
    """Application-level error reported by the backend."""

    def __init__(
        self,
        message: str,
        *,
        method: str | None = None,
        code: int | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(message, method=method)
        self.code = code
        self.data = data


__all__ = ["BackendError", "NetworkError", "RemoteError"]
