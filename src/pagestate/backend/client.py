# -----------------------------------------------------------------------------
# Async JSON-RPC client for the content backend.
#
# Every hydration fetch goes through `BackendClient.call()`, which POSTs a
# JSON-RPC 2.0 envelope to the configured node and returns the `result`
# member. Failures are split into two families so callers can react to them
# differently:
#
#   - NetworkError : nothing usable came back (connect error, timeout, ...).
#                    The hydrator answers these by resetting the endpoint.
#   - RemoteError  : the node answered with an error status or JSON-RPC error.
#
# No retry or backoff happens here; each call is a single attempt. Tests pass
# an `httpx.MockTransport` as `transport` so no real network I/O is made.
# -----------------------------------------------------------------------------
from __future__ import annotations

import itertools
import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx

from pagestate.core.settings import Settings, get_logger, load_settings

from .errors import NetworkError, RemoteError

#: Namespace of the read-only "bridge" API serving posts, profiles, communities.
BRIDGE_PREFIX = "bridge."

logger = get_logger(__name__)


@dataclass(slots=True)
class BackendClient:
    """Single-attempt JSON-RPC client over ``httpx.AsyncClient``.

    Parameters
    ----------
    url:
        JSON-RPC endpoint currently in use.
    default_url:
        Endpoint restored by :meth:`reset_endpoint`. Defaults to ``url``.
    timeout_seconds:
        Transport timeout for each call.
    transport:
        Optional ``httpx`` transport; the seam used by tests.
    """

    url: str
    default_url: str | None = None
    timeout_seconds: float = 15.0
    transport: httpx.AsyncBaseTransport | None = None
    _ids: itertools.count[int] = field(
        init=False, repr=False, default_factory=lambda: itertools.count(1)
    )

    def __post_init__(self) -> None:
        if self.default_url is None:
            self.default_url = self.url

    # --------------------------------------------------------------------- #
    # Constructors
    # --------------------------------------------------------------------- #
    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> BackendClient:
        """Build a client from ``BACKEND_URL`` / ``BACKEND_DEFAULT_URL`` / timeout."""
        cfg = settings if settings is not None else load_settings()
        return cls(
            url=cfg.backend_url,
            default_url=cfg.fallback_backend_url,
            timeout_seconds=cfg.backend_timeout_seconds,
            transport=transport,
        )

    # --------------------------------------------------------------------- #
    # Public API
    # --------------------------------------------------------------------- #
    async def call(self, method: str, params: Mapping[str, Any] | Sequence[Any]) -> Any:
        """Invoke ``method`` with ``params`` and return the JSON-RPC result.

        Raises
        ------
        NetworkError
            If the request could not be sent or no response arrived in time.
        RemoteError
            If the backend answered with a non-200 status, a body that is not
            a JSON-RPC response, or an ``error`` member.
        """
        payload: dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self.transport
            ) as client:
                resp = await client.post(self.url, json=payload)
        except httpx.TransportError as exc:
            self._log_failure(method, params, exc)
            raise NetworkError(f"Network request failed: {exc}", method=method) from exc

        if resp.status_code != 200:
            error = RemoteError(
                f"Backend HTTP error {resp.status_code}: {resp.text[:200]!r}",
                method=method,
                code=resp.status_code,
            )
            self._log_failure(method, params, error)
            raise error

        try:
            data = resp.json()
        except ValueError as exc:
            self._log_failure(method, params, exc)
            raise RemoteError("Failed to decode backend response as JSON", method=method) from exc

        if not isinstance(data, dict):
            error = RemoteError("Backend response is not a JSON-RPC object", method=method)
            self._log_failure(method, params, error)
            raise error

        rpc_error = data.get("error")
        if rpc_error is not None:
            error = self._remote_error(method, rpc_error)
            self._log_failure(method, params, error)
            raise error

        if "result" not in data:
            error = RemoteError("Backend response has no result member", method=method)
            self._log_failure(method, params, error)
            raise error

        return data["result"]

    async def call_bridge(
        self, method: str, params: Mapping[str, Any], prefix: str = BRIDGE_PREFIX
    ) -> Any:
        """Call ``method`` on the bridge API (``bridge.<method>``)."""
        return await self.call(prefix + method, params)

    async def get_dynamic_global_properties(self) -> dict[str, Any]:
        """Return the chain's dynamic global properties (head block, supply, ...)."""
        result = await self.call("condenser_api.get_dynamic_global_properties", [])
        if not isinstance(result, dict):
            raise RemoteError(
                "Dynamic global properties payload is not an object",
                method="condenser_api.get_dynamic_global_properties",
            )
        return result

    def reset_endpoint(self) -> None:
        """Point the client back at :attr:`default_url`.

        This is the default endpoint-reset hook handed to the hydrator; it is
        invoked after a :class:`NetworkError`.
        """
        if self.default_url and self.url != self.default_url:
            logger.warning("Resetting backend endpoint %s -> %s", self.url, self.default_url)
            self.url = self.default_url

    # --------------------------------------------------------------------- #
    # Internal helpers
    # --------------------------------------------------------------------- #
    @staticmethod
    def _remote_error(method: str, rpc_error: Any) -> RemoteError:
        """Build a :class:`RemoteError` from a JSON-RPC ``error`` member."""
        if isinstance(rpc_error, Mapping):
            code = rpc_error.get("code")
            message = str(rpc_error.get("message") or "Unknown backend error")
            return RemoteError(
                message,
                method=method,
                code=code if isinstance(code, int) else None,
                data=rpc_error.get("data"),
            )
        return RemoteError(str(rpc_error), method=method)

    @staticmethod
    def _log_failure(method: str, params: Any, error: BaseException) -> None:
        logger.error(
            "backend call failed: %s",
            json.dumps(
                {"method": method, "params": params, "error": repr(error)},
                default=str,
            )[:1000],
        )


__all__ = ["BackendClient", "BRIDGE_PREFIX"]
