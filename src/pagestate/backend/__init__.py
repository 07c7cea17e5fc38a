from __future__ import annotations

from .client import BRIDGE_PREFIX, BackendClient
from .errors import BackendError, NetworkError, RemoteError

__all__ = [
    "BackendClient",
    "BRIDGE_PREFIX",
    "BackendError",
    "NetworkError",
    "RemoteError",
]
