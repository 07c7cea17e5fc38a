"""Shared fixtures: an in-memory bridge backend and log capture helpers."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from typing import Any

import pytest

from pagestate.core.timing.registry import TimingRegistry
from pagestate.core.timing.trace import TimingRecord


class FakeBridge:
    """Stand-in for ``BackendClient`` answering bridge calls from a table.

    ``responses`` maps a bridge method name to either a value, an exception
    instance (raised), or a callable taking the params and returning a value.
    Unknown methods answer ``None``.
    """

    def __init__(self, responses: Mapping[str, Any] | None = None) -> None:
        self.responses: dict[str, Any] = dict(responses or {})
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def call_bridge(self, method: str, params: Mapping[str, Any]) -> Any:
        self.calls.append((method, dict(params)))
        value = self.responses.get(method)
        if isinstance(value, BaseException):
            raise value
        if callable(value):
            return value(params)
        return value

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]


def post(author: str, permlink: str, **extra: Any) -> dict[str, Any]:
    """Build a minimal post record as returned by the bridge API."""
    return {"author": author, "permlink": permlink, "title": f"{author} on {permlink}", **extra}


@pytest.fixture
def records() -> list[TimingRecord]:
    return []


@pytest.fixture
def timing(records: list[TimingRecord]) -> TimingRegistry:
    """An enabled registry whose stopped spans land in ``records``."""
    return TimingRegistry(enabled=True, sink=records.append)


@pytest.fixture
def capture_logs(caplog: pytest.LogCaptureFixture) -> Iterator[Callable[[str], None]]:
    """Attach ``caplog`` to a named logger.

    Package loggers do not propagate to the root logger, so the capture
    handler has to be added to them directly.
    """
    attached: list[logging.Logger] = []

    def _attach(name: str) -> None:
        logger = logging.getLogger(name)
        logger.addHandler(caplog.handler)
        attached.append(logger)

    yield _attach

    for logger in attached:
        logger.removeHandler(caplog.handler)
