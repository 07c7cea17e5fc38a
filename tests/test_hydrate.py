"""
Tests for the state assembler (``StateAssembler.hydrate``).

Scope
-----
1.  **Page types**: posts, account, thread and unrecognized pages.
2.  **Step policies**: community/profile failures degrade gracefully; content,
    topics and normalization failures abort with ``HydrationError``.
3.  **Endpoint reset**: a ``NetworkError`` invokes the hook exactly once.
4.  **Instrumentation**: every span is closed, per request, even on failure.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

import pytest
from conftest import FakeBridge, post

from pagestate.backend.errors import NetworkError, RemoteError
from pagestate.core.contracts.state import StateSnapshot
from pagestate.core.timing.registry import RequestTimer, TimingRegistry
from pagestate.core.timing.trace import TimingRecord
from pagestate.pipelines.cleaner import clean_state
from pagestate.pipelines.hydrate import (
    TRENDING_TOPICS_LIMIT,
    HydrationError,
    StateAssembler,
    is_community,
)

TOPICS = [["hive-100", "Photography"], ["hive-200", "Cats"]]


class ResetHook:
    """Counts endpoint-reset invocations."""

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> None:
        self.calls += 1


def _assembler(
    bridge: FakeBridge,
    timing: TimingRegistry,
    hook: ResetHook | None = None,
    cleaner: Callable[[StateSnapshot], StateSnapshot] = clean_state,
) -> StateAssembler:
    return StateAssembler(bridge, timing, cleaner=cleaner, on_network_error=hook)


# --------------------------------------------------------------------------- #
# Page types
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_posts_page_lite_mode(timing: TimingRegistry) -> None:
    bridge = FakeBridge({"get_ranked_posts": [post("alice", "a"), post("bob", "b")]})

    snapshot = await _assembler(bridge, timing).hydrate("/hot/funny-cats", "carol", False, "r1")

    assert bridge.methods() == ["get_ranked_posts"]
    assert list(snapshot.content) == ["alice/a", "bob/b"]
    assert snapshot.discussion_idx == {"funny-cats": {"hot": ["alice/a", "bob/b"]}}
    assert snapshot.community == {} and snapshot.profiles == {} and snapshot.accounts == {}
    assert snapshot.topics is None
    assert "topics" not in snapshot.to_payload()


@pytest.mark.asyncio
async def test_unrecognized_page_is_empty_and_does_not_fail(timing: TimingRegistry) -> None:
    bridge = FakeBridge()

    snapshot = await _assembler(bridge, timing).hydrate("/@alice/settings", None, False, "r1")

    assert snapshot.content == {}
    assert snapshot.discussion_idx == {}
    assert bridge.calls == []


@pytest.mark.asyncio
async def test_unrecognized_page_full_render_only_fetches_topics(timing: TimingRegistry) -> None:
    bridge = FakeBridge({"get_trending_topics": TOPICS})

    snapshot = await _assembler(bridge, timing).hydrate("/a/b/c/d", None, True, "r1")

    assert bridge.calls == [("get_trending_topics", {"limit": TRENDING_TOPICS_LIMIT})]
    assert snapshot.content == {}
    assert snapshot.topics == TOPICS


@pytest.mark.asyncio
async def test_account_page_full_render(timing: TimingRegistry) -> None:
    bridge = FakeBridge(
        {
            "get_account_posts": [post("alice", "a")],
            "get_profile": {"name": "alice", "reputation": 70},
            "get_trending_topics": TOPICS,
        }
    )

    snapshot = await _assembler(bridge, timing).hydrate("/@alice/feed", "carol", True, "r1")

    assert bridge.methods() == ["get_account_posts", "get_profile", "get_trending_topics"]
    assert bridge.calls[1] == ("get_profile", {"account": "alice"})
    assert snapshot.discussion_idx == {"@alice": {"feed": ["alice/a"]}}
    assert snapshot.profiles == {"alice": {"name": "alice", "reputation": 70}}
    assert snapshot.topics == TOPICS


@pytest.mark.asyncio
async def test_thread_page_full_render_loads_author_profile(timing: TimingRegistry) -> None:
    discussion = {"alice/abc123": post("alice", "abc123")}
    bridge = FakeBridge(
        {
            "get_discussion": discussion,
            "get_profile": {"name": "alice"},
            "get_trending_topics": TOPICS,
        }
    )

    snapshot = await _assembler(bridge, timing).hydrate(
        "/funny-cats/@alice/abc123", None, True, "r1"
    )

    assert bridge.calls[0] == ("get_discussion", {"author": "alice", "permlink": "abc123"})
    assert snapshot.content == discussion
    assert snapshot.discussion_idx == {}
    assert snapshot.profiles == {"alice": {"name": "alice"}}


@pytest.mark.asyncio
async def test_empty_observer_is_normalized_to_none(timing: TimingRegistry) -> None:
    bridge = FakeBridge({"get_ranked_posts": []})

    await _assembler(bridge, timing).hydrate("/trending", "", False, "r1")

    assert bridge.calls == [
        ("get_ranked_posts", {"sort": "trending", "tag": "", "observer": None})
    ]


# --------------------------------------------------------------------------- #
# Community (best effort)
# --------------------------------------------------------------------------- #


def test_is_community() -> None:
    assert is_community("hive-123456")
    assert not is_community("hive-abc")
    assert not is_community("photography")
    assert not is_community("@alice")
    assert not is_community(None)


@pytest.mark.asyncio
async def test_community_metadata_attached(timing: TimingRegistry) -> None:
    info = {"name": "hive-123", "title": "Cats"}
    bridge = FakeBridge({"get_ranked_posts": [], "get_community": info})

    snapshot = await _assembler(bridge, timing).hydrate("/created/hive-123", "carol", False, "r1")

    assert ("get_community", {"name": "hive-123", "observer": "carol"}) in bridge.calls
    assert snapshot.community == {"hive-123": info}


@pytest.mark.asyncio
async def test_community_failure_is_swallowed(timing: TimingRegistry) -> None:
    bridge = FakeBridge(
        {"get_ranked_posts": [post("alice", "a")], "get_community": RemoteError("gone")}
    )
    hook = ResetHook()

    snapshot = await _assembler(bridge, timing, hook).hydrate("/hot/hive-123", None, False, "r1")

    assert snapshot.community == {}
    assert list(snapshot.content) == ["alice/a"]
    assert hook.calls == 0
    assert timing.active_count() == 0


@pytest.mark.asyncio
async def test_community_network_error_resets_endpoint_but_succeeds(
    timing: TimingRegistry,
) -> None:
    bridge = FakeBridge({"get_ranked_posts": [], "get_community": NetworkError("timeout")})
    hook = ResetHook()

    snapshot = await _assembler(bridge, timing, hook).hydrate("/hot/hive-123", None, False, "r1")

    assert snapshot.community == {}
    assert hook.calls == 1


# --------------------------------------------------------------------------- #
# Profile (best effort)
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_profile_failure_is_swallowed(timing: TimingRegistry) -> None:
    bridge = FakeBridge(
        {
            "get_account_posts": [],
            "get_profile": RemoteError("unknown account"),
            "get_trending_topics": TOPICS,
        }
    )

    snapshot = await _assembler(bridge, timing).hydrate("/@ghost", None, True, "r1")

    assert snapshot.profiles == {}
    assert snapshot.topics == TOPICS


@pytest.mark.asyncio
@pytest.mark.parametrize("profile", [None, {}, {"reputation": 1}, {"name": ""}, ["alice"]])
async def test_malformed_profile_is_dropped_and_logged(
    timing: TimingRegistry,
    profile: Any,
    capture_logs: Callable[[str], None],
    caplog: pytest.LogCaptureFixture,
) -> None:
    capture_logs("pagestate.pipelines.hydrate")
    bridge = FakeBridge(
        {"get_account_posts": [], "get_profile": profile, "get_trending_topics": TOPICS}
    )

    snapshot = await _assembler(bridge, timing).hydrate("/@alice", None, True, "r1")

    assert snapshot.profiles == {}
    assert any(
        r.levelno == logging.WARNING and "malformed profile" in r.getMessage()
        for r in caplog.records
    )


@pytest.mark.asyncio
async def test_profile_skipped_in_lite_mode(timing: TimingRegistry) -> None:
    bridge = FakeBridge({"get_account_posts": []})

    await _assembler(bridge, timing).hydrate("/@alice", None, False, "r1")

    assert bridge.methods() == ["get_account_posts"]


# --------------------------------------------------------------------------- #
# Required steps
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_network_error_in_content_fails_and_resets_once(timing: TimingRegistry) -> None:
    failure = NetworkError("Network request failed")
    bridge = FakeBridge({"get_ranked_posts": failure})
    hook = ResetHook()

    with pytest.raises(HydrationError) as excinfo:
        await _assembler(bridge, timing, hook).hydrate("/hot/funny-cats", None, True, "r9")

    assert hook.calls == 1
    assert excinfo.value.cause is failure
    assert excinfo.value.__cause__ is failure
    assert excinfo.value.url == "/hot/funny-cats"
    assert excinfo.value.request_id == "r9"
    # Later steps never ran.
    assert bridge.methods() == ["get_ranked_posts"]
    assert timing.active_count() == 0


@pytest.mark.asyncio
async def test_remote_error_in_content_fails_without_reset(timing: TimingRegistry) -> None:
    bridge = FakeBridge({"get_discussion": RemoteError("post not found")})
    hook = ResetHook()

    with pytest.raises(HydrationError) as excinfo:
        await _assembler(bridge, timing, hook).hydrate("/x/@alice/missing", None, False, "r1")

    assert isinstance(excinfo.value.cause, RemoteError)
    assert hook.calls == 0


@pytest.mark.asyncio
async def test_topics_failure_is_propagated(timing: TimingRegistry) -> None:
    bridge = FakeBridge(
        {"get_ranked_posts": [], "get_trending_topics": RemoteError("topics unavailable")}
    )

    with pytest.raises(HydrationError) as excinfo:
        await _assembler(bridge, timing).hydrate("/trending", None, True, "r1")

    assert isinstance(excinfo.value.cause, RemoteError)
    assert timing.active_count() == 0


@pytest.mark.asyncio
async def test_failure_is_logged_with_context(
    timing: TimingRegistry,
    capture_logs: Callable[[str], None],
    caplog: pytest.LogCaptureFixture,
) -> None:
    capture_logs("pagestate.pipelines.hydrate")
    bridge = FakeBridge({"get_ranked_posts": RemoteError("boom")})

    with pytest.raises(HydrationError):
        await _assembler(bridge, timing).hydrate("/hot/x", None, False, "req-log")

    errors = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
    assert len(errors) == 1
    assert '"url": "/hot/x"' in errors[0]
    assert '"request_id": "req-log"' in errors[0]


# --------------------------------------------------------------------------- #
# Normalization
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_injected_cleaner_is_applied_last(timing: TimingRegistry) -> None:
    seen: list[StateSnapshot] = []

    def cleaner(snapshot: StateSnapshot) -> StateSnapshot:
        seen.append(snapshot)
        return snapshot.model_copy(update={"accounts": {"alice": {"name": "alice"}}})

    bridge = FakeBridge({"get_ranked_posts": [post("alice", "a")]})
    snapshot = await _assembler(bridge, timing, cleaner=cleaner).hydrate("/hot", None, False)

    assert len(seen) == 1 and list(seen[0].content) == ["alice/a"]
    assert snapshot.accounts == {"alice": {"name": "alice"}}


@pytest.mark.asyncio
async def test_cleaner_failure_is_propagated(timing: TimingRegistry) -> None:
    def cleaner(snapshot: StateSnapshot) -> StateSnapshot:
        raise TypeError("unexpected shape")

    bridge = FakeBridge({"get_ranked_posts": []})
    with pytest.raises(HydrationError) as excinfo:
        await _assembler(bridge, timing, cleaner=cleaner).hydrate("/hot", None, False, "r1")

    assert isinstance(excinfo.value.cause, TypeError)


def test_clean_state_drops_malformed_entries() -> None:
    snapshot = StateSnapshot(
        content={"alice/a": post("alice", "a"), "bob/b": "not a record"},
        discussion_idx={"cats": {"hot": ["alice/a", "bob/b", "carol/c"]}},
        community={"hive-1": {"title": "Cats"}, "hive-2": None},
    )

    cleaned = clean_state(snapshot)

    assert list(cleaned.content) == ["alice/a"]
    assert cleaned.discussion_idx == {"cats": {"hot": ["alice/a"]}}
    assert cleaned.community == {"hive-1": {"title": "Cats"}}
    # The input snapshot is untouched.
    assert "bob/b" in snapshot.content
    assert snapshot.community["hive-2"] is None


# --------------------------------------------------------------------------- #
# Instrumentation
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio
async def test_every_step_is_timed_per_request(
    timing: TimingRegistry, records: list[TimingRecord]
) -> None:
    bridge = FakeBridge(
        {
            "get_ranked_posts": [post("alice", "a")],
            "get_community": {"title": "Cats"},
            "get_trending_topics": TOPICS,
        }
    )

    await _assembler(bridge, timing).hydrate("/hot/hive-1", None, True, "r1")

    assert [r.label for r in records] == [
        "get_ranked_posts_hot_hive-1_r1",
        "load_posts_hot_hive-1_r1",
        "get_community_hive-1_r1",
        "get_trending_topics_r1",
        "state_cleaner_r1",
    ]
    assert timing.active_count() == 0


@pytest.mark.asyncio
async def test_request_timer_records_hydrate_phase(timing: TimingRegistry) -> None:
    bridge = FakeBridge({"get_ranked_posts": []})
    request_timer = RequestTimer()

    await _assembler(bridge, timing).hydrate(
        "/hot", None, False, "r1", request_timer=request_timer
    )

    assert "hydrate_ms" in request_timer.durations()


@pytest.mark.asyncio
async def test_disabled_timing_leaves_registry_empty() -> None:
    timing = TimingRegistry(enabled=False)
    bridge = FakeBridge({"get_ranked_posts": [], "get_trending_topics": TOPICS})

    await _assembler(bridge, timing).hydrate("/hot/hive-1", None, True, "r1")

    assert timing.active_count() == 0


@pytest.mark.asyncio
async def test_concurrent_hydrations_do_not_interfere(timing: TimingRegistry) -> None:
    def listing(params: Mapping[str, Any]) -> list[dict[str, Any]]:
        return [post(f"author-{params['tag']}", "p1")]

    bridge = FakeBridge({"get_ranked_posts": listing})
    assembler = _assembler(bridge, timing)

    async def one(i: int) -> StateSnapshot:
        await asyncio.sleep(0)
        return await assembler.hydrate(f"/hot/tag{i}", None, False, f"req-{i}")

    snapshots = await asyncio.gather(*(one(i) for i in range(20)))

    for i, snapshot in enumerate(snapshots):
        assert snapshot.discussion_idx == {f"tag{i}": {"hot": [f"author-tag{i}/p1"]}}
    assert timing.active_count() == 0
