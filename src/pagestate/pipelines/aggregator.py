"""
Content aggregator: backend fetches implied by a page intent.

Responsibilities
----------------
- Posts and account intents: fetch one listing (ranked posts for a tag, or
  an account's posts), then merge it into ``content`` and an ordered,
  duplicate-free ``discussion_idx[tag][sort]``.
- Thread intents: fetch one discussion tree and use it as ``content``
  directly, leaving ``discussion_idx`` empty.
- No intent: return an empty result without touching the backend.

Backend failures propagate unchanged; retries belong to the transport.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, TypedDict, assert_never

from pagestate.backend.errors import RemoteError
from pagestate.core.contracts.intent import (
    AccountIntent,
    NoIntent,
    PageIntent,
    PostsIntent,
    ThreadIntent,
)
from pagestate.core.contracts.state import ContentRecord, DiscussionIndex, content_key
from pagestate.core.timing.registry import TimingRegistry


class BridgeCaller(Protocol):
    """The slice of :class:`~pagestate.backend.client.BackendClient` used here."""

    async def call_bridge(self, method: str, params: Mapping[str, Any]) -> Any: ...


class AggregateResult(TypedDict):
    """``content`` plus ``discussion_idx`` for one page intent."""

    content: dict[str, ContentRecord]
    discussion_idx: DiscussionIndex


def empty_result() -> AggregateResult:
    return {"content": {}, "discussion_idx": {}}


def merge_posts(tag: str, sort: str, posts: Any) -> AggregateResult:
    """Merge a listing into ``content`` and ``discussion_idx[tag][sort]``.

    A post returned twice keeps its first position in the index; its record
    is overwritten, which is harmless since the key identifies the same post.
    """
    if posts is None:
        posts = []
    if not isinstance(posts, list):
        raise RemoteError(f"Expected a list of posts, got {type(posts).__name__}")

    content: dict[str, ContentRecord] = {}
    keys: list[str] = []
    seen: set[str] = set()
    for post in posts:
        key = content_key(post)
        content[key] = post
        if key not in seen:
            seen.add(key)
            keys.append(key)

    return {"content": content, "discussion_idx": {tag: {sort: keys}}}


class ContentAggregator:
    """Fetch and merge the records behind a :data:`PageIntent`."""

    def __init__(self, client: BridgeCaller, timing: TimingRegistry) -> None:
        self._client = client
        self._timing = timing

    async def load(
        self,
        intent: PageIntent,
        observer: str | None,
        request_id: str | None = None,
    ) -> AggregateResult:
        """Dispatch on the intent variant and return its content."""
        if isinstance(intent, PostsIntent | AccountIntent):
            return await self.load_posts(intent.sort, intent.tag, observer, request_id)
        if isinstance(intent, ThreadIntent):
            author, permlink = intent.key
            return await self.load_thread(author, permlink, request_id)
        if isinstance(intent, NoIntent):
            return empty_result()
        assert_never(intent)

    async def load_posts(
        self,
        sort: str,
        tag: str,
        observer: str | None,
        request_id: str | None = None,
    ) -> AggregateResult:
        """Fetch a listing: an ``@account`` tag selects the account's posts."""
        account = tag[1:] if tag.startswith("@") else None

        if account:
            account_params = {"sort": sort, "account": account, "observer": observer}
            posts = await self._timing.wrap(
                f"get_account_posts_{account}_{sort}",
                lambda: self._client.call_bridge("get_account_posts", account_params),
                request_id,
            )
        else:
            ranked_params = {"sort": sort, "tag": tag, "observer": observer}
            posts = await self._timing.wrap(
                f"get_ranked_posts_{sort}_{tag}",
                lambda: self._client.call_bridge("get_ranked_posts", ranked_params),
                request_id,
            )

        return merge_posts(tag, sort, posts)

    async def load_thread(
        self,
        account: str,
        permlink: str,
        request_id: str | None = None,
    ) -> AggregateResult:
        """Fetch the discussion rooted at ``@account/permlink``."""
        author = account[1:] if account.startswith("@") else account
        params = {"author": author, "permlink": permlink}
        discussion = await self._timing.wrap(
            f"get_discussion_{author}_{permlink}",
            lambda: self._client.call_bridge("get_discussion", params),
            request_id,
        )
        if discussion is None:
            discussion = {}
        if not isinstance(discussion, Mapping):
            raise RemoteError(
                f"Expected a discussion mapping, got {type(discussion).__name__}",
                method="bridge.get_discussion",
            )
        return {"content": dict(discussion), "discussion_idx": {}}


__all__ = [
    "AggregateResult",
    "BridgeCaller",
    "ContentAggregator",
    "empty_result",
    "merge_posts",
]
