"""StateSnapshot: the aggregate handed back by a single hydration.

The snapshot mirrors the client store layout the renderer expects::

    {
      "accounts": {},
      "community": {"hive-123": {...}},
      "content": {"alice/abc123": {...}},
      "discussion_idx": {"funny-cats": {"hot": ["alice/abc123", ...]}},
      "profiles": {"alice": {...}},
      "topics": [...]            # full render mode only
    }

Records coming back from the backend are semi-structured, so they are kept
as plain mappings rather than modelled field by field.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

ContentRecord = dict[str, Any]
DiscussionIndex = dict[str, dict[str, list[str]]]


def content_key(record: ContentRecord) -> str:
    """Return the ``author/permlink`` key identifying a post or comment."""
    return f"{record['author']}/{record['permlink']}"


class StateSnapshot(BaseModel):
    """Normalized page state for one request. Frozen once built."""

    model_config = ConfigDict(frozen=True)

    accounts: dict[str, Any] = Field(default_factory=dict)
    community: dict[str, Any] = Field(default_factory=dict)
    content: dict[str, Any] = Field(default_factory=dict)
    discussion_idx: DiscussionIndex = Field(default_factory=dict)
    profiles: dict[str, Any] = Field(default_factory=dict)
    topics: list[Any] | None = Field(
        default=None,
        description="Trending topics; only populated in full render mode.",
    )

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-safe dict, omitting ``topics`` when it was not fetched."""
        payload = self.model_dump()
        if payload["topics"] is None:
            del payload["topics"]
        return payload


__all__ = ["ContentRecord", "DiscussionIndex", "StateSnapshot", "content_key"]
