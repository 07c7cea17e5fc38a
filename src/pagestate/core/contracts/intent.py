"""PageIntent: the classified meaning of a page URL.

A closed sum type over four variants, discriminated by ``page``:

- :class:`PostsIntent`   : a ranked listing (``/hot/funny-cats``).
- :class:`AccountIntent` : an account tab (``/@alice/comments``).
- :class:`ThreadIntent`  : a single discussion (``/funny-cats/@alice/abc123``).
- :class:`NoIntent`      : anything the hydrator does not handle.

Every variant exposes the same four fields (``page``, ``tag``, ``sort``,
``key``) so callers that only need a flat view can read them uniformly, while
the aggregator and assembler dispatch on the concrete class.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

PageKind = Literal["posts", "account", "thread", "none"]


class _IntentBase(BaseModel):
    """Fields shared by every intent variant; instances are immutable."""

    model_config = ConfigDict(frozen=True)

    page: PageKind
    tag: str | None = None
    sort: str | None = None
    key: tuple[str, str] | None = None

    @property
    def acting_account(self) -> str | None:
        """Account the page is about, without the leading ``@``."""
        if self.tag and self.tag.startswith("@"):
            return self.tag[1:]
        return None


class PostsIntent(_IntentBase):
    """Ranked posts for ``tag`` (empty string means all tags) under ``sort``."""

    page: Literal["posts"] = "posts"
    tag: str
    sort: str


class AccountIntent(_IntentBase):
    """Posts of the ``@account`` in ``tag`` under the account tab ``sort``."""

    page: Literal["account"] = "account"
    tag: str
    sort: str

    @property
    def account(self) -> str:
        return self.tag[1:]


class ThreadIntent(_IntentBase):
    """One discussion; ``key`` is ``("@author", "permlink")``."""

    page: Literal["thread"] = "thread"
    tag: str
    key: tuple[str, str]

    @property
    def author(self) -> str:
        return self.key[0][1:]

    @property
    def permlink(self) -> str:
        return self.key[1]

    @property
    def acting_account(self) -> str | None:
        return super().acting_account or self.author


class NoIntent(_IntentBase):
    """Unrecognized path; ``tag`` is kept for account sub-pages like settings."""

    page: Literal["none"] = "none"


PageIntent = Annotated[
    PostsIntent | AccountIntent | ThreadIntent | NoIntent,
    Field(discriminator="page"),
]


__all__ = [
    "PageKind",
    "PageIntent",
    "PostsIntent",
    "AccountIntent",
    "ThreadIntent",
    "NoIntent",
]
