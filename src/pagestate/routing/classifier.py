"""
Route classifier: from a raw URL path to a page intent.

The classifier is a pure function. It performs no I/O and keeps no state, so
it can be used upstream for routing decisions as well as by the hydrator.

Rules
-----
After stripping the query string and one leading and trailing ``/`` (an empty
path becomes ``"trending"``), the path is split into segments and the first
matching rule wins:

==========================================  ===================================
Path shape                                  Intent
==========================================  ===================================
``<sort>``                                  posts, tag ``""``
``<sort>/<tag>``                            posts
``<tag>/@<author>/<permlink>``              thread
``@<account>``                              account, sort ``"blog"``
``@<account>/<tab>`` (known tab)            account, sort ``<tab>``
``@<account>/<other>``                      none, tag kept
anything else                               none
==========================================  ===================================
"""

from __future__ import annotations

from pagestate.core.contracts.intent import (
    AccountIntent,
    NoIntent,
    PageIntent,
    PostsIntent,
    ThreadIntent,
)

DEFAULT_SORT = "trending"

#: Listing orders understood by the backend's ranked-posts call.
SORTS: frozenset[str] = frozenset(
    {
        "trending",
        "promoted",
        "hot",
        "created",
        "payout",
        "payout_comments",
        "muted",
    }
)

#: Account tabs understood by the backend's account-posts call.
ACCOUNT_TABS: frozenset[str] = frozenset(
    {
        "blog",
        "feed",
        "posts",
        "comments",
        "replies",
        "payout",
    }
)

_ACCOUNT_DEFAULT_TAB = "blog"


def _normalize(path: str) -> str:
    """Strip the query string and one leading and trailing slash."""
    path = path.split("?", 1)[0]
    if path.startswith("/"):
        path = path[1:]
    if path.endswith("/"):
        path = path[:-1]
    return path or DEFAULT_SORT


def classify(path: str) -> PageIntent:
    """Return the :class:`PageIntent` for ``path``.

    Examples
    --------
    >>> intent = classify("hot/funny-cats")
    >>> (intent.page, intent.sort, intent.tag)
    ('posts', 'hot', 'funny-cats')
    >>> classify("/@alice/settings").page
    'none'
    """
    parts = _normalize(path).split("/")
    count = len(parts)
    first = parts[0]

    if count == 1 and first in SORTS:
        return PostsIntent(sort=first, tag="")
    if count == 2 and first in SORTS:
        return PostsIntent(sort=first, tag=parts[1])
    if count == 3 and parts[1].startswith("@"):
        return ThreadIntent(tag=first, key=(parts[1], parts[2]))
    if count == 1 and first.startswith("@"):
        return AccountIntent(sort=_ACCOUNT_DEFAULT_TAB, tag=first)
    if count == 2 and first.startswith("@"):
        if parts[1] in ACCOUNT_TABS:
            return AccountIntent(sort=parts[1], tag=first)
        # settings, followers, notifications, ...
        return NoIntent(tag=first)
    return NoIntent()


__all__ = ["classify", "SORTS", "ACCOUNT_TABS", "DEFAULT_SORT"]
