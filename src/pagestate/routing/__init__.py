"""URL routing helpers for pagestate.

Currently exposed:

- :func:`classify`: map a raw URL path to a :class:`PageIntent`.
"""

from __future__ import annotations

from .classifier import ACCOUNT_TABS, DEFAULT_SORT, SORTS, classify

__all__ = ["classify", "SORTS", "ACCOUNT_TABS", "DEFAULT_SORT"]
