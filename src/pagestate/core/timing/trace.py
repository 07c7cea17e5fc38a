"""
Timing record definition.

This module defines the immutable record emitted each time a timer span is
stopped. It lives apart from ``registry.py`` so sinks (log shippers, the CLI
table, tests) can import it without pulling in the registry.

Design Notes
------------
- **Immutability**: a record describes something that already happened, so it
  is ``frozen=True``.
- **Serialization**: ``stopped_at`` is an ISO-8601 string rather than a
  ``datetime`` so sinks can dump records to JSON without a custom encoder.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TimingRecord:
    """
    Immutable record of one completed timer span.

    Attributes
    ----------
    label : str
        Unique span label, e.g. ``"get_ranked_posts_hot_funny-cats_req-42"``.
    elapsed_ms : float
        Wall-clock duration between start and stop, in milliseconds.
    stopped_at : str
        UTC timestamp of the stop, e.g. ``"2026-10-19T10:00:00.123000Z"``.
    """

    label: str
    elapsed_ms: float
    stopped_at: str
