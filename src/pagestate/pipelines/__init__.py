"""Pipeline entry points for pagestate.

Currently exposed:

- :class:`StateAssembler`: ``hydrate(url, ...)`` from URL to snapshot,
  implemented in ``hydrate.py``.
- :class:`ContentAggregator`: the content fetch for one page intent.
- :func:`clean_state`: the default normalization pass.
"""

from __future__ import annotations

from .aggregator import AggregateResult, ContentAggregator
from .cleaner import StateCleaner, clean_state
from .hydrate import HydrationError, StateAssembler
from .steps import StepPolicy, run_step

__all__ = [
    "AggregateResult",
    "ContentAggregator",
    "HydrationError",
    "StateAssembler",
    "StateCleaner",
    "StepPolicy",
    "clean_state",
    "run_step",
]
