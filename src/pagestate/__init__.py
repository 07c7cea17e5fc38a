"""pagestate: request-scoped page state hydration with per-request timing.

The package turns a page URL into a normalized state snapshot by classifying
the path, fetching the implied backend records, and merging them.
"""

from __future__ import annotations

__all__ = ["__version__"]
__version__ = "0.3.0"
