"""Core package initializer for pagestate.

Holds configuration, contracts, the timing registry and the result container:
    from pagestate.core.settings import settings, load_settings, Settings, get_logger
"""

from __future__ import annotations

__all__ = ["__doc__"]
