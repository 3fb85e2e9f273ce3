"""
Core utilities module.

Provides shared utility functions used across all layers.
"""

from chatrelay.core.utils.session_ids import resolve_session_id
from chatrelay.core.utils.time import utc_now

__all__ = ["resolve_session_id", "utc_now"]
