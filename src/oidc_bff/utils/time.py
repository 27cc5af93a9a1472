"""Time helpers."""

from __future__ import annotations

import time


def epoch_seconds() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())
