"""
Small time helpers shared across modules.
"""

from __future__ import annotations

import time


def now_ms() -> int:
    """Wall-clock time in integer milliseconds."""
    return int(time.time() * 1000)


def elapsed_ms(start: float) -> float:
    """Milliseconds elapsed since a time.perf_counter() reading."""
    return (time.perf_counter() - start) * 1000.0
