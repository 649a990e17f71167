# vtool/io/__init__.py
"""
Persisted containers: collected signals (the input of compute_stats_array)
and computed statistics (its output).
"""

from .containers import (
    CollectedSignals,
    save_collected,
    load_collected,
    save_stats,
    load_stats,
)

__all__ = [
    "CollectedSignals",
    "save_collected",
    "load_collected",
    "save_stats",
    "load_stats",
]
