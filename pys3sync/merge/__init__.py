"""Merge engine for pys3sync - assemble one object from many."""

from .engine import MergeEngine
from .plan import MergeOptions, MergeOutcome, MergePath, MergePlan, MergeSource

__all__ = [
    "MergeEngine",
    "MergeOptions",
    "MergeOutcome",
    "MergePath",
    "MergePlan",
    "MergeSource",
]
