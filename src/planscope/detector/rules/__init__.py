"""
Built-in warning rules.

Importing this package registers every rule with the global registry.
"""

from planscope.detector.rules.base import Rule
from planscope.detector.rules.seq_scan import LargeSeqScan
from planscope.detector.rules.estimate_mismatch import EstimateMismatch
from planscope.detector.rules.nested_loop import HotNestedLoop
from planscope.detector.rules.spilling import DiskSort, HashSpill
from planscope.detector.rules.over_filtering import OverFiltering
from planscope.detector.rules.buffer_cache import LowCacheHit
from planscope.detector.rules.parallel_shortfall import ParallelShortfall
from planscope.detector.rules.lossy_bitmap import LossyBitmap

__all__ = [
    "Rule",
    "LargeSeqScan",
    "EstimateMismatch",
    "HotNestedLoop",
    "DiskSort",
    "HashSpill",
    "OverFiltering",
    "LowCacheHit",
    "ParallelShortfall",
    "LossyBitmap",
]
