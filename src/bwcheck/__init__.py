"""
bwcheck - Memory bandwidth allocation validation.

Tighten the allocation, run the benchmark, check the counters agree.
"""

from bwcheck.mba import MbaParams, MbaRun, run_mba_test
from bwcheck.validate import validate

__version__ = "0.1.0"
__all__ = ["MbaParams", "MbaRun", "run_mba_test", "validate", "__version__"]
