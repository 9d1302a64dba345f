"""Burst state layer.

Holds the per-session deduplication store and the policy deciding which
of two reports for the same vessel is kept.
"""

from portais.state.aggregator import ResultAggregator
from portais.state.policy import OverwritePolicy

__all__ = ["OverwritePolicy", "ResultAggregator"]
