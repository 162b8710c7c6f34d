"""
Batch engine components.

Planning transfer groups, executing them against the ledger, and
aggregating balances.
"""

from solbatch.engine.balances import (
    BalanceAggregator,
    BalanceResult,
    BalanceSummary,
    NativeAsset,
    TokenAsset,
)
from solbatch.engine.planner import BatchPlanner, SkippedWallet
from solbatch.engine.transfer import TransferEngine

__all__ = [
    "BalanceAggregator",
    "BalanceResult",
    "BalanceSummary",
    "NativeAsset",
    "TokenAsset",
    "BatchPlanner",
    "SkippedWallet",
    "TransferEngine",
]
