"""
Solana Batch Wallets Manager

Generates wallets, funds them from one sender, consolidates SOL back into one
wallet and reads SOL and token balances, grouping transfers into as few
transactions as possible and submitting them concurrently.
"""

__version__ = "0.1.0"

from solbatch.core.batcher import TransferPlan, WalletBatcher
from solbatch.core.account import Account, AccountSet
from solbatch.core.job import BatchReport

__all__ = [
    "WalletBatcher",
    "TransferPlan",
    "Account",
    "AccountSet",
    "BatchReport",
]
