"""
Core batcher components.

This module contains the account, transfer and report models and the
WalletBatcher orchestrator.
"""

from solbatch.core.account import Account, AccountSet
from solbatch.core.errors import InsufficientBalanceError, InvalidInputError
from solbatch.core.job import BatchReport, FailedGroup, JobStatus, TransactionJob
from solbatch.core.transfer import FeePayerPolicy, TransferGroup, TransferIntent
from solbatch.core.batcher import TransferPlan, WalletBatcher

__all__ = [
    "Account",
    "AccountSet",
    "InsufficientBalanceError",
    "InvalidInputError",
    "BatchReport",
    "FailedGroup",
    "JobStatus",
    "TransactionJob",
    "FeePayerPolicy",
    "TransferGroup",
    "TransferIntent",
    "TransferPlan",
    "WalletBatcher",
]
