"""
Transaction module.

Handles transaction construction and signing.
"""

from solbatch.tx.builder import TransactionBuilder, TransactionBuildError
from solbatch.tx.signer import SigningError, TransactionSigner

__all__ = [
    "TransactionBuilder",
    "TransactionBuildError",
    "SigningError",
    "TransactionSigner",
]
