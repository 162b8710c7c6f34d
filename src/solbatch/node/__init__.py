"""
Ledger Integration Layer.

Provides abstracted access to Solana balances, blockhashes and transaction submission.
"""

from solbatch.node.interface import (
    Checkpoint,
    LedgerGateway,
    NodeConnectionError,
    TokenAmount,
    TransactionSubmitError,
)
from solbatch.node.rpc import SolanaRpcAdapter

__all__ = [
    "Checkpoint",
    "LedgerGateway",
    "NodeConnectionError",
    "TokenAmount",
    "TransactionSubmitError",
    "SolanaRpcAdapter",
]
