"""
Abstract interface for Solana ledger access.

Defines the contract for ledger access that all gateway adapters must implement.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence, Union

from solders.pubkey import Pubkey

from solbatch.config import Commitment


@dataclass(frozen=True)
class Checkpoint:
    """Recent blockhash a transaction is built against."""
    blockhash: str
    last_valid_block_height: int


@dataclass(frozen=True)
class TokenAmount:
    """Raw token balance of a token account."""
    amount: int
    decimals: int

    @property
    def ui_amount(self) -> Decimal:
        """Get the amount in whole tokens."""
        return Decimal(self.amount).scaleb(-self.decimals)


class LedgerGateway(ABC):
    """
    Abstract interface for ledger access.

    This interface defines every ledger operation the batcher needs:
    - Native balance queries
    - Token account lookup and balance queries
    - Latest blockhash
    - Transaction submission and confirmation

    Implementations must be safe to call concurrently from many tasks.
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to the RPC.

        Raises:
            NodeConnectionError: If connection cannot be established
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the RPC."""
        pass

    @abstractmethod
    async def get_balance(self, address: Pubkey) -> int:
        """
        Get the native balance of an account.

        Args:
            address: Account to query

        Returns:
            Balance in lamports
        """
        pass

    @abstractmethod
    async def get_latest_checkpoint(self) -> Checkpoint:
        """
        Get the latest blockhash.

        Returns:
            Blockhash and the last block height it stays valid for
        """
        pass

    @abstractmethod
    async def submit_transaction(
        self,
        raw_tx: bytes,
        commitment: Optional[Commitment] = None,
        last_valid_block_height: Optional[int] = None,
    ) -> str:
        """
        Submit a signed transaction and wait until it reaches the commitment.

        Args:
            raw_tx: Serialized signed transaction
            commitment: Commitment to wait for (adapter default if None)
            last_valid_block_height: Stop waiting once the chain passes this height

        Returns:
            Transaction signature

        Raises:
            TransactionSubmitError: If the transaction is rejected, fails on-chain,
                expires or is not confirmed in time
        """
        pass

    @abstractmethod
    async def get_token_sub_account(
        self,
        owner: Pubkey,
        mint: Pubkey,
    ) -> Optional[Pubkey]:
        """
        Find the token account an owner holds for a mint.

        Args:
            owner: Wallet address
            mint: Token mint address

        Returns:
            Address of the first matching token account, None if there is none
        """
        pass

    @abstractmethod
    async def get_token_balance(self, token_account: Pubkey) -> TokenAmount:
        """
        Get the balance of a token account.

        Args:
            token_account: Token account address

        Returns:
            Raw amount and mint decimals
        """
        pass

    async def submit_transactions(
        self,
        raw_txs: Sequence[bytes],
        commitment: Optional[Commitment] = None,
        last_valid_block_height: Optional[int] = None,
    ) -> List[Union[str, Exception]]:
        """
        Submit several transactions concurrently and wait for all of them.

        Args:
            raw_txs: Serialized signed transactions
            commitment: Commitment to wait for
            last_valid_block_height: Expiry height shared by the transactions

        Returns:
            Signature or the raised gateway error, aligned with raw_txs
        """
        results: List[Union[str, Exception]] = [None] * len(raw_txs)

        async def submit_one(index: int, raw_tx: bytes) -> None:
            try:
                results[index] = await self.submit_transaction(
                    raw_tx, commitment, last_valid_block_height
                )
            except (TransactionSubmitError, NodeConnectionError) as e:
                results[index] = e

        async with asyncio.TaskGroup() as tg:
            for index, raw_tx in enumerate(raw_txs):
                tg.create_task(submit_one(index, raw_tx))

        return results


class NodeConnectionError(Exception):
    """Raised when the RPC cannot be reached or answers with an error."""
    pass


class TransactionSubmitError(Exception):
    """Raised when transaction submission or confirmation fails."""

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.error_code = error_code
