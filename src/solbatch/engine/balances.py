"""
Balance Aggregator - reads balances for many accounts at once.

Issues one query per account concurrently. A failing account is recorded as
an error result and never aborts its siblings.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional, Sequence, Union

import structlog
from solders.pubkey import Pubkey

from solbatch.core.account import Account
from solbatch.node.interface import LedgerGateway, NodeConnectionError

logger = structlog.get_logger(__name__)

SOL_DECIMALS = 9


@dataclass(frozen=True)
class NativeAsset:
    """Query native SOL balances."""
    pass


@dataclass(frozen=True)
class TokenAsset:
    """Query balances of one token mint."""
    mint: Pubkey


AssetFilter = Union[NativeAsset, TokenAsset]


@dataclass(frozen=True)
class Balance:
    """
    Balance of one account.

    Attributes:
        account: Account queried
        amount: Raw amount (lamports or token base units)
        decimals: Decimals of the asset
        token_account: Token account holding the balance (token queries only)
    """

    account: Account
    amount: int
    decimals: int = SOL_DECIMALS
    token_account: Optional[Pubkey] = None

    @property
    def ui_amount(self) -> Decimal:
        """Get the amount in whole units."""
        return Decimal(self.amount).scaleb(-self.decimals)


@dataclass(frozen=True)
class BalanceResult:
    """Outcome of one balance query."""

    account: Account
    balance: Optional[Balance] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.balance is not None


@dataclass(frozen=True)
class BalanceSummary:
    """
    Balances of a set of accounts.

    Attributes:
        results: One result per account, in input order
        total: Sum of the successful raw amounts
        failed_count: Number of accounts whose query failed
        decimals: Decimals used to render the total
    """

    results: tuple
    total: int
    failed_count: int
    decimals: int = SOL_DECIMALS

    @property
    def succeeded_count(self) -> int:
        return len(self.results) - self.failed_count

    @property
    def ui_total(self) -> Decimal:
        return Decimal(self.total).scaleb(-self.decimals)


class BalanceAggregator:
    """Fetches balances concurrently and summarizes them."""

    def __init__(self, gateway: LedgerGateway):
        self.gateway = gateway

    async def fetch_balances(
        self,
        accounts: Sequence[Account],
        asset: Optional[AssetFilter] = None,
    ) -> List[BalanceResult]:
        """
        Fetch balances for every account.

        Args:
            accounts: Accounts to query
            asset: NativeAsset (default) or TokenAsset(mint)

        Returns:
            One result per account, aligned by index with accounts
        """
        asset = asset or NativeAsset()
        results: List[Optional[BalanceResult]] = [None] * len(accounts)

        async def fetch_one(index: int, account: Account) -> None:
            try:
                balance = await self._fetch(account, asset)
                results[index] = BalanceResult(account=account, balance=balance)
            except NodeConnectionError as e:
                logger.warning("balance_fetch_failed", address=str(account.address), error=str(e))
                results[index] = BalanceResult(account=account, error=str(e))
            except Exception as e:
                logger.exception("balance_processing_failed", address=str(account.address))
                results[index] = BalanceResult(account=account, error=f"{type(e).__name__}: {e}")

        async with asyncio.TaskGroup() as tg:
            for index, account in enumerate(accounts):
                tg.create_task(fetch_one(index, account))

        logger.info(
            "balances_fetched",
            accounts=len(accounts),
            failed=sum(1 for r in results if not r.ok),
        )
        return results

    async def _fetch(self, account: Account, asset: AssetFilter) -> Balance:
        """Fetch a single balance."""
        if isinstance(asset, TokenAsset):
            token_account = await self.gateway.get_token_sub_account(account.address, asset.mint)
            if token_account is None:
                return Balance(account=account, amount=0, decimals=0)

            token_amount = await self.gateway.get_token_balance(token_account)
            return Balance(
                account=account,
                amount=token_amount.amount,
                decimals=token_amount.decimals,
                token_account=token_account,
            )

        lamports = await self.gateway.get_balance(account.address)
        return Balance(account=account, amount=lamports)

    @staticmethod
    def summarize(results: Sequence[BalanceResult]) -> BalanceSummary:
        """
        Total the successful results.

        Token accounts that do not exist report zero decimals; the total uses
        the decimals reported by the mint's existing accounts.
        """
        successful = [r.balance for r in results if r.ok]
        decimals = max((b.decimals for b in successful), default=SOL_DECIMALS)
        return BalanceSummary(
            results=tuple(results),
            total=sum(b.amount for b in successful),
            failed_count=len(results) - len(successful),
            decimals=decimals,
        )
