"""
Main WalletBatcher orchestrator.

Coordinates planning, balance checks, execution and balance reads for the
wallet commands. Confirmation prompts stay with the caller: every transfer is
prepared first, then executed.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

import structlog
from solders.pubkey import Pubkey

from solbatch.config import BatcherConfig, get_config
from solbatch.core.account import Account, AccountSet
from solbatch.core.errors import InsufficientBalanceError, InvalidInputError
from solbatch.core.job import BatchReport
from solbatch.core.transfer import FeePayerPolicy, TransferGroup
from solbatch.core.units import format_sol, sol_to_lamports
from solbatch.engine.balances import (
    BalanceAggregator,
    BalanceSummary,
    NativeAsset,
    TokenAsset,
)
from solbatch.engine.planner import (
    BatchPlanner,
    SkippedWallet,
    consolidation_intents,
    funding_intents,
)
from solbatch.engine.transfer import TransferEngine
from solbatch.node.interface import LedgerGateway
from solbatch.node.rpc import SolanaRpcAdapter

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TransferPlan:
    """
    Transfers prepared for execution.

    Attributes:
        groups: Planned transfer groups
        total_lamports: Lamports moved by the whole plan
        skipped: Wallets left out of the plan
    """

    groups: Tuple[TransferGroup, ...]
    total_lamports: int
    skipped: Tuple[SkippedWallet, ...] = field(default_factory=tuple)

    @property
    def transfer_count(self) -> int:
        return sum(group.size for group in self.groups)

    @property
    def transaction_count(self) -> int:
        return len(self.groups)

    @property
    def is_empty(self) -> bool:
        return not self.groups


class WalletBatcher:
    """
    Main orchestrator for the wallet commands.

    Usage:
        ```python
        batcher = WalletBatcher()
        await batcher.initialize()
        plan = await batcher.prepare_funding(wallets, sender, "0.5")
        report = await batcher.execute(plan)
        await batcher.shutdown()
        ```
    """

    def __init__(
        self,
        config: Optional[BatcherConfig] = None,
        gateway: Optional[LedgerGateway] = None,
        planner: Optional[BatchPlanner] = None,
    ):
        """
        Initialize the batcher.

        Args:
            config: Batcher configuration
            gateway: Custom ledger gateway (Solana RPC adapter if not provided)
            planner: Custom batch planner
        """
        self.config = config or get_config()
        self.gateway = gateway or SolanaRpcAdapter(self.config)
        self.planner = planner or BatchPlanner()
        self.engine = TransferEngine(self.gateway, config=self.config)
        self.aggregator = BalanceAggregator(self.gateway)
        self._initialized = False

    async def initialize(self) -> None:
        """Connect to the ledger."""
        if self._initialized:
            return
        await self.gateway.connect()
        self._initialized = True
        logger.info("batcher_initialized")

    async def shutdown(self) -> None:
        """Disconnect from the ledger."""
        await self.gateway.disconnect()
        self._initialized = False
        logger.info("batcher_shutdown")

    async def __aenter__(self) -> "WalletBatcher":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.shutdown()

    @staticmethod
    def generate_wallets(count: int) -> AccountSet:
        """Generate wallets with fresh keypairs."""
        wallets = AccountSet.generate(count)
        logger.info("wallets_generated", count=len(wallets))
        return wallets

    async def prepare_funding(
        self,
        wallets: Sequence[Account],
        sender: Account,
        sol_amount: Union[str, float, int],
    ) -> TransferPlan:
        """
        Prepare sending the same SOL amount from sender to every wallet.

        Args:
            wallets: Recipients in file order
            sender: Funding account (must be able to sign)
            sol_amount: SOL per wallet

        Returns:
            Plan with one shared-sender group per fund_transfers_per_tx wallets

        Raises:
            InvalidInputError: If the amount is invalid or the sender cannot sign
            InsufficientBalanceError: If the sender cannot cover the total
        """
        if not sender.can_sign:
            raise InvalidInputError("Sender private key is required to fund wallets")

        lamports_each = sol_to_lamports(sol_amount)
        total = lamports_each * len(wallets)

        balance = await self.gateway.get_balance(sender.address)
        logger.info("sender_balance", address=str(sender.address), sol=format_sol(balance))

        available = balance - self.config.reserve_lamports
        if total > available:
            raise InsufficientBalanceError(
                "Sender does not have enough balance to fund all wallets. "
                f"{format_sol(balance)} < {format_sol(total + self.config.reserve_lamports)}",
                address=str(sender.address),
                required=total,
                available=available,
            )

        intents = funding_intents(sender, wallets, lamports_each)
        groups = self.planner.plan(
            intents,
            self.config.fund_transfers_per_tx,
            FeePayerPolicy.SHARED_SENDER,
        )
        return TransferPlan(groups=tuple(groups), total_lamports=total)

    async def prepare_consolidation(
        self,
        wallets: Sequence[Account],
        destination: Account,
    ) -> TransferPlan:
        """
        Prepare sweeping every wallet down to the reserve into destination.

        Wallets whose balance could not be read, or does not exceed the
        reserve, are skipped and listed in the plan.

        Raises:
            InvalidInputError: If a wallet cannot sign
        """
        unsigned = [str(w.address) for w in wallets if not w.can_sign]
        if unsigned:
            raise InvalidInputError(
                f"Consolidation needs private keys for every wallet; missing for {unsigned[0]}"
            )

        results = await self.aggregator.fetch_balances(wallets, NativeAsset())

        balances: List[Tuple[Account, int]] = []
        skipped: List[SkippedWallet] = []
        for result in results:
            if result.ok:
                balances.append((result.account, result.balance.amount))
            else:
                skipped.append(SkippedWallet(result.account, f"balance unavailable: {result.error}"))

        intents, below_reserve = consolidation_intents(
            balances,
            destination,
            self.config.reserve_lamports,
        )
        skipped.extend(below_reserve)

        groups = self.planner.plan(
            intents,
            self.config.consolidate_transfers_per_tx,
            FeePayerPolicy.FIRST_SOURCE,
        )
        return TransferPlan(
            groups=tuple(groups),
            total_lamports=sum(intent.lamports for intent in intents),
            skipped=tuple(skipped),
        )

    async def execute(self, plan: TransferPlan) -> BatchReport:
        """
        Execute a prepared plan.

        Returns:
            Report of succeeded and failed transactions
        """
        logger.info(
            "executing_plan",
            transactions=plan.transaction_count,
            transfers=plan.transfer_count,
            sol=format_sol(plan.total_lamports),
        )
        return await self.engine.execute(plan.groups)

    async def get_balances(self, wallets: Sequence[Account]) -> BalanceSummary:
        """Get SOL balances of every wallet."""
        results = await self.aggregator.fetch_balances(wallets, NativeAsset())
        return self.aggregator.summarize(results)

    async def get_token_balances(
        self,
        wallets: Sequence[Account],
        mint: Pubkey,
    ) -> BalanceSummary:
        """Get balances of one token mint for every wallet."""
        results = await self.aggregator.fetch_balances(wallets, TokenAsset(mint))
        return self.aggregator.summarize(results)
