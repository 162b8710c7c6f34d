"""
Transfer Engine - executes planned transfer groups.

Checks every source can cover its transfers, binds all groups to a single
blockhash, submits one transaction per group concurrently and collects every
outcome into a BatchReport.
"""

import asyncio
from typing import Dict, List, Optional, Sequence

import structlog
from solders.pubkey import Pubkey

from solbatch.config import BatcherConfig, Commitment, get_config
from solbatch.core.errors import InsufficientBalanceError
from solbatch.core.job import BatchReport, TransactionJob
from solbatch.core.transfer import TransferGroup
from solbatch.core.units import format_sol
from solbatch.node.interface import (
    LedgerGateway,
    NodeConnectionError,
    TransactionSubmitError,
)
from solbatch.tx.builder import TransactionBuildError, TransactionBuilder, transaction_signature

logger = structlog.get_logger(__name__)


class TransferEngine:
    """
    Executes transfer groups against a ledger gateway.

    Groups are independent: a failing group never blocks, retries or
    invalidates another one. Failed groups are reported, not resubmitted.
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        config: Optional[BatcherConfig] = None,
        builder: Optional[TransactionBuilder] = None,
        reserve_lamports: Optional[int] = None,
        commitment: Optional[Commitment] = None,
    ):
        """
        Initialize the engine.

        Args:
            gateway: Ledger gateway used for balances, blockhash and submission
            config: Batcher configuration
            builder: Transaction builder (default one if not provided)
            reserve_lamports: Lamports each source keeps back (config default)
            commitment: Commitment to confirm at (config default)
        """
        self.config = config or get_config()
        self.gateway = gateway
        self.builder = builder or TransactionBuilder()
        self.reserve_lamports = (
            self.config.reserve_lamports if reserve_lamports is None else reserve_lamports
        )
        self.commitment = commitment or self.config.commitment

    async def execute(self, groups: Sequence[TransferGroup]) -> BatchReport:
        """
        Execute a plan.

        Args:
            groups: Planned groups, in report order

        Returns:
            Report of succeeded signatures and failed groups

        Raises:
            InsufficientBalanceError: If a source cannot cover its transfers;
                nothing is submitted
            NodeConnectionError: If balances or the blockhash cannot be fetched;
                nothing is submitted
        """
        if not groups:
            return BatchReport()

        await self.check_balances(groups)

        checkpoint = await self.gateway.get_latest_checkpoint()
        jobs = [TransactionJob(group=group, checkpoint=checkpoint) for group in groups]

        logger.info(
            "submitting_transactions",
            transactions=len(jobs),
            transfers=sum(group.size for group in groups),
            blockhash=checkpoint.blockhash,
        )

        async with asyncio.TaskGroup() as tg:
            for job in jobs:
                tg.create_task(self._run_job(job))

        report = BatchReport.from_jobs(jobs)
        logger.info(
            "batch_settled",
            succeeded=report.succeeded_count,
            failed=report.failed_count,
        )
        return report

    async def check_balances(self, groups: Sequence[TransferGroup]) -> None:
        """
        Verify every source can cover the lamports requested from it.

        Raises:
            InsufficientBalanceError: For the first source, in plan order,
                whose requested total exceeds its balance minus the reserve
        """
        required: Dict[Pubkey, int] = {}
        for group in groups:
            for intent in group.intents:
                address = intent.source.address
                required[address] = required.get(address, 0) + intent.lamports

        sources: List[Pubkey] = list(required)
        balances = await asyncio.gather(
            *(self.gateway.get_balance(address) for address in sources)
        )

        for address, balance in zip(sources, balances):
            available = balance - self.reserve_lamports
            if required[address] > available:
                logger.error(
                    "insufficient_balance",
                    address=str(address),
                    required=required[address],
                    balance=balance,
                    reserve=self.reserve_lamports,
                )
                raise InsufficientBalanceError(
                    f"{address} does not have enough balance: "
                    f"{format_sol(max(available, 0))} SOL available < "
                    f"{format_sol(required[address])} SOL required",
                    address=str(address),
                    required=required[address],
                    available=available,
                )

    def build_job(self, job: TransactionJob) -> bytes:
        """Build and sign a job's transaction, returning its serialized form."""
        signed_tx = self.builder.build_group_transaction(job.group, job.checkpoint)
        raw_tx = bytes(signed_tx)
        job.mark_built(raw_tx, transaction_signature(signed_tx))
        return raw_tx

    async def _run_job(self, job: TransactionJob) -> None:
        """Build, submit and settle a single job. Never raises."""
        try:
            raw_tx = self.build_job(job)
            job.mark_submitted()
            tx_id = await self.gateway.submit_transaction(
                raw_tx,
                self.commitment,
                job.checkpoint.last_valid_block_height,
            )
            job.mark_succeeded(tx_id)
            logger.info("group_confirmed", group_index=job.group_index, signature=tx_id)

        except (TransactionBuildError, TransactionSubmitError, NodeConnectionError) as e:
            job.mark_failed(str(e))
            logger.error("group_failed", group_index=job.group_index, error=str(e))

        except Exception as e:
            job.mark_failed(f"{type(e).__name__}: {e}")
            logger.exception("group_processing_failed", group_index=job.group_index)
