"""
Test suite for transfer execution.

Tests the pre-submission balance check, concurrent submission, failure
isolation and report ordering, plus the funding and consolidation flows
end to end against the stub gateway.
"""

import pytest

from solbatch.core.account import AccountSet
from solbatch.core.batcher import WalletBatcher
from solbatch.core.errors import InsufficientBalanceError, InvalidInputError
from solbatch.core.job import BatchReport, JobStatus, TransactionJob
from solbatch.core.transfer import FeePayerPolicy, TransferIntent
from solbatch.engine.planner import BatchPlanner, funding_intents
from solbatch.engine.transfer import TransferEngine
from solbatch.node.interface import (
    Checkpoint,
    NodeConnectionError,
    TransactionSubmitError,
)
from solbatch.tx.builder import TransactionBuilder
from tests.conftest import StubLedgerGateway, make_accounts, sol


def funding_groups(sender, count, per_group, lamports=sol(0.01)):
    recipients = make_accounts(count, signing=False)
    intents = funding_intents(sender, recipients, lamports)
    groups = BatchPlanner().plan(intents, per_group, FeePayerPolicy.SHARED_SENDER)
    return recipients, groups


# ============================================================================
# Test Balance Check
# ============================================================================

class TestBalanceCheck:
    """Tests for the check run before anything is submitted."""

    @pytest.mark.asyncio
    async def test_insufficient_balance_submits_nothing(self, test_config, sender):
        """Test that a short sender aborts the whole batch up front."""
        _, groups = funding_groups(sender, 12, 10, lamports=sol(1))
        gateway = StubLedgerGateway({sender.address: sol(5)})
        engine = TransferEngine(gateway, config=test_config)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            await engine.execute(groups)

        assert exc_info.value.required == sol(12)
        assert exc_info.value.address == str(sender.address)
        assert gateway.submit_count == 0
        assert gateway.checkpoint_calls == 0

    @pytest.mark.asyncio
    async def test_reserve_counts_against_balance(self, test_config, sender):
        """Test that the reserve must stay behind on the source."""
        _, groups = funding_groups(sender, 2, 10, lamports=sol(1))
        gateway = StubLedgerGateway({sender.address: sol(2)})
        engine = TransferEngine(gateway, config=test_config)

        with pytest.raises(InsufficientBalanceError):
            await engine.execute(groups)

        assert gateway.submit_count == 0

    @pytest.mark.asyncio
    async def test_exact_balance_plus_reserve_passes(self, test_config, sender):
        """Test the boundary: total plus reserve equals the balance."""
        _, groups = funding_groups(sender, 2, 10, lamports=sol(1))
        gateway = StubLedgerGateway({sender.address: sol(2) + test_config.reserve_lamports})
        engine = TransferEngine(gateway, config=test_config)

        report = await engine.execute(groups)

        assert report.succeeded_count == 1

    @pytest.mark.asyncio
    async def test_balance_fetch_failure_submits_nothing(self, test_config, sender):
        """Test that an unreadable source balance aborts before submission."""
        _, groups = funding_groups(sender, 3, 10)
        gateway = StubLedgerGateway({sender.address: sol(100)})
        gateway.failing_balances.add(sender.address)
        engine = TransferEngine(gateway, config=test_config)

        with pytest.raises(NodeConnectionError):
            await engine.execute(groups)

        assert gateway.submit_count == 0

    @pytest.mark.asyncio
    async def test_each_source_checked_separately(self, test_config):
        """Test that consolidation sources are checked against their own balance."""
        rich, poor = make_accounts(2)
        destination = make_accounts(1, signing=False)[0]

        intents = [
            TransferIntent(rich, destination, sol(1)),
            TransferIntent(poor, destination, sol(1)),
        ]
        groups = BatchPlanner().plan(intents, 5, FeePayerPolicy.FIRST_SOURCE)
        gateway = StubLedgerGateway({rich.address: sol(10), poor.address: sol(0.5)})
        engine = TransferEngine(gateway, config=test_config)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            await engine.execute(groups)

        assert exc_info.value.address == str(poor.address)
        assert gateway.submit_count == 0


# ============================================================================
# Test Execution
# ============================================================================

class TestExecution:
    """Tests for concurrent submission and reporting."""

    @pytest.mark.asyncio
    async def test_empty_plan_touches_nothing(self, test_config):
        """Test that no groups means no gateway calls."""
        gateway = StubLedgerGateway()
        engine = TransferEngine(gateway, config=test_config)

        report = await engine.execute([])

        assert report == BatchReport()
        assert gateway.balance_calls == 0
        assert gateway.checkpoint_calls == 0

    @pytest.mark.asyncio
    async def test_single_checkpoint_for_all_groups(self, test_config, sender):
        """Test that every group is bound to one fetched blockhash."""
        _, groups = funding_groups(sender, 25, 10)
        gateway = StubLedgerGateway({sender.address: sol(100)})
        engine = TransferEngine(gateway, config=test_config)

        await engine.execute(groups)

        assert gateway.checkpoint_calls == 1
        assert gateway.submit_count == 3
        assert {str(tx.message.recent_blockhash) for tx in gateway.submitted} == {
            gateway.checkpoint.blockhash
        }

    @pytest.mark.asyncio
    async def test_configured_commitment_passed_to_gateway(self, test_config, sender):
        """Test that submissions wait for the configured commitment."""
        _, groups = funding_groups(sender, 3, 1)
        gateway = StubLedgerGateway({sender.address: sol(100)})
        engine = TransferEngine(gateway, config=test_config)

        await engine.execute(groups)

        assert gateway.submit_commitments == [test_config.commitment] * 3

    @pytest.mark.asyncio
    async def test_failures_are_isolated_and_reported_in_order(self, test_config, sender):
        """Test M groups with F failures and out-of-order completion."""
        recipients, groups = funding_groups(sender, 6, 1)
        gateway = StubLedgerGateway({sender.address: sol(100)})

        gateway.submit_failures[recipients[1].address] = "blockhash not found"
        gateway.submit_failures[recipients[4].address] = "account in use"
        # Group 0 settles last
        gateway.submit_delays[recipients[0].address] = 0.05
        gateway.submit_delays[recipients[2].address] = 0.02

        engine = TransferEngine(gateway, config=test_config)
        report = await engine.execute(groups)

        assert gateway.submit_count == 6
        assert report.succeeded_count == 4
        assert report.failed_count == 2
        assert report.succeeded == tuple(
            gateway.returned_ids[recipients[i].address] for i in (0, 2, 3, 5)
        )
        assert [f.group_index for f in report.failed] == [1, 4]
        assert report.failed[0].cause == "blockhash not found"
        assert report.failed[1].cause == "account in use"

        assert gateway.completion_order[-1] == report.succeeded[0]

    @pytest.mark.asyncio
    async def test_all_groups_fail(self, test_config, sender):
        """Test that failures never raise out of execute."""
        recipients, groups = funding_groups(sender, 3, 1)
        gateway = StubLedgerGateway({sender.address: sol(100)})
        for recipient in recipients:
            gateway.submit_failures[recipient.address] = "rejected"

        report = await TransferEngine(gateway, config=test_config).execute(groups)

        assert report.succeeded == ()
        assert [f.group_index for f in report.failed] == [0, 1, 2]
        assert not report.all_succeeded

    @pytest.mark.asyncio
    async def test_reported_id_matches_built_signature(self, test_config, sender):
        """Test that the succeeded id is the fee payer signature of the sent transaction."""
        _, groups = funding_groups(sender, 2, 10)
        gateway = StubLedgerGateway({sender.address: sol(100)})

        report = await TransferEngine(gateway, config=test_config).execute(groups)

        assert report.succeeded == (str(gateway.submitted[0].signatures[0]),)

    @pytest.mark.asyncio
    async def test_gateway_submit_many_is_positional(self, sender):
        """Test the gateway batch helper keeps results aligned with its input."""
        recipients, groups = funding_groups(sender, 3, 1)
        gateway = StubLedgerGateway()
        gateway.submit_failures[recipients[1].address] = "rejected"
        gateway.submit_delays[recipients[0].address] = 0.03
        builder = TransactionBuilder()
        raw_txs = [bytes(builder.build_group_transaction(g, gateway.checkpoint)) for g in groups]

        results = await gateway.submit_transactions(raw_txs)

        assert results[0] == gateway.returned_ids[recipients[0].address]
        assert isinstance(results[1], TransactionSubmitError)
        assert results[2] == gateway.returned_ids[recipients[2].address]


# ============================================================================
# Test Job Model
# ============================================================================

class TestTransactionJob:
    """Tests for job state transitions and report building."""

    def test_job_lifecycle(self, sender):
        """Test pending -> built -> submitted -> succeeded."""
        _, groups = funding_groups(sender, 1, 1)
        job = TransactionJob(group=groups[0], checkpoint=Checkpoint("abc", 10))
        assert job.status == JobStatus.PENDING
        assert not job.is_settled

        job.mark_built(b"raw", "sig")
        assert job.status == JobStatus.BUILT
        job.mark_submitted()
        assert job.submitted_at is not None
        job.mark_succeeded("sig")

        assert job.is_settled
        assert BatchReport.from_jobs([job]).succeeded == ("sig",)

    def test_report_rejects_unsettled_jobs(self, sender):
        """Test that a report cannot be built before every job settles."""
        _, groups = funding_groups(sender, 1, 1)
        job = TransactionJob(group=groups[0], checkpoint=Checkpoint("abc", 10))

        with pytest.raises(ValueError, match="not settled"):
            BatchReport.from_jobs([job])


# ============================================================================
# Test Funding And Consolidation Flows
# ============================================================================

class TestWalletFlows:
    """End-to-end tests through WalletBatcher."""

    @pytest.mark.asyncio
    async def test_fund_twelve_wallets(self, test_config, sender, watch_only_wallets):
        """Test 12 wallets at 10 per transaction: two transactions, both succeed."""
        gateway = StubLedgerGateway({sender.address: sol(10)})

        async with WalletBatcher(config=test_config, gateway=gateway) as batcher:
            plan = await batcher.prepare_funding(watch_only_wallets, sender, "0.1")
            report = await batcher.execute(plan)

        assert [g.size for g in plan.groups] == [10, 2]
        assert plan.total_lamports == sol(1.2)
        assert gateway.submit_count == 2
        assert report.succeeded_count == 2
        assert report.failed_count == 0
        assert not gateway.connected

    @pytest.mark.asyncio
    async def test_fund_checks_sender_before_planning(self, test_config, sender, watch_only_wallets):
        """Test that an underfunded sender is rejected at preparation."""
        gateway = StubLedgerGateway({sender.address: sol(1)})
        batcher = WalletBatcher(config=test_config, gateway=gateway)

        with pytest.raises(InsufficientBalanceError):
            await batcher.prepare_funding(watch_only_wallets, sender, "0.1")

        assert gateway.submit_count == 0

    @pytest.mark.asyncio
    async def test_fund_rejects_invalid_amount(self, test_config, sender, watch_only_wallets):
        """Test that a negative amount is an input error."""
        gateway = StubLedgerGateway({sender.address: sol(10)})
        batcher = WalletBatcher(config=test_config, gateway=gateway)

        with pytest.raises(InvalidInputError):
            await batcher.prepare_funding(watch_only_wallets, sender, "-1")

    @pytest.mark.asyncio
    async def test_fund_requires_sender_key(self, test_config, watch_only_wallets):
        """Test that the sender must be able to sign."""
        sender = make_accounts(1, signing=False)[0]
        batcher = WalletBatcher(config=test_config, gateway=StubLedgerGateway())

        with pytest.raises(InvalidInputError, match="private key"):
            await batcher.prepare_funding(watch_only_wallets, sender, "0.1")

    @pytest.mark.asyncio
    async def test_consolidate_seven_wallets(self, test_config):
        """Test sweeping wallets with the reserve left behind."""
        wallets = AccountSet(make_accounts(7))
        destination = make_accounts(1, signing=False)[0]
        amounts = [sol(1.0), sol(0.0005), sol(2.0), 0, sol(0.3), sol(5.0), sol(0.0002)]
        gateway = StubLedgerGateway(dict(zip(wallets.addresses, amounts)))

        async with WalletBatcher(config=test_config, gateway=gateway) as batcher:
            plan = await batcher.prepare_consolidation(wallets, destination)
            report = await batcher.execute(plan)

        reserve = test_config.reserve_lamports
        assert plan.transfer_count == 4
        assert plan.total_lamports == sol(8.3) - 4 * reserve
        assert len(plan.skipped) == 3
        assert report.succeeded_count == 1

        tx = gateway.submitted[0]
        assert tx.message.account_keys[0] == wallets[0].address
        assert tx.message.header.num_required_signatures == 4

    @pytest.mark.asyncio
    async def test_consolidate_skips_unreadable_wallets(self, test_config):
        """Test that a wallet whose balance cannot be read is skipped, not fatal."""
        wallets = AccountSet(make_accounts(3))
        destination = make_accounts(1, signing=False)[0]
        gateway = StubLedgerGateway({a: sol(1) for a in wallets.addresses})
        gateway.failing_balances.add(wallets[1].address)

        batcher = WalletBatcher(config=test_config, gateway=gateway)
        plan = await batcher.prepare_consolidation(wallets, destination)

        assert [i.source for g in plan.groups for i in g.intents] == [wallets[0], wallets[2]]
        assert plan.skipped[0].account == wallets[1]
        assert plan.skipped[0].reason.startswith("balance unavailable")

    @pytest.mark.asyncio
    async def test_consolidate_requires_every_key(self, test_config, watch_only_wallets):
        """Test that watch-only wallets cannot be consolidated."""
        destination = make_accounts(1, signing=False)[0]
        batcher = WalletBatcher(config=test_config, gateway=StubLedgerGateway())

        with pytest.raises(InvalidInputError, match="private keys"):
            await batcher.prepare_consolidation(watch_only_wallets, destination)

    @pytest.mark.asyncio
    async def test_consolidate_nothing_to_send(self, test_config):
        """Test that an all-empty wallet set yields an empty plan."""
        wallets = AccountSet(make_accounts(3))
        destination = make_accounts(1, signing=False)[0]
        gateway = StubLedgerGateway()

        batcher = WalletBatcher(config=test_config, gateway=gateway)
        plan = await batcher.prepare_consolidation(wallets, destination)
        report = await batcher.execute(plan)

        assert plan.is_empty
        assert report.total == 0
        assert gateway.submit_count == 0
