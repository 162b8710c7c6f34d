"""
Pytest configuration and shared fixtures for the test suite.
"""

import asyncio
from typing import Dict, List, Optional, Set

import pytest
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction

from solbatch.config import BatcherConfig, Commitment, NetworkType
from solbatch.core.account import Account, AccountSet
from solbatch.core.units import LAMPORTS_PER_SOL
from solbatch.node.interface import (
    Checkpoint,
    LedgerGateway,
    NodeConnectionError,
    TokenAmount,
    TransactionSubmitError,
)
from solbatch.tx.signer import generate_test_account


TEST_BLOCKHASH = "11111111111111111111111111111111"


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def test_config() -> BatcherConfig:
    """Create a test configuration."""
    return BatcherConfig(
        network=NetworkType.DEVNET,
        rpc_endpoint="http://rpc.test",
        commitment=Commitment.CONFIRMED,
        fund_transfers_per_tx=10,
        consolidate_transfers_per_tx=5,
        reserve_lamports=1_000_000,
        confirm_timeout_seconds=1.0,
        confirm_poll_interval_seconds=0.01,
        log_level="DEBUG",
    )


# ============================================================================
# Test Data Generators
# ============================================================================

def sol(amount: float) -> int:
    """Lamports for a SOL amount (test helper, exact for the values used)."""
    return round(amount * LAMPORTS_PER_SOL)


def make_accounts(count: int, signing: bool = True) -> List[Account]:
    """Generate accounts, optionally stripped of their keypairs."""
    accounts = [Account.generate() for _ in range(count)]
    if signing:
        return accounts
    return [Account(address=a.address) for a in accounts]


@pytest.fixture
def sender() -> Account:
    """A signing account used as funding sender."""
    return generate_test_account()


@pytest.fixture
def wallets() -> AccountSet:
    """Twelve signing wallets."""
    return AccountSet(make_accounts(12))


@pytest.fixture
def watch_only_wallets() -> AccountSet:
    """Twelve wallets known only by address."""
    return AccountSet(make_accounts(12, signing=False))


# ============================================================================
# Stub Ledger Gateway
# ============================================================================

class StubLedgerGateway(LedgerGateway):
    """
    In-memory gateway for testing.

    Records every call. Failures and delays are injected by account: a
    transaction fails (or is delayed) when any of its account keys is listed.
    """

    def __init__(self, balances: Optional[Dict[Pubkey, int]] = None):
        self.balances: Dict[Pubkey, int] = dict(balances or {})
        self.failing_balances: Set[Pubkey] = set()
        self.token_accounts: Dict[Pubkey, Pubkey] = {}
        self.token_balances: Dict[Pubkey, TokenAmount] = {}
        self.balance_delays: Dict[Pubkey, float] = {}
        self.balance_errors: Dict[Pubkey, Exception] = {}
        self.balance_completion_order: List[Pubkey] = []

        self.submit_failures: Dict[Pubkey, str] = {}
        self.submit_delays: Dict[Pubkey, float] = {}
        self.checkpoint = Checkpoint(blockhash=TEST_BLOCKHASH, last_valid_block_height=1_000)

        self.submitted: List[VersionedTransaction] = []
        self.returned_ids: Dict[Pubkey, str] = {}
        self.completion_order: List[str] = []
        self.submit_commitments: List[Optional[Commitment]] = []
        self.balance_calls = 0
        self.checkpoint_calls = 0
        self.connected = False

    @property
    def submit_count(self) -> int:
        return len(self.submitted)

    async def connect(self) -> None:
        self.connected = True

    async def disconnect(self) -> None:
        self.connected = False

    async def get_balance(self, address: Pubkey) -> int:
        self.balance_calls += 1
        await asyncio.sleep(self.balance_delays.get(address, 0))
        if address in self.failing_balances:
            raise NodeConnectionError(f"getBalance failed for {address}")
        if address in self.balance_errors:
            raise self.balance_errors[address]
        self.balance_completion_order.append(address)
        return self.balances.get(address, 0)

    async def get_latest_checkpoint(self) -> Checkpoint:
        self.checkpoint_calls += 1
        return self.checkpoint

    async def submit_transaction(
        self,
        raw_tx: bytes,
        commitment: Optional[Commitment] = None,
        last_valid_block_height: Optional[int] = None,
    ) -> str:
        tx = VersionedTransaction.from_bytes(raw_tx)
        self.submitted.append(tx)
        self.submit_commitments.append(commitment)
        keys = list(tx.message.account_keys)

        delay = max((self.submit_delays.get(k, 0) for k in keys), default=0)
        await asyncio.sleep(delay)

        for key in keys:
            if key in self.submit_failures:
                self.completion_order.append(f"failed:{key}")
                raise TransactionSubmitError(self.submit_failures[key])

        signature = str(tx.signatures[0])
        for key in keys:
            self.returned_ids[key] = signature
        self.completion_order.append(signature)
        return signature

    async def get_token_sub_account(self, owner: Pubkey, mint: Pubkey) -> Optional[Pubkey]:
        if owner in self.failing_balances:
            raise NodeConnectionError(f"getTokenAccountsByOwner failed for {owner}")
        return self.token_accounts.get(owner)

    async def get_token_balance(self, token_account: Pubkey) -> TokenAmount:
        return self.token_balances[token_account]


@pytest.fixture
def stub_gateway() -> StubLedgerGateway:
    """Create a stub gateway with no balances."""
    return StubLedgerGateway()
