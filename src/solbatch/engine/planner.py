"""
Batch Planner - groups transfer intents into transactions.

Splits intents into contiguous, order-preserving groups bounded by the number
of transfer instructions a transaction may carry, and decides who pays and who
signs each group.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import structlog

from solbatch.core.account import Account
from solbatch.core.errors import InvalidInputError
from solbatch.core.transfer import FeePayerPolicy, TransferGroup, TransferIntent

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SkippedWallet:
    """A wallet left out of a plan, with the reason."""

    account: Account
    reason: str
    balance: Optional[int] = None


class BatchPlanner:
    """
    Plans transfer groups.

    Planning is a pure function of its inputs: intents keep their order within
    and across groups, so group i always holds intents
    [i * max_per_group, (i + 1) * max_per_group).
    """

    def plan(
        self,
        intents: Sequence[TransferIntent],
        max_per_group: int,
        policy: FeePayerPolicy = FeePayerPolicy.SHARED_SENDER,
    ) -> List[TransferGroup]:
        """
        Split intents into transfer groups.

        Args:
            intents: Transfers in the order they should be reported
            max_per_group: Maximum transfers per transaction
            policy: How each group picks its fee payer and signers

        Returns:
            ceil(len(intents) / max_per_group) groups

        Raises:
            InvalidInputError: If max_per_group is not positive, a source
                cannot sign, or a shared-sender plan has several senders
        """
        if isinstance(max_per_group, bool) or not isinstance(max_per_group, int) or max_per_group <= 0:
            raise InvalidInputError(f"Group size must be a positive integer, got {max_per_group!r}")

        for position, intent in enumerate(intents):
            if not intent.source.can_sign:
                raise InvalidInputError(
                    f"Transfer {position} from {intent.source.address} has no signing key"
                )

        if policy == FeePayerPolicy.SHARED_SENDER:
            senders = {intent.source.address for intent in intents}
            if len(senders) > 1:
                raise InvalidInputError(
                    f"A shared-sender plan needs one sender, got {len(senders)}"
                )

        groups = []
        for index, start in enumerate(range(0, len(intents), max_per_group)):
            chunk = tuple(intents[start:start + max_per_group])
            fee_payer, signers = self._signers_for(chunk, policy)
            groups.append(TransferGroup(
                index=index,
                intents=chunk,
                fee_payer=fee_payer,
                signers=signers,
                policy=policy,
            ))

        logger.debug(
            "transfers_planned",
            transfers=len(intents),
            groups=len(groups),
            max_per_group=max_per_group,
            policy=policy.value,
        )
        return groups

    def _signers_for(
        self,
        chunk: Tuple[TransferIntent, ...],
        policy: FeePayerPolicy,
    ) -> Tuple[Account, Tuple[Account, ...]]:
        """Pick the fee payer and signer set of one group."""
        fee_payer = chunk[0].source

        if policy == FeePayerPolicy.SHARED_SENDER:
            return fee_payer, (fee_payer,)

        # Every source spends its own lamports, so every source signs
        signers: List[Account] = [fee_payer]
        for intent in chunk[1:]:
            if intent.source not in signers:
                signers.append(intent.source)
        return fee_payer, tuple(signers)


def funding_intents(
    sender: Account,
    recipients: Iterable[Account],
    lamports_each: int,
) -> List[TransferIntent]:
    """Create one transfer of lamports_each from sender to every recipient."""
    return [
        TransferIntent(source=sender, destination=recipient, lamports=lamports_each)
        for recipient in recipients
    ]


def consolidation_intents(
    balances: Iterable[Tuple[Account, int]],
    destination: Account,
    reserve_lamports: int,
) -> Tuple[List[TransferIntent], List[SkippedWallet]]:
    """
    Create transfers sweeping every wallet down to its reserve.

    Wallets whose balance does not exceed the reserve are skipped rather than
    clamped, so no transfer instruction ever carries a zero or negative amount.
    The destination wallet is skipped if it appears among the sources.

    Args:
        balances: (wallet, lamport balance) pairs in wallet file order
        destination: Account receiving the swept lamports
        reserve_lamports: Lamports left behind on each wallet

    Returns:
        Intents for the wallets with a positive transferable balance, and the
        skipped wallets with the reason
    """
    intents: List[TransferIntent] = []
    skipped: List[SkippedWallet] = []

    for account, balance in balances:
        if account.address == destination.address:
            skipped.append(SkippedWallet(account, "wallet is the destination", balance))
            continue

        transferable = balance - reserve_lamports
        if transferable <= 0:
            skipped.append(SkippedWallet(account, "balance does not exceed reserve", balance))
            continue

        intents.append(TransferIntent(source=account, destination=destination, lamports=transferable))

    if skipped:
        logger.info("wallets_skipped", count=len(skipped))

    return intents, skipped
