"""
Transfer intents and groups.

A TransferIntent is one lamport transfer. A TransferGroup is the set of intents
that will travel in a single transaction, together with the account paying
its fee and every account that has to sign it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Tuple

from solders.pubkey import Pubkey

from solbatch.core.account import Account
from solbatch.core.errors import InvalidInputError
from solbatch.core.units import MAX_LAMPORTS


class FeePayerPolicy(str, Enum):
    """How a group chooses its fee payer and signers."""
    SHARED_SENDER = "shared_sender"   # One sender funds every intent and pays the fee
    FIRST_SOURCE = "first_source"     # First source pays the fee, every source signs


@dataclass(frozen=True)
class TransferIntent:
    """
    A single transfer of lamports.

    Attributes:
        source: Account the lamports leave (must be able to sign)
        destination: Account receiving the lamports
        lamports: Amount in lamports
    """

    source: Account
    destination: Account
    lamports: int

    def __post_init__(self):
        if isinstance(self.lamports, bool) or not isinstance(self.lamports, int):
            raise InvalidInputError(f"Transfer amount must be an integer, got {self.lamports!r}")
        if self.lamports < 0 or self.lamports > MAX_LAMPORTS:
            raise InvalidInputError(f"Transfer amount out of range: {self.lamports}")


@dataclass(frozen=True)
class TransferGroup:
    """
    Intents sent together in one transaction.

    Attributes:
        index: Position of the group in its plan
        intents: Transfers in submission order
        fee_payer: Account paying the transaction fee
        signers: Every account that must sign, fee payer first
        policy: Policy the planner used for this group
    """

    index: int
    intents: Tuple[TransferIntent, ...]
    fee_payer: Account
    signers: Tuple[Account, ...]
    policy: FeePayerPolicy = FeePayerPolicy.SHARED_SENDER

    def __post_init__(self):
        if not self.intents:
            raise InvalidInputError("A transfer group cannot be empty")
        if not self.signers or self.signers[0] != self.fee_payer:
            raise InvalidInputError("The fee payer must be the first signer of its group")

    @property
    def size(self) -> int:
        """Get the number of transfers in this group."""
        return len(self.intents)

    @property
    def total_lamports(self) -> int:
        """Get the lamports moved by this group."""
        return sum(intent.lamports for intent in self.intents)

    @property
    def sources(self) -> List[Pubkey]:
        """Get the distinct source addresses in first-seen order."""
        seen: List[Pubkey] = []
        for intent in self.intents:
            if intent.source.address not in seen:
                seen.append(intent.source.address)
        return seen

    def __repr__(self) -> str:
        return (
            f"TransferGroup(index={self.index}, size={self.size}, "
            f"fee_payer={str(self.fee_payer.address)[:8]}...)"
        )
