"""
Transaction Signer - handles transaction signing.

Collects the keypairs a transfer group needs and signs its compiled message.
"""

from typing import List

import structlog
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.transaction import VersionedTransaction

from solbatch.core.account import Account
from solbatch.core.transfer import TransferGroup

logger = structlog.get_logger(__name__)


class SigningError(Exception):
    """Raised when a group cannot be signed."""
    pass


class TransactionSigner:
    """
    Signs group transactions with the group's signer set.

    The signer set always starts with the fee payer. Funding groups have a
    single signer; consolidation groups carry every source wallet.
    """

    def keypairs_for(self, group: TransferGroup) -> List[Keypair]:
        """
        Get the keypairs required to sign a group.

        Args:
            group: Group to sign

        Returns:
            One keypair per distinct signer, fee payer first

        Raises:
            SigningError: If a signer has no keypair
        """
        keypairs: List[Keypair] = []
        seen = set()
        for account in group.signers:
            if account.address in seen:
                continue
            if account.keypair is None:
                raise SigningError(f"No signing key loaded for {account.address}")
            seen.add(account.address)
            keypairs.append(account.keypair)
        return keypairs

    def sign(self, message: MessageV0, group: TransferGroup) -> VersionedTransaction:
        """
        Sign a compiled message.

        Args:
            message: Message compiled for the group
            group: Group the message was compiled from

        Returns:
            Fully signed transaction
        """
        keypairs = self.keypairs_for(group)
        try:
            signed_tx = VersionedTransaction(message, keypairs)
        except Exception as e:
            raise SigningError(f"Failed to sign group {group.index}: {e}")

        logger.debug(
            "transaction_signed",
            group_index=group.index,
            signers=len(keypairs),
            signature=str(signed_tx.signatures[0])[:16] + "...",
        )
        return signed_tx


def generate_test_account() -> Account:
    """
    Generate a signing account with a random key for testing.

    WARNING: Do not use for funds. The key is not persisted.
    """
    account = Account.generate()
    logger.warning("test_key_generated", address=str(account.address)[:30] + "...")
    return account
