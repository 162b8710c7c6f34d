"""
Transaction Builder - constructs transfer transactions.

Turns a transfer group into one signed versioned transaction carrying a system
transfer instruction per intent.
"""

from typing import List, Optional

import structlog
from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import MessageV0
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from solbatch.core.transfer import TransferGroup
from solbatch.node.interface import Checkpoint
from solbatch.tx.signer import SigningError, TransactionSigner

logger = structlog.get_logger(__name__)

# Maximum serialized transaction size accepted by the network
PACKET_DATA_SIZE = 1232


class TransactionBuildError(Exception):
    """Raised when transaction construction fails."""
    pass


class TransactionBuilder:
    """
    Builds and signs group transactions.

    Coordinates instruction construction, message compilation and the signer
    to produce signed transactions.
    """

    def __init__(self, signer: Optional[TransactionSigner] = None):
        """
        Initialize the transaction builder.

        Args:
            signer: Transaction signer (a default one is created if not provided)
        """
        self.signer = signer or TransactionSigner()

    def build_instructions(self, group: TransferGroup) -> List[Instruction]:
        """Create one system transfer instruction per intent, in order."""
        return [
            transfer(
                TransferParams(
                    from_pubkey=intent.source.address,
                    to_pubkey=intent.destination.address,
                    lamports=intent.lamports,
                )
            )
            for intent in group.intents
        ]

    def build_group_transaction(
        self,
        group: TransferGroup,
        checkpoint: Checkpoint,
    ) -> VersionedTransaction:
        """
        Build a signed transaction for a group.

        Args:
            group: The group to send
            checkpoint: Blockhash the transaction is bound to

        Returns:
            Signed transaction

        Raises:
            TransactionBuildError: If the transaction cannot be built or signed
        """
        logger.debug(
            "building_group_transaction",
            group_index=group.index,
            transfer_count=group.size,
        )

        try:
            message = MessageV0.try_compile(
                group.fee_payer.address,
                self.build_instructions(group),
                [],
                Hash.from_string(checkpoint.blockhash),
            )
            signed_tx = self.signer.sign(message, group)
        except SigningError as e:
            raise TransactionBuildError(str(e))
        except Exception as e:
            logger.error(
                "transaction_build_failed",
                group_index=group.index,
                error=str(e),
            )
            raise TransactionBuildError(f"Failed to build transaction: {e}")

        size = len(bytes(signed_tx))
        if size > PACKET_DATA_SIZE:
            raise TransactionBuildError(
                f"Transaction for group {group.index} is {size} bytes, "
                f"limit is {PACKET_DATA_SIZE}"
            )

        logger.info(
            "group_transaction_built",
            group_index=group.index,
            signature=str(signed_tx.signatures[0])[:16] + "...",
            size=size,
        )
        return signed_tx


def transaction_signature(tx: VersionedTransaction) -> str:
    """Get the signature identifying a transaction (the fee payer's)."""
    return str(tx.signatures[0])
