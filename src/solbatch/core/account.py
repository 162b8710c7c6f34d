"""
Account model.

An account is a public address plus, where the wallet file provides one, the
keypair able to sign for it. AccountSet keeps the order of the wallet file so
every report lines up with the file the user passed in.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Sequence

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from solbatch.core.errors import InvalidInputError


def parse_pubkey(value: str) -> Pubkey:
    """
    Parse a base58 encoded public key.

    Raises:
        InvalidInputError: If the value is not a 32-byte base58 key
    """
    try:
        raw = base58.b58decode(value.strip())
    except (ValueError, AttributeError):
        raise InvalidInputError(f"Invalid address: {value!r}")
    if len(raw) != 32:
        raise InvalidInputError(f"Invalid address: {value!r}")
    return Pubkey.from_bytes(raw)


def parse_keypair(value: str) -> Keypair:
    """
    Parse a base58 encoded 64-byte secret key.

    Raises:
        InvalidInputError: If the value is not a valid keypair
    """
    try:
        raw = base58.b58decode(value.strip())
    except (ValueError, AttributeError):
        raise InvalidInputError("Invalid private key: not base58")
    if len(raw) != 64:
        raise InvalidInputError(f"Invalid private key: expected 64 bytes, got {len(raw)}")
    try:
        return Keypair.from_bytes(raw)
    except ValueError as e:
        raise InvalidInputError(f"Invalid private key: {e}")


def encode_keypair(keypair: Keypair) -> str:
    """Encode a keypair's 64 secret bytes as base58."""
    return base58.b58encode(bytes(keypair)).decode("ascii")


@dataclass(frozen=True)
class Account:
    """
    A wallet on the ledger.

    Attributes:
        address: Public key identifying the account
        keypair: Signing keypair, present only when the private key is known
    """

    address: Pubkey
    keypair: Optional[Keypair] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if self.keypair is not None and self.keypair.pubkey() != self.address:
            raise InvalidInputError(
                f"Private key does not belong to {self.address}"
            )

    @classmethod
    def from_keypair(cls, keypair: Keypair) -> "Account":
        """Create a signing account from a keypair."""
        return cls(address=keypair.pubkey(), keypair=keypair)

    @classmethod
    def from_address(cls, address: str) -> "Account":
        """Create a watch-only account from a base58 address."""
        return cls(address=parse_pubkey(address))

    @classmethod
    def from_private_key(cls, private_key: str) -> "Account":
        """Create a signing account from a base58 secret key."""
        return cls.from_keypair(parse_keypair(private_key))

    @classmethod
    def generate(cls) -> "Account":
        """Create an account with a fresh random keypair."""
        return cls.from_keypair(Keypair())

    @classmethod
    def from_record(cls, record: dict, require_private_key: bool = False) -> "Account":
        """
        Create an account from a wallet file record.

        Args:
            record: Mapping with "publicKey" and optionally "privateKey"
            require_private_key: Reject records without "privateKey"

        Raises:
            InvalidInputError: If required fields are missing or inconsistent
        """
        if not isinstance(record, dict) or not record.get("publicKey"):
            raise InvalidInputError(f"Invalid wallet record: {record!r}")

        private_key = record.get("privateKey")
        if require_private_key and not private_key:
            raise InvalidInputError(
                f"Wallet {record['publicKey']} has no privateKey"
            )

        address = parse_pubkey(record["publicKey"])
        keypair = parse_keypair(private_key) if private_key else None
        return cls(address=address, keypair=keypair)

    def to_record(self) -> Dict[str, str]:
        """Convert to a wallet file record."""
        record = {"publicKey": str(self.address)}
        if self.keypair is not None:
            record = {"privateKey": encode_keypair(self.keypair), **record}
        return record

    @property
    def can_sign(self) -> bool:
        """Check if the account can sign transactions."""
        return self.keypair is not None

    def __str__(self) -> str:
        return str(self.address)


class AccountSet(Sequence[Account]):
    """Ordered, immutable collection of accounts."""

    def __init__(self, accounts: Iterable[Account] = ()):
        self._accounts = tuple(accounts)

    @classmethod
    def generate(cls, count: int) -> "AccountSet":
        """
        Generate accounts with fresh keypairs.

        Raises:
            InvalidInputError: If count is not positive
        """
        if count <= 0:
            raise InvalidInputError(f"Number of wallets must be positive, got {count}")
        return cls(Account.generate() for _ in range(count))

    @classmethod
    def from_records(
        cls,
        records: Iterable[dict],
        require_private_keys: bool = False,
    ) -> "AccountSet":
        """Build a set from wallet file records, preserving their order."""
        return cls(
            Account.from_record(record, require_private_key=require_private_keys)
            for record in records
        )

    def to_records(self) -> List[Dict[str, str]]:
        """Convert to wallet file records."""
        return [account.to_record() for account in self._accounts]

    @property
    def addresses(self) -> List[Pubkey]:
        """Get all addresses in order."""
        return [account.address for account in self._accounts]

    @property
    def all_can_sign(self) -> bool:
        """Check if every account has a keypair."""
        return all(account.can_sign for account in self._accounts)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return AccountSet(self._accounts[index])
        return self._accounts[index]

    def __len__(self) -> int:
        return len(self._accounts)

    def __iter__(self) -> Iterator[Account]:
        return iter(self._accounts)

    def __repr__(self) -> str:
        return f"AccountSet(size={len(self)})"
