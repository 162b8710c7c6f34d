"""
Wallet Store - reads and writes wallet list files.

A wallet file is a JSON array of {"publicKey", "privateKey"?} records, both
base58 encoded.
"""

import json
from pathlib import Path
from typing import Union

import structlog

from solbatch.core.account import AccountSet
from solbatch.core.errors import InvalidInputError

logger = structlog.get_logger(__name__)

PathLike = Union[str, Path]


def wallet_file_exists(path: PathLike) -> bool:
    """Check if a wallet file exists and is a regular file."""
    return Path(path).is_file()


def load_wallets(path: PathLike, require_private_keys: bool = False) -> AccountSet:
    """
    Load wallets from a file.

    Args:
        path: Wallet file path
        require_private_keys: Reject records without "privateKey"

    Returns:
        Wallets in file order

    Raises:
        InvalidInputError: If the file is missing, not a JSON array, or a
            record is invalid
    """
    file_path = Path(path)
    if not file_path.is_file():
        raise InvalidInputError(f"Wallets file at {path} does not exist.")

    try:
        records = json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise InvalidInputError(f"Could not read wallets file {path}: {e}")

    if not isinstance(records, list):
        raise InvalidInputError(f"Wallets file {path} must contain a JSON array")

    wallets = AccountSet.from_records(records, require_private_keys=require_private_keys)
    logger.debug("wallets_loaded", path=str(path), count=len(wallets))
    return wallets


def save_wallets(wallets: AccountSet, path: PathLike) -> Path:
    """
    Write wallets to a file, replacing any existing one.

    Returns:
        Path written
    """
    file_path = Path(path)
    if file_path.parent and not file_path.parent.exists():
        file_path.parent.mkdir(parents=True, exist_ok=True)

    file_path.write_text(json.dumps(wallets.to_records(), indent=4), encoding="utf-8")
    logger.info("wallets_saved", path=str(file_path), count=len(wallets))
    return file_path
