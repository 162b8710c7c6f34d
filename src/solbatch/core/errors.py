"""
Errors raised before anything touches the ledger.

Both are fatal for a command: the CLI reports them and exits non-zero.
"""

from typing import Optional


class InvalidInputError(ValueError):
    """Raised for malformed wallet files, keys, addresses, amounts or batch sizes."""
    pass


class InsufficientBalanceError(Exception):
    """Raised when a source cannot cover the transfers requested from it."""

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
        required: int = 0,
        available: int = 0,
    ):
        super().__init__(message)
        self.address = address
        self.required = required
        self.available = available
