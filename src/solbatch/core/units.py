"""
SOL <-> lamport conversion.

User-facing amounts are whole SOL (fractions allowed); everything past the
boundary is integer lamports.
"""

from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Union

from solbatch.core.errors import InvalidInputError

LAMPORTS_PER_SOL = 1_000_000_000
MAX_LAMPORTS = 2**64 - 1


def sol_to_lamports(amount: Union[str, int, float, Decimal]) -> int:
    """
    Convert a SOL amount to lamports, truncating sub-lamport precision.

    Floats are converted through their string form so 0.1 stays 0.1.

    Raises:
        InvalidInputError: If the amount is not a finite, non-negative number
    """
    if isinstance(amount, bool):
        raise InvalidInputError(f"Invalid SOL amount: {amount!r}")
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise InvalidInputError(f"Invalid SOL amount: {amount!r}")

    if not value.is_finite() or value < 0:
        raise InvalidInputError(f"Invalid SOL amount: {amount!r}")

    lamports = int((value * LAMPORTS_PER_SOL).to_integral_value(rounding=ROUND_DOWN))
    if lamports > MAX_LAMPORTS:
        raise InvalidInputError(f"SOL amount too large: {amount!r}")
    return lamports


def lamports_to_sol(lamports: int) -> Decimal:
    """Convert lamports to SOL for display."""
    return Decimal(lamports) / LAMPORTS_PER_SOL


def format_sol(lamports: int) -> str:
    """Render lamports as a SOL string without trailing zeros."""
    sol = lamports_to_sol(lamports)
    text = f"{sol:f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text
