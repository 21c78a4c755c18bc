"""
Fee arithmetic and amount helpers.

The L2 wrapper contract deducts ``amount * FEE_BPS // FEE_DENOMINATOR`` from
every deposit. The same integer truncation is used here so that locally
computed net amounts always match the on-chain value.
"""
from decimal import Decimal, InvalidOperation

from .config import (
    FEE_BPS, FEE_DENOMINATOR, MIN_DEPOSIT, MIN_DEADLINE_OFFSET, MAX_DEADLINE_OFFSET,
    DEFAULT_TOKEN_DECIMALS,
)
from .exceptions import InvalidParameterError


def calculate_fee(amount: int) -> int:
    """Protocol fee for a deposit amount (truncated toward zero)."""
    if amount < 0:
        raise InvalidParameterError(f"Amount must be non-negative, got {amount}")
    return amount * FEE_BPS // FEE_DENOMINATOR


def calculate_net_amount(amount: int) -> int:
    """Amount credited after the protocol fee is deducted."""
    return amount - calculate_fee(amount)


def validate_deposit_amount(amount: int) -> None:
    """
    Check a deposit amount against the protocol minimum.

    Raises:
        InvalidParameterError: If the amount is below MIN_DEPOSIT
    """
    if amount < MIN_DEPOSIT:
        raise InvalidParameterError(f"Deposit amount {amount} is below the minimum of {MIN_DEPOSIT}")


def validate_deadline_offset(offset: int) -> None:
    """
    Check that a deadline offset falls inside the window the L1 portal accepts.

    Raises:
        InvalidParameterError: If the offset is shorter than 30 minutes or longer than 24 hours
    """
    if offset < MIN_DEADLINE_OFFSET:
        raise InvalidParameterError(
            f"Deadline too soon: {offset}s, minimum is {MIN_DEADLINE_OFFSET}s"
        )
    if offset > MAX_DEADLINE_OFFSET:
        raise InvalidParameterError(
            f"Deadline too far: {offset}s, maximum is {MAX_DEADLINE_OFFSET}s"
        )


def format_amount(amount: int, decimals: int = DEFAULT_TOKEN_DECIMALS) -> str:
    """Render base units as a decimal string, e.g. 1500000 -> "1.5"."""
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10 ** decimals)
    if frac == 0:
        return f"{sign}{whole}"
    frac_str = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{sign}{whole}.{frac_str}"


def parse_amount(value: str, decimals: int = DEFAULT_TOKEN_DECIMALS) -> int:
    """
    Parse a user-entered decimal string into base units.

    Raises:
        InvalidParameterError: If the value is not a number or has too many decimals
    """
    try:
        parsed = Decimal(value.strip())
    except (InvalidOperation, AttributeError):
        raise InvalidParameterError(f"Invalid amount: {value!r}")
    scaled = parsed * (Decimal(10) ** decimals)
    if scaled != scaled.to_integral_value():
        raise InvalidParameterError(f"Amount {value} has more than {decimals} decimals")
    return int(scaled)
