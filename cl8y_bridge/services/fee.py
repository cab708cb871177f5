"""
Fee calculation for bridge deposits.

Fee Structure:
- Standard rate: 0.5% (50 bps) by default
- Discounted rate: 0.1% (10 bps) for accounts holding at least the
  configured threshold of the discount token
- Custom per-account override: 0-1%

Priority (highest first): custom override, discount, standard.
Every rate is capped at 1% (100 bps). All arithmetic is integer and rounds
the fee down.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from cl8y_bridge.services.errors import FeeExceedsMax, InvalidAmount, InvalidFeeRate, InvalidFeeRecipient

MAX_FEE_BPS = 100
BPS_DENOMINATOR = 10_000

DEFAULT_STANDARD_FEE_BPS = 50
DEFAULT_DISCOUNTED_FEE_BPS = 10
DEFAULT_DISCOUNT_THRESHOLD = 100 * 10**18

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# (token, account) -> balance
BalanceLookup = Callable[[str, str], int]


class FeeType(str, Enum):
    """Which rate applied to an account."""
    STANDARD = "standard"
    DISCOUNTED = "discounted"
    CUSTOM = "custom"


@dataclass(frozen=True)
class FeeConfig:
    """Bridge-wide fee policy."""
    fee_recipient: str
    standard_fee_bps: int = DEFAULT_STANDARD_FEE_BPS
    discounted_fee_bps: int = DEFAULT_DISCOUNTED_FEE_BPS
    cl8y_threshold: int = DEFAULT_DISCOUNT_THRESHOLD
    discount_token: Optional[str] = None


@dataclass(frozen=True)
class CustomAccountFee:
    """Per-account override; ignored unless is_set."""
    fee_bps: int = 0
    is_set: bool = False


NO_CUSTOM_FEE = CustomAccountFee()


# ===================
# Validation
# ===================

def _require_rate(fee_bps: int) -> None:
    if fee_bps < 0:
        raise InvalidFeeRate(fee_bps)
    if fee_bps > MAX_FEE_BPS:
        raise FeeExceedsMax(fee_bps, MAX_FEE_BPS)


def validate_config(config: FeeConfig) -> None:
    """Reject rates outside 0..100 bps, a negative discount threshold or a missing fee recipient."""
    _require_rate(config.standard_fee_bps)
    _require_rate(config.discounted_fee_bps)
    if config.cl8y_threshold < 0:
        raise InvalidAmount(config.cl8y_threshold)
    if not config.fee_recipient or config.fee_recipient.lower() == ZERO_ADDRESS:
        raise InvalidFeeRecipient()


def validate_custom_fee(custom_fee: CustomAccountFee) -> None:
    if custom_fee.is_set:
        _require_rate(custom_fee.fee_bps)


# ===================
# Rate Selection
# ===================

def is_eligible_for_discount(
    config: FeeConfig,
    account: str,
    balance_of: Optional[BalanceLookup],
) -> bool:
    """Check if an account holds enough of the discount token."""
    if config.discount_token is None or balance_of is None:
        return False
    return balance_of(config.discount_token, account) >= config.cl8y_threshold


def get_fee_type(
    config: FeeConfig,
    custom_fee: CustomAccountFee,
    account: str,
    balance_of: Optional[BalanceLookup] = None,
) -> FeeType:
    if custom_fee.is_set:
        return FeeType.CUSTOM
    if is_eligible_for_discount(config, account, balance_of):
        return FeeType.DISCOUNTED
    return FeeType.STANDARD


def get_effective_fee_bps(
    config: FeeConfig,
    custom_fee: CustomAccountFee,
    account: str,
    balance_of: Optional[BalanceLookup] = None,
) -> int:
    """
    Get the fee rate that applies to an account.

    Args:
        config: Bridge fee policy
        custom_fee: The account's override (NO_CUSTOM_FEE if none)
        account: Depositor address
        balance_of: Token balance lookup used for discount eligibility

    Returns:
        Fee in basis points
    """
    fee_type = get_fee_type(config, custom_fee, account, balance_of)
    if fee_type == FeeType.CUSTOM:
        return custom_fee.fee_bps
    if fee_type == FeeType.DISCOUNTED:
        return config.discounted_fee_bps
    return config.standard_fee_bps


# ===================
# Amounts
# ===================

def calculate_from_bps(amount: int, fee_bps: int) -> int:
    """floor(amount * bps / 10000)"""
    if amount < 0:
        raise ValueError(f"Amount must not be negative: {amount}")
    return amount * fee_bps // BPS_DENOMINATOR


def calculate_net_amount(amount: int, fee_bps: int) -> int:
    return amount - calculate_from_bps(amount, fee_bps)


def calculate_fee(
    config: FeeConfig,
    custom_fee: CustomAccountFee,
    account: str,
    amount: int,
    balance_of: Optional[BalanceLookup] = None,
) -> int:
    """Fee owed by an account depositing amount."""
    fee_bps = get_effective_fee_bps(config, custom_fee, account, balance_of)
    return calculate_from_bps(amount, fee_bps)
