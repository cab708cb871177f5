"""
Tests for deposit fee calculation.
"""

import pytest

from cl8y_bridge.services.errors import FeeExceedsMax, InvalidAmount, InvalidFeeRate, InvalidFeeRecipient
from cl8y_bridge.services.fee import (
    MAX_FEE_BPS,
    NO_CUSTOM_FEE,
    CustomAccountFee,
    FeeConfig,
    FeeType,
    calculate_fee,
    calculate_from_bps,
    calculate_net_amount,
    get_effective_fee_bps,
    get_fee_type,
    validate_config,
    validate_custom_fee,
)
from cl8y_bridge.services.hashing import UINT256_MAX

RECIPIENT = "0x1000000000000000000000000000000000000004"
ACCOUNT = "0x1000000000000000000000000000000000000005"
DISCOUNT_TOKEN = "0x3000000000000000000000000000000000000001"


def balances(amount: int):
    """Balance lookup returning amount for every (token, account)."""
    return lambda token, account: amount


class TestAmounts:
    """Test basis-point arithmetic."""

    def test_half_percent_of_1000(self):
        assert calculate_from_bps(1000, 50) == 5

    def test_rounds_down(self):
        assert calculate_from_bps(199, 50) == 0
        assert calculate_from_bps(10_001, 1) == 1

    def test_net_amount(self):
        assert calculate_net_amount(1000, 50) == 995

    def test_zero_rate(self):
        assert calculate_from_bps(10**30, 0) == 0

    def test_negative_amount(self):
        with pytest.raises(ValueError):
            calculate_from_bps(-1, 50)

    @pytest.mark.parametrize("amount", [0, 1, 199, 9_999, 10_000, 10**30, UINT256_MAX // 10_000])
    @pytest.mark.parametrize("fee_bps", [0, 1, 50, 100])
    def test_fee_and_net_sum_to_amount(self, amount, fee_bps):
        fee = calculate_from_bps(amount, fee_bps)
        assert fee + calculate_net_amount(amount, fee_bps) == amount
        assert 0 <= fee <= amount // 100


class TestRateSelection:
    """Test custom > discount > standard priority."""

    def config(self, **kwargs) -> FeeConfig:
        return FeeConfig(fee_recipient=RECIPIENT, discount_token=DISCOUNT_TOKEN, **kwargs)

    def test_standard(self):
        config = self.config()
        assert get_fee_type(config, NO_CUSTOM_FEE, ACCOUNT, balances(0)) == FeeType.STANDARD
        assert get_effective_fee_bps(config, NO_CUSTOM_FEE, ACCOUNT, balances(0)) == 50

    def test_discount_at_threshold(self):
        config = self.config(cl8y_threshold=100)
        assert get_fee_type(config, NO_CUSTOM_FEE, ACCOUNT, balances(100)) == FeeType.DISCOUNTED
        assert get_effective_fee_bps(config, NO_CUSTOM_FEE, ACCOUNT, balances(100)) == 10

    def test_below_threshold(self):
        config = self.config(cl8y_threshold=100)
        assert get_effective_fee_bps(config, NO_CUSTOM_FEE, ACCOUNT, balances(99)) == 50

    def test_no_discount_token(self):
        config = FeeConfig(fee_recipient=RECIPIENT)
        assert get_fee_type(config, NO_CUSTOM_FEE, ACCOUNT, balances(10**30)) == FeeType.STANDARD

    def test_custom_beats_discount(self):
        config = self.config(cl8y_threshold=100)
        custom = CustomAccountFee(fee_bps=0, is_set=True)
        assert get_fee_type(config, custom, ACCOUNT, balances(1000)) == FeeType.CUSTOM
        assert calculate_fee(config, custom, ACCOUNT, 10**18, balances(1000)) == 0

    def test_unset_custom_is_ignored(self):
        config = self.config()
        custom = CustomAccountFee(fee_bps=5, is_set=False)
        assert get_effective_fee_bps(config, custom, ACCOUNT, balances(0)) == 50


class TestValidation:
    """Test the 1% cap and recipient check."""

    def test_valid_config(self):
        validate_config(FeeConfig(fee_recipient=RECIPIENT, standard_fee_bps=MAX_FEE_BPS))

    def test_standard_over_cap(self):
        with pytest.raises(FeeExceedsMax) as exc_info:
            validate_config(FeeConfig(fee_recipient=RECIPIENT, standard_fee_bps=101))
        assert exc_info.value.given == 101
        assert exc_info.value.max == MAX_FEE_BPS

    def test_discounted_over_cap(self):
        with pytest.raises(FeeExceedsMax):
            validate_config(FeeConfig(fee_recipient=RECIPIENT, discounted_fee_bps=101))

    def test_zero_recipient(self):
        with pytest.raises(InvalidFeeRecipient):
            validate_config(FeeConfig(fee_recipient="0x0000000000000000000000000000000000000000"))

    def test_custom_over_cap(self):
        with pytest.raises(FeeExceedsMax):
            validate_custom_fee(CustomAccountFee(fee_bps=101, is_set=True))

    @pytest.mark.parametrize("field", ["standard_fee_bps", "discounted_fee_bps"])
    def test_negative_rate(self, field):
        with pytest.raises(InvalidFeeRate) as exc_info:
            validate_config(FeeConfig(fee_recipient=RECIPIENT, **{field: -1}))
        assert exc_info.value.given == -1

    def test_negative_custom_rate(self):
        with pytest.raises(InvalidFeeRate):
            validate_custom_fee(CustomAccountFee(fee_bps=-100, is_set=True))

    def test_unset_custom_rate_ignored(self):
        validate_custom_fee(CustomAccountFee(fee_bps=-100, is_set=False))

    def test_negative_threshold(self):
        with pytest.raises(InvalidAmount):
            validate_config(FeeConfig(fee_recipient=RECIPIENT, cl8y_threshold=-1))
