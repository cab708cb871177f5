"""
Tests for the incoming withdrawal lifecycle.
"""

import pytest

from cl8y_bridge.custody.base import TokenType
from cl8y_bridge.services.address_codec import (
    CHAIN_TYPE_COSMOS,
    UniversalAddress,
    address_to_bytes32,
    encode_with_reserved,
)
from cl8y_bridge.services.bridge import (
    RATE_LIMIT_PERIOD,
    WithdrawApproveEvent,
    WithdrawStatus,
    normalize_decimals,
)
from cl8y_bridge.services.errors import (
    ApprovalNotNativePath,
    ApprovalRequiresNativePath,
    BridgePaused,
    CancelWindowActive,
    CancelWindowExpired,
    CancelWindowOutOfBounds,
    ChainNotRegistered,
    DestTokenMappingNotSet,
    FeeExceedsAmount,
    InsufficientLiquidity,
    InsufficientNativeValue,
    InvalidAmount,
    InvalidChainType,
    InvalidDecimals,
    InvalidDestAccount,
    InvalidNonce,
    NativeTransferFailed,
    NonZeroReservedBytes,
    RateLimitExceeded,
    Unauthorized,
    WithdrawAlreadyApproved,
    WithdrawAlreadyExecuted,
    WithdrawAlreadySubmitted,
    WithdrawCancelled,
    WithdrawNonceAlreadyUsed,
    WithdrawNotApproved,
    WithdrawNotCancelled,
    WithdrawNotFound,
    WrongTokenType,
)
from cl8y_bridge.services.hashing import chain_id_to_bytes4, compute_transfer_hash

from conftest import (
    ADMIN,
    CANCELER,
    CHAIN_A,
    CHAIN_B,
    FEE_RECIPIENT,
    OPERATOR,
    RELAYER,
    REMOTE_USER,
    USER,
)

SRC_ACCOUNT = address_to_bytes32(REMOTE_USER)
RECIPIENT = address_to_bytes32(USER)
REMOTE_AMOUNT = 5 * 10**18
LOCAL_AMOUNT = 5 * 10**6
USER_START = 1_000_000 * 10**6
WINDOW = 300


def submit(bridge, token, amount=REMOTE_AMOUNT, nonce=1, src_decimals=18, dest_account=RECIPIENT, value=0):
    return bridge.withdraw_submit(
        RELAYER, CHAIN_B, SRC_ACCOUNT, dest_account, token, amount, nonce, src_decimals, value=value
    )


@pytest.fixture
def liquid_token(bridge, lock_token):
    """Lock token with 1000 units already held in custody."""
    lock_token.mint(ADMIN, bridge.lock_unlock.address, 1_000 * 10**6)
    return lock_token


class TestNormalizeDecimals:
    """Test decimal rescaling."""

    def test_scale_up(self):
        assert normalize_decimals(1, 6, 18) == 10**12

    def test_scale_down_truncates(self):
        assert normalize_decimals(1_234_567, 6, 2) == 123
        assert normalize_decimals(5, 18, 6) == 0

    def test_same_decimals(self):
        assert normalize_decimals(42, 8, 8) == 42


class TestSubmit:
    """Test withdrawal submission."""

    def test_hash_and_record(self, bridge, liquid_token, clock):
        transfer_hash = submit(bridge, liquid_token.address)

        expected = compute_transfer_hash(
            CHAIN_B,
            CHAIN_A,
            SRC_ACCOUNT,
            RECIPIENT,
            address_to_bytes32(liquid_token.address),
            REMOTE_AMOUNT,
            1,
        )
        assert transfer_hash == expected

        pending = bridge.get_pending_withdraw(transfer_hash)
        assert pending.recipient == USER
        assert pending.src_decimals == 18
        assert pending.dest_decimals == 6
        assert pending.submitted_at == clock.now
        assert not pending.approved
        assert bridge.get_withdraw_status(transfer_hash) == WithdrawStatus.SUBMITTED

    def test_duplicate_rejected(self, bridge, liquid_token):
        submit(bridge, liquid_token.address)
        with pytest.raises(WithdrawAlreadySubmitted):
            submit(bridge, liquid_token.address)

    def test_returned_copy_is_detached(self, bridge, liquid_token):
        transfer_hash = submit(bridge, liquid_token.address)
        bridge.get_pending_withdraw(transfer_hash).approved = True
        assert bridge.get_withdraw_status(transfer_hash) == WithdrawStatus.SUBMITTED

    def test_zero_amount(self, bridge, liquid_token):
        with pytest.raises(InvalidAmount):
            submit(bridge, liquid_token.address, amount=0)

    @pytest.mark.parametrize("src_decimals", [-1, 256, 10**6])
    def test_out_of_range_decimals(self, bridge, liquid_token, src_decimals):
        with pytest.raises(InvalidDecimals) as exc_info:
            submit(bridge, liquid_token.address, amount=5, src_decimals=src_decimals)
        assert exc_info.value.decimals == src_decimals
        assert bridge.get_pending_withdraw_hashes() == []

    def test_zero_decimals_pays_integer(self, bridge, liquid_token, clock):
        transfer_hash = submit(bridge, liquid_token.address, amount=5, src_decimals=0)
        bridge.withdraw_approve(OPERATOR, transfer_hash)
        clock.advance(WINDOW)

        paid = bridge.withdraw_execute_unlock(RELAYER, transfer_hash)
        assert paid == 5 * 10**6
        assert type(paid) is int
        assert liquid_token.balance_of(USER) == USER_START + 5 * 10**6

    @pytest.mark.parametrize("nonce", [-1, 2**256])
    def test_out_of_range_nonce(self, bridge, liquid_token, nonce):
        with pytest.raises(InvalidNonce) as exc_info:
            submit(bridge, liquid_token.address, nonce=nonce)
        assert exc_info.value.nonce == nonce

    def test_unregistered_source_chain(self, bridge, liquid_token):
        with pytest.raises(ChainNotRegistered):
            bridge.withdraw_submit(
                RELAYER, chain_id_to_bytes4(9), SRC_ACCOUNT, RECIPIENT, liquid_token.address, 1, 1, 18
            )

    def test_token_without_mapping(self, bridge, chain):
        token = chain.deploy_token("XYZ")
        bridge.tokens.register_token(ADMIN, token.address, TokenType.LOCK_UNLOCK, 18)
        with pytest.raises(DestTokenMappingNotSet):
            submit(bridge, token.address)

    def test_zero_recipient(self, bridge, liquid_token):
        with pytest.raises(InvalidDestAccount):
            submit(bridge, liquid_token.address, dest_account=bytes(32))

    def test_universal_evm_recipient(self, bridge, liquid_token):
        dest = UniversalAddress.from_evm(USER).to_bytes32()
        transfer_hash = submit(bridge, liquid_token.address, dest_account=dest)
        assert bridge.get_pending_withdraw(transfer_hash).recipient == USER

    def test_universal_non_evm_recipient(self, bridge, liquid_token):
        dest = UniversalAddress(CHAIN_TYPE_COSMOS, bytes(19) + b"\x01").to_bytes32()
        with pytest.raises(InvalidChainType):
            submit(bridge, liquid_token.address, dest_account=dest)

    def test_universal_reserved_bytes(self, bridge, liquid_token):
        dest = encode_with_reserved(1, bytes(19) + b"\x01", b"\x00" * 7 + b"\x01")
        with pytest.raises(NonZeroReservedBytes):
            submit(bridge, liquid_token.address, dest_account=dest)

    def test_malformed_padded_recipient(self, bridge, liquid_token):
        dest = bytes(4) + b"\x01" + bytes(7) + bytes(19) + b"\x01"
        with pytest.raises(InvalidDestAccount):
            submit(bridge, liquid_token.address, dest_account=dest)


class TestApprove:
    """Test operator approval."""

    def test_only_operator(self, bridge, liquid_token):
        transfer_hash = submit(bridge, liquid_token.address)
        with pytest.raises(Unauthorized):
            bridge.withdraw_approve(USER, transfer_hash)

    def test_unknown_hash(self, bridge):
        with pytest.raises(WithdrawNotFound):
            bridge.withdraw_approve(OPERATOR, bytes(32))

    def test_double_approve(self, bridge, liquid_token, clock):
        transfer_hash = submit(bridge, liquid_token.address)
        bridge.withdraw_approve(OPERATOR, transfer_hash)
        with pytest.raises(WithdrawAlreadyApproved):
            bridge.withdraw_approve(OPERATOR, transfer_hash)

        pending = bridge.get_pending_withdraw(transfer_hash)
        assert pending.approved_at == clock.now
        assert pending.fee_recipient == FEE_RECIPIENT
        assert isinstance(bridge.events[-1], WithdrawApproveEvent)

    def test_fee_recipient_override(self, bridge, liquid_token):
        transfer_hash = submit(bridge, liquid_token.address)
        bridge.withdraw_approve(OPERATOR, transfer_hash, fee=1, fee_recipient=RELAYER)
        assert bridge.get_pending_withdraw(transfer_hash).fee_recipient == RELAYER

    def test_nonce_approved_once_per_source_chain(self, bridge, liquid_token):
        first = submit(bridge, liquid_token.address, amount=REMOTE_AMOUNT, nonce=7)
        second = submit(bridge, liquid_token.address, amount=2 * REMOTE_AMOUNT, nonce=7)
        bridge.withdraw_approve(OPERATOR, first)
        with pytest.raises(WithdrawNonceAlreadyUsed) as exc_info:
            bridge.withdraw_approve(OPERATOR, second)
        assert exc_info.value.nonce == 7
        assert bridge.get_withdraw_status(second) == WithdrawStatus.SUBMITTED

    def test_deduct_requires_native(self, bridge, liquid_token):
        transfer_hash = submit(bridge, liquid_token.address)
        with pytest.raises(ApprovalRequiresNativePath):
            bridge.withdraw_approve(OPERATOR, transfer_hash, fee=1, deduct_from_amount=True)

    def test_operator_tip(self, bridge, chain, liquid_token, native):
        transfer_hash = submit(bridge, liquid_token.address, value=10**16)
        assert chain.bank.balance_of(bridge.address) == 10**16

        bridge.withdraw_approve(OPERATOR, transfer_hash)

        assert chain.bank.balance_of(OPERATOR) == 10**16
        assert chain.bank.balance_of(bridge.address) == 0
        assert bridge.get_pending_withdraw(transfer_hash).operator_gas == 10**16


class TestExecute:
    """Test execution after the cancel window."""

    def test_full_lifecycle(self, bridge, liquid_token, clock):
        transfer_hash = submit(bridge, liquid_token.address)
        bridge.withdraw_approve(OPERATOR, transfer_hash)
        assert bridge.get_withdraw_status(transfer_hash) == WithdrawStatus.APPROVED

        clock.advance(WINDOW - 1)
        with pytest.raises(CancelWindowActive) as exc_info:
            bridge.withdraw_execute_unlock(RELAYER, transfer_hash)
        assert exc_info.value.window_end == clock.now + 1

        clock.advance(1)
        assert bridge.get_withdraw_status(transfer_hash) == WithdrawStatus.EXECUTABLE
        paid = bridge.withdraw_execute_unlock(RELAYER, transfer_hash)

        assert paid == LOCAL_AMOUNT
        assert liquid_token.balance_of(USER) == USER_START + LOCAL_AMOUNT
        assert bridge.get_withdraw_status(transfer_hash) == WithdrawStatus.EXECUTED

        with pytest.raises(WithdrawAlreadyExecuted):
            bridge.withdraw_execute_unlock(RELAYER, transfer_hash)

    def test_unapproved(self, bridge, liquid_token):
        transfer_hash = submit(bridge, liquid_token.address)
        with pytest.raises(WithdrawNotApproved):
            bridge.withdraw_execute_unlock(RELAYER, transfer_hash)

    def test_wrong_path(self, bridge, liquid_token, clock):
        transfer_hash = submit(bridge, liquid_token.address)
        bridge.withdraw_approve(OPERATOR, transfer_hash)
        clock.advance(WINDOW)
        with pytest.raises(WrongTokenType):
            bridge.withdraw_execute_mint(RELAYER, transfer_hash)

    def test_mint_path(self, bridge, mint_token, clock):
        transfer_hash = submit(bridge, mint_token.address, amount=3 * 10**18)
        bridge.withdraw_approve(OPERATOR, transfer_hash)
        clock.advance(WINDOW)

        bridge.withdraw_execute_mint(RELAYER, transfer_hash)

        assert mint_token.balance_of(USER) == 1_003 * 10**18
        assert mint_token.total_supply() == 1_003 * 10**18

    def test_paused(self, bridge, liquid_token, clock):
        transfer_hash = submit(bridge, liquid_token.address)
        bridge.withdraw_approve(OPERATOR, transfer_hash)
        clock.advance(WINDOW)
        bridge.pause(ADMIN)
        with pytest.raises(BridgePaused):
            bridge.withdraw_execute_unlock(RELAYER, transfer_hash)

    def test_caller_fee_on_token_path(self, bridge, chain, liquid_token, native, clock):
        """The caller attaches the approved fee in native value; overpayment is kept."""
        transfer_hash = submit(bridge, liquid_token.address)
        bridge.withdraw_approve(OPERATOR, transfer_hash, fee=10**17)
        clock.advance(WINDOW)

        with pytest.raises(InsufficientNativeValue) as exc_info:
            bridge.withdraw_execute_unlock(RELAYER, transfer_hash, value=5 * 10**16)
        assert exc_info.value.required == 10**17

        bridge.withdraw_execute_unlock(RELAYER, transfer_hash, value=2 * 10**17)
        assert chain.bank.balance_of(FEE_RECIPIENT) == 2 * 10**17
        assert chain.bank.balance_of(RELAYER) == 10 * 10**18 - 2 * 10**17
        assert liquid_token.balance_of(USER) == USER_START + LOCAL_AMOUNT


class TestNativeWithdraw:
    """Test native payouts with the fee deducted from the amount."""

    @pytest.fixture
    def escrowed(self, bridge, native):
        bridge.deposit_native(USER, CHAIN_B, address_to_bytes32(REMOTE_USER), value=10 * 10**18)
        return native

    def test_fee_must_be_deducted(self, bridge, escrowed):
        transfer_hash = submit(bridge, escrowed, amount=10**18)
        with pytest.raises(ApprovalNotNativePath):
            bridge.withdraw_approve(OPERATOR, transfer_hash, fee=10**16)

    def test_fee_exceeds_amount(self, bridge, escrowed):
        transfer_hash = submit(bridge, escrowed, amount=10**18)
        with pytest.raises(FeeExceedsAmount):
            bridge.withdraw_approve(OPERATOR, transfer_hash, fee=2 * 10**18, deduct_from_amount=True)

    def test_deducted_payout(self, bridge, chain, escrowed, clock):
        transfer_hash = submit(bridge, escrowed, amount=10**18)
        bridge.withdraw_approve(OPERATOR, transfer_hash, fee=10**16, deduct_from_amount=True)
        clock.advance(WINDOW)

        user_before = chain.bank.balance_of(USER)
        fees_before = chain.bank.balance_of(FEE_RECIPIENT)
        locked_before = bridge.get_locked_native_balance()

        paid = bridge.withdraw_execute_unlock(RELAYER, transfer_hash)

        assert paid == 99 * 10**16
        assert chain.bank.balance_of(USER) == user_before + 99 * 10**16
        assert chain.bank.balance_of(FEE_RECIPIENT) == fees_before + 10**16
        assert bridge.get_locked_native_balance() == locked_before - 10**18

    def test_rejecting_recipient_reverts(self, bridge, chain, escrowed, clock):
        transfer_hash = submit(bridge, escrowed, amount=10**18)
        bridge.withdraw_approve(OPERATOR, transfer_hash)
        clock.advance(WINDOW)
        chain.bank.set_rejecting(USER)
        locked_before = bridge.get_locked_native_balance()

        with pytest.raises(NativeTransferFailed):
            bridge.withdraw_execute_unlock(RELAYER, transfer_hash)

        assert bridge.get_withdraw_status(transfer_hash) == WithdrawStatus.EXECUTABLE
        assert bridge.get_locked_native_balance() == locked_before

    def test_insufficient_liquidity(self, bridge, native, clock):
        transfer_hash = submit(bridge, native, amount=10**18)
        bridge.withdraw_approve(OPERATOR, transfer_hash)
        clock.advance(WINDOW)
        with pytest.raises(InsufficientLiquidity):
            bridge.withdraw_execute_unlock(RELAYER, transfer_hash)


class TestCancel:
    """Test cancel and uncancel."""

    def test_cancel_blocks_execution(self, bridge, liquid_token, clock):
        transfer_hash = submit(bridge, liquid_token.address)
        bridge.withdraw_approve(OPERATOR, transfer_hash)
        clock.advance(10)
        bridge.withdraw_cancel(CANCELER, transfer_hash)
        assert bridge.get_withdraw_status(transfer_hash) == WithdrawStatus.CANCELLED

        clock.advance(10 * WINDOW)
        with pytest.raises(WithdrawCancelled):
            bridge.withdraw_execute_unlock(RELAYER, transfer_hash)
        assert liquid_token.balance_of(USER) == USER_START

    def test_cancel_twice(self, bridge, liquid_token):
        transfer_hash = submit(bridge, liquid_token.address)
        bridge.withdraw_approve(OPERATOR, transfer_hash)
        bridge.withdraw_cancel(CANCELER, transfer_hash)
        with pytest.raises(WithdrawCancelled):
            bridge.withdraw_cancel(CANCELER, transfer_hash)

    def test_only_canceler(self, bridge, liquid_token):
        transfer_hash = submit(bridge, liquid_token.address)
        bridge.withdraw_approve(OPERATOR, transfer_hash)
        with pytest.raises(Unauthorized):
            bridge.withdraw_cancel(OPERATOR, transfer_hash)

    def test_cancel_unapproved(self, bridge, liquid_token):
        transfer_hash = submit(bridge, liquid_token.address)
        with pytest.raises(WithdrawNotApproved):
            bridge.withdraw_cancel(CANCELER, transfer_hash)

    def test_cancel_boundary(self, bridge, liquid_token, clock):
        """Cancel is open strictly before approved_at + window."""
        early = submit(bridge, liquid_token.address, nonce=1)
        late = submit(bridge, liquid_token.address, nonce=2)
        bridge.withdraw_approve(OPERATOR, early)
        bridge.withdraw_approve(OPERATOR, late)
        approved_at = clock.now

        clock.advance(WINDOW - 1)
        bridge.withdraw_cancel(CANCELER, early)

        clock.advance(1)
        with pytest.raises(CancelWindowExpired) as exc_info:
            bridge.withdraw_cancel(CANCELER, late)
        assert exc_info.value.window_end == approved_at + WINDOW

    def test_uncancel_restarts_window(self, bridge, liquid_token, clock):
        transfer_hash = submit(bridge, liquid_token.address)
        bridge.withdraw_approve(OPERATOR, transfer_hash)
        clock.advance(100)
        bridge.withdraw_cancel(CANCELER, transfer_hash)
        clock.advance(100)

        bridge.withdraw_uncancel(OPERATOR, transfer_hash)
        assert bridge.get_pending_withdraw(transfer_hash).approved_at == clock.now
        assert bridge.get_withdraw_status(transfer_hash) == WithdrawStatus.APPROVED

        clock.advance(WINDOW - 50)
        with pytest.raises(CancelWindowActive):
            bridge.withdraw_execute_unlock(RELAYER, transfer_hash)

        clock.advance(50)
        assert bridge.withdraw_execute_unlock(RELAYER, transfer_hash) == LOCAL_AMOUNT

    def test_uncancel_requires_cancelled(self, bridge, liquid_token):
        transfer_hash = submit(bridge, liquid_token.address)
        bridge.withdraw_approve(OPERATOR, transfer_hash)
        with pytest.raises(WithdrawNotCancelled):
            bridge.withdraw_uncancel(OPERATOR, transfer_hash)

    def test_uncancel_only_operator(self, bridge, liquid_token):
        transfer_hash = submit(bridge, liquid_token.address)
        bridge.withdraw_approve(OPERATOR, transfer_hash)
        bridge.withdraw_cancel(CANCELER, transfer_hash)
        with pytest.raises(Unauthorized):
            bridge.withdraw_uncancel(CANCELER, transfer_hash)

    def test_uncancel_after_window(self, bridge, liquid_token, clock):
        transfer_hash = submit(bridge, liquid_token.address)
        bridge.withdraw_approve(OPERATOR, transfer_hash)
        bridge.withdraw_cancel(CANCELER, transfer_hash)
        clock.advance(WINDOW)
        with pytest.raises(CancelWindowExpired):
            bridge.withdraw_uncancel(OPERATOR, transfer_hash)


class TestRateLimits:
    """Test per-token withdrawal caps."""

    def approve_and_wait(self, bridge, token, clock, nonce):
        transfer_hash = submit(bridge, token.address, nonce=nonce)
        bridge.withdraw_approve(OPERATOR, transfer_hash)
        clock.advance(WINDOW)
        return transfer_hash

    def test_per_transaction(self, bridge, liquid_token, clock):
        bridge.set_rate_limit(ADMIN, liquid_token.address, max_per_transaction=4 * 10**6)
        transfer_hash = self.approve_and_wait(bridge, liquid_token, clock, 1)
        with pytest.raises(RateLimitExceeded) as exc_info:
            bridge.withdraw_execute_unlock(RELAYER, transfer_hash)
        assert exc_info.value.limit_type == "per_transaction"

    def test_per_period_resets(self, bridge, liquid_token, clock):
        bridge.set_rate_limit(ADMIN, liquid_token.address, max_per_period=8 * 10**6)
        first = self.approve_and_wait(bridge, liquid_token, clock, 1)
        second = self.approve_and_wait(bridge, liquid_token, clock, 2)

        bridge.withdraw_execute_unlock(RELAYER, first)
        with pytest.raises(RateLimitExceeded) as exc_info:
            bridge.withdraw_execute_unlock(RELAYER, second)
        assert exc_info.value.limit_type == "per_period"

        clock.advance(RATE_LIMIT_PERIOD)
        bridge.withdraw_execute_unlock(RELAYER, second)
        assert liquid_token.balance_of(USER) == USER_START + 2 * LOCAL_AMOUNT


class TestCancelWindowConfig:
    """Test cancel window administration."""

    def test_default(self, bridge):
        assert bridge.get_cancel_window() == WINDOW

    @pytest.mark.parametrize("seconds", [15, 86400])
    def test_bounds_accepted(self, bridge, seconds):
        bridge.set_cancel_window(ADMIN, seconds)
        assert bridge.get_cancel_window() == seconds

    @pytest.mark.parametrize("seconds", [14, 86401])
    def test_bounds_rejected(self, bridge, seconds):
        with pytest.raises(CancelWindowOutOfBounds):
            bridge.set_cancel_window(ADMIN, seconds)
        assert bridge.get_cancel_window() == WINDOW

    def test_only_admin(self, bridge):
        with pytest.raises(Unauthorized):
            bridge.set_cancel_window(OPERATOR, 60)
