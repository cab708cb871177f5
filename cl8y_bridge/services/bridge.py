"""
Bridge core: deposits on the source chain, and the withdrawal state machine
(submit, approve, cancel, uncancel, execute) on the destination chain.

Both sides derive the same V2 transfer hash from a transfer's fields; the
hash is the only link between a deposit and its withdrawal. Every mutating
entry point runs inside the chain's atomic() context, so any failure leaves
state unchanged.

Withdrawal lifecycle:
    submitted -> approved -> (cancel window elapses) -> executed
    approved -> cancelled -> uncancelled (window restarts) -> ...
"""

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from web3 import Web3

from cl8y_bridge.config import DEFAULT_CANCEL_WINDOW, MAX_CANCEL_WINDOW, MIN_CANCEL_WINDOW
from cl8y_bridge.custody.base import CustodyStrategy, TokenType
from cl8y_bridge.custody.lock_unlock import LockUnlockCustody
from cl8y_bridge.custody.mint_burn import MintBurnCustody
from cl8y_bridge.custody.native import NATIVE_DECIMALS, NATIVE_TOKEN, is_native_token
from cl8y_bridge.services.address_codec import (
    ChainType,
    address_to_bytes32,
    bytes32_to_address,
    decode_as_chain_type,
    decode_strict,
)
from cl8y_bridge.services.chain import LocalChain, Revertible, derive_address
from cl8y_bridge.services.errors import (
    ApprovalNotNativePath,
    ApprovalRequiresNativePath,
    BridgePaused,
    CancelWindowActive,
    CancelWindowExpired,
    CancelWindowOutOfBounds,
    FeeExceedsAmount,
    InsufficientLiquidity,
    InsufficientNativeValue,
    InvalidAddressLength,
    InvalidAmount,
    InvalidDestAccount,
    InvalidNonce,
    RateLimitExceeded,
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
from cl8y_bridge.services.fee import (
    NO_CUSTOM_FEE,
    CustomAccountFee,
    FeeConfig,
    FeeType,
    calculate_fee,
    get_effective_fee_bps,
    get_fee_type,
    validate_config,
    validate_custom_fee,
)
from cl8y_bridge.services.hashing import UINT256_MAX, bytes32_to_hex, compute_transfer_hash
from cl8y_bridge.services.registry import ChainRegistry, TokenMapping, TokenRegistry, require_decimals
from cl8y_bridge.services.roles import AccessManager
from cl8y_bridge.utils.logging import LoggerMixin

RATE_LIMIT_PERIOD = 24 * 60 * 60


class WithdrawStatus(str, Enum):
    """Externally observable state of a pending withdrawal."""
    SUBMITTED = "submitted"
    APPROVED = "approved"        # approved, cancel window still open
    EXECUTABLE = "executable"    # approved, cancel window elapsed
    CANCELLED = "cancelled"
    EXECUTED = "executed"


# ===================
# Records
# ===================

@dataclass(frozen=True)
class DepositRecord:
    """An outgoing transfer as recorded on the source chain."""
    transfer_hash: bytes
    nonce: int
    src_account: bytes
    dest_chain: bytes
    dest_account: bytes
    token: str
    dest_token: bytes
    amount: int  # net of fee
    fee: int
    timestamp: int


@dataclass
class PendingWithdraw:
    """An incoming transfer on the destination chain."""
    transfer_hash: bytes
    src_chain: bytes
    src_account: bytes
    dest_account: bytes
    token: str
    recipient: str
    amount: int
    nonce: int
    src_decimals: int
    dest_decimals: int
    operator_gas: int = 0
    submitted_at: int = 0
    fee: int = 0
    fee_recipient: Optional[str] = None
    deduct_from_amount: bool = False
    approved: bool = False
    approved_at: int = 0
    cancelled: bool = False
    executed: bool = False

    def status(self, now: int, cancel_window: int) -> WithdrawStatus:
        if self.executed:
            return WithdrawStatus.EXECUTED
        if self.cancelled:
            return WithdrawStatus.CANCELLED
        if not self.approved:
            return WithdrawStatus.SUBMITTED
        if now < self.approved_at + cancel_window:
            return WithdrawStatus.APPROVED
        return WithdrawStatus.EXECUTABLE


@dataclass(frozen=True)
class RateLimitConfig:
    """Per-token withdrawal caps; 0 disables a cap."""
    max_per_transaction: int = 0
    max_per_period: int = 0


@dataclass(frozen=True)
class RateLimitWindow:
    window_start: int
    used: int


# ===================
# Events
# ===================

@dataclass(frozen=True)
class DepositEvent:
    transfer_hash: bytes
    nonce: int
    dest_chain: bytes
    dest_token: bytes
    dest_account: bytes
    src_account: bytes
    token: str
    amount: int
    fee: int


@dataclass(frozen=True)
class WithdrawSubmitEvent:
    transfer_hash: bytes
    src_chain: bytes
    nonce: int
    amount: int
    operator_gas: int


@dataclass(frozen=True)
class WithdrawApproveEvent:
    transfer_hash: bytes
    operator: str
    fee: int
    fee_recipient: str
    deduct_from_amount: bool
    approved_at: int


@dataclass(frozen=True)
class WithdrawCancelEvent:
    transfer_hash: bytes
    canceler: str


@dataclass(frozen=True)
class WithdrawUncancelEvent:
    transfer_hash: bytes
    operator: str
    approved_at: int


@dataclass(frozen=True)
class WithdrawExecuteEvent:
    transfer_hash: bytes
    recipient: str
    token: str
    amount: int
    fee: int


@dataclass(frozen=True)
class ConfigEvent:
    name: str
    value: str


BridgeEvent = Union[
    DepositEvent,
    WithdrawSubmitEvent,
    WithdrawApproveEvent,
    WithdrawCancelEvent,
    WithdrawUncancelEvent,
    WithdrawExecuteEvent,
    ConfigEvent,
]


def normalize_decimals(amount: int, src_decimals: int, dest_decimals: int) -> int:
    """Rescale amount between decimal bases, multiplying first and truncating."""
    if src_decimals == dest_decimals:
        return amount
    return amount * 10**dest_decimals // 10**src_decimals


def _require_amount(amount: int) -> None:
    if amount <= 0 or amount > UINT256_MAX:
        raise InvalidAmount(amount)


def _require_account(account: bytes) -> bytes:
    account = bytes(account)
    if len(account) != 32:
        raise InvalidAddressLength(32, len(account))
    if account == bytes(32):
        raise InvalidDestAccount()
    return account


def resolve_recipient(dest_account: bytes) -> str:
    """
    Local recipient of a 32-byte destination account.

    Accepts a left-padded address, or a universal address whose chain type
    must be EVM.
    """
    dest_account = _require_account(dest_account)
    if dest_account[:4] != bytes(4):
        decode_strict(dest_account)
        raw = decode_as_chain_type(dest_account, ChainType.EVM)
        return Web3.to_checksum_address("0x" + raw.hex())
    if dest_account[:12] != bytes(12):
        raise InvalidDestAccount()
    return bytes32_to_address(dest_account)


class BridgeCore(Revertible, LoggerMixin):
    """
    One bridge deployment on one chain.

    Holds deposit records and pending withdrawals, dispatches funds through
    the custody strategy registered for each token, and enforces roles,
    fees, the cancel window, pause and rate limits.
    """

    _state_fields = (
        "_deposits",
        "_deposit_hash_by_nonce",
        "_deposit_nonce",
        "_withdraws",
        "_approved_nonces",
        "_cancel_window",
        "_fee_config",
        "_custom_fees",
        "_paused",
        "_rate_limits",
        "_rate_windows",
        "_locked_native",
        "_events",
    )

    def __init__(
        self,
        chain: LocalChain,
        access: AccessManager,
        chains: ChainRegistry,
        tokens: TokenRegistry,
        lock_unlock: LockUnlockCustody,
        mint_burn: MintBurnCustody,
        fee_config: FeeConfig,
        cancel_window: int = DEFAULT_CANCEL_WINDOW,
    ):
        validate_config(fee_config)
        self._require_window_bounds(cancel_window)

        self.chain = chain
        self.address = derive_address(f"{chain.name}:bridge")
        self.access = access
        self.chains = chains
        self.tokens = tokens
        self.lock_unlock = lock_unlock
        self.mint_burn = mint_burn
        self._custody: dict[TokenType, CustodyStrategy] = {
            TokenType.LOCK_UNLOCK: lock_unlock,
            TokenType.MINT_BURN: mint_burn,
        }

        self._deposits: dict[bytes, DepositRecord] = {}
        self._deposit_hash_by_nonce: dict[int, bytes] = {}
        self._deposit_nonce = 1
        self._withdraws: dict[bytes, PendingWithdraw] = {}
        self._approved_nonces: set[tuple[bytes, int]] = set()
        self._cancel_window = cancel_window
        self._fee_config = fee_config
        self._custom_fees: dict[str, CustomAccountFee] = {}
        self._paused = False
        self._rate_limits: dict[str, RateLimitConfig] = {}
        self._rate_windows: dict[str, RateLimitWindow] = {}
        self._locked_native = 0
        self._events: list[BridgeEvent] = []

        chain.register(self)

    @classmethod
    def deploy(
        cls,
        chain: LocalChain,
        admin: str,
        fee_recipient: str,
        cancel_window: int = DEFAULT_CANCEL_WINDOW,
        fee_config: Optional[FeeConfig] = None,
    ) -> "BridgeCore":
        """Deploy a bridge with its registries and custody modules wired together."""
        access = chain.register(AccessManager(admin))
        chains = chain.register(ChainRegistry(access))
        tokens = chain.register(TokenRegistry(access, chains))
        lock_unlock = LockUnlockCustody(chain, admin)
        mint_burn = MintBurnCustody(chain, admin)

        bridge = cls(
            chain,
            access,
            chains,
            tokens,
            lock_unlock,
            mint_burn,
            fee_config or FeeConfig(fee_recipient=Web3.to_checksum_address(fee_recipient)),
            cancel_window,
        )
        lock_unlock.set_authorized(admin, bridge.address, True)
        mint_burn.set_authorized(admin, bridge.address, True)
        return bridge

    # ===================
    # Internals
    # ===================

    @property
    def chain_id(self) -> bytes:
        return self.chain.chain_id

    def _require_not_paused(self) -> None:
        if self._paused:
            raise BridgePaused()

    @staticmethod
    def _require_window_bounds(seconds: int) -> None:
        if seconds < MIN_CANCEL_WINDOW or seconds > MAX_CANCEL_WINDOW:
            raise CancelWindowOutOfBounds(seconds, MIN_CANCEL_WINDOW, MAX_CANCEL_WINDOW)

    def _emit(self, event: BridgeEvent) -> None:
        self._events.append(event)

    def _balance_of(self, token: str, account: str) -> int:
        if not self.chain.has_token(token):
            return 0
        return self.chain.token(token).balance_of(account)

    def _load_withdraw(self, transfer_hash: bytes) -> PendingWithdraw:
        pending = self._withdraws.get(bytes(transfer_hash))
        if pending is None:
            raise WithdrawNotFound(bytes(transfer_hash))
        return pending

    def _window_end(self, pending: PendingWithdraw) -> int:
        return pending.approved_at + self._cancel_window

    def _validate_outgoing(
        self,
        token: str,
        amount: int,
        dest_chain: bytes,
        dest_account: bytes,
    ) -> TokenMapping:
        _require_amount(amount)
        self.chains.revert_if_not_registered(dest_chain)
        mapping = self.tokens.get_dest_token_mapping(token, dest_chain)
        _require_account(dest_account)
        return mapping

    def _record_deposit(
        self,
        depositor: str,
        mapping: TokenMapping,
        dest_account: bytes,
        net_amount: int,
        fee: int,
    ) -> bytes:
        nonce = self._deposit_nonce
        src_account = address_to_bytes32(depositor)
        transfer_hash = compute_transfer_hash(
            self.chain_id,
            mapping.dest_chain,
            src_account,
            bytes(dest_account),
            mapping.dest_token,
            net_amount,
            nonce,
        )
        self._deposit_nonce = nonce + 1

        self._deposits[transfer_hash] = DepositRecord(
            transfer_hash=transfer_hash,
            nonce=nonce,
            src_account=src_account,
            dest_chain=mapping.dest_chain,
            dest_account=bytes(dest_account),
            token=mapping.token,
            dest_token=mapping.dest_token,
            amount=net_amount,
            fee=fee,
            timestamp=self.chain.now(),
        )
        self._deposit_hash_by_nonce[nonce] = transfer_hash
        self._emit(DepositEvent(
            transfer_hash=transfer_hash,
            nonce=nonce,
            dest_chain=mapping.dest_chain,
            dest_token=mapping.dest_token,
            dest_account=bytes(dest_account),
            src_account=src_account,
            token=mapping.token,
            amount=net_amount,
            fee=fee,
        ))

        self.log.info(
            "deposit_recorded",
            transfer_hash=bytes32_to_hex(transfer_hash),
            nonce=nonce,
            token=mapping.token,
            dest_chain=mapping.dest_chain.hex(),
            amount=net_amount,
            fee=fee,
        )
        return transfer_hash

    # ===================
    # Deposits
    # ===================

    def deposit_erc20(
        self,
        caller: str,
        token: str,
        amount: int,
        dest_chain: bytes,
        dest_account: bytes,
    ) -> bytes:
        """Deposit a lock/unlock token. Requires allowances to the bridge (fee) and custody (net)."""
        return self._deposit_token(caller, token, amount, dest_chain, dest_account, TokenType.LOCK_UNLOCK)

    def deposit_erc20_mintable(
        self,
        caller: str,
        token: str,
        amount: int,
        dest_chain: bytes,
        dest_account: bytes,
    ) -> bytes:
        """Deposit a mint/burn token; the net amount is burned."""
        return self._deposit_token(caller, token, amount, dest_chain, dest_account, TokenType.MINT_BURN)

    def _deposit_token(
        self,
        caller: str,
        token: str,
        amount: int,
        dest_chain: bytes,
        dest_account: bytes,
        expected: TokenType,
    ) -> bytes:
        with self.chain.atomic():
            self._require_not_paused()
            caller = Web3.to_checksum_address(caller)
            mapping = self._validate_outgoing(token, amount, dest_chain, dest_account)
            if self.tokens.get_token_type(mapping.token) != expected:
                raise WrongTokenType(mapping.token, expected.value)

            fee = self.calculate_fee(caller, amount)
            net_amount = amount - fee

            erc20 = self.chain.token(mapping.token)
            if fee > 0:
                erc20.transfer_from(self.address, caller, self._fee_config.fee_recipient, fee)
            self._custody[expected].escrow(self.address, caller, mapping.token, net_amount)

            return self._record_deposit(caller, mapping, dest_account, net_amount, fee)

    def deposit_native(self, caller: str, dest_chain: bytes, dest_account: bytes, value: int) -> bytes:
        """Deposit the native asset attached as value."""
        with self.chain.atomic():
            self._require_not_paused()
            caller = Web3.to_checksum_address(caller)
            mapping = self._validate_outgoing(NATIVE_TOKEN, value, dest_chain, dest_account)

            fee = self.calculate_fee(caller, value)
            net_amount = value - fee

            if fee > 0:
                self.chain.bank.transfer(caller, self._fee_config.fee_recipient, fee)
            self.chain.bank.transfer(caller, self.address, net_amount)
            self._locked_native += net_amount

            return self._record_deposit(caller, mapping, dest_account, net_amount, fee)

    # ===================
    # Withdrawals
    # ===================

    def withdraw_submit(
        self,
        caller: str,
        src_chain: bytes,
        src_account: bytes,
        dest_account: bytes,
        token: str,
        amount: int,
        nonce: int,
        src_decimals: int,
        value: int = 0,
    ) -> bytes:
        """
        Record an incoming transfer. Anyone may submit.

        Args:
            caller: Submitter; pays the optional operator tip
            src_chain: 4-byte id of the chain the deposit was made on
            src_account: Depositor as 32 bytes
            dest_account: Recipient as 32 bytes
            token: Local token that will be paid out
            amount: Amount in source-chain decimals
            nonce: Deposit nonce on the source chain
            src_decimals: Token decimals on the source chain
            value: Native tip forwarded to the approving operator

        Returns:
            The transfer hash
        """
        with self.chain.atomic():
            self._require_not_paused()
            _require_amount(amount)
            if nonce < 0 or nonce > UINT256_MAX:
                raise InvalidNonce(nonce)
            require_decimals(src_decimals)
            self.chains.revert_if_not_registered(src_chain)
            token = Web3.to_checksum_address(token)
            self.tokens.get_dest_token_mapping(token, src_chain)
            recipient = resolve_recipient(dest_account)
            src_account = bytes(src_account)
            if len(src_account) != 32:
                raise InvalidAddressLength(32, len(src_account))

            transfer_hash = compute_transfer_hash(
                bytes(src_chain),
                self.chain_id,
                src_account,
                bytes(dest_account),
                address_to_bytes32(token),
                amount,
                nonce,
            )
            if transfer_hash in self._withdraws:
                raise WithdrawAlreadySubmitted(transfer_hash)

            if value < 0:
                raise InvalidAmount(value)
            if value > 0:
                self.chain.bank.transfer(caller, self.address, value)

            self._withdraws[transfer_hash] = PendingWithdraw(
                transfer_hash=transfer_hash,
                src_chain=bytes(src_chain),
                src_account=src_account,
                dest_account=bytes(dest_account),
                token=token,
                recipient=recipient,
                amount=amount,
                nonce=nonce,
                src_decimals=src_decimals,
                dest_decimals=self.tokens.get_token_decimals(token),
                operator_gas=value,
                submitted_at=self.chain.now(),
            )
            self._emit(WithdrawSubmitEvent(transfer_hash, bytes(src_chain), nonce, amount, value))
            self.log.info(
                "withdraw_submitted",
                transfer_hash=bytes32_to_hex(transfer_hash),
                src_chain=bytes(src_chain).hex(),
                nonce=nonce,
                amount=amount,
                operator_gas=value,
            )
            return transfer_hash

    def withdraw_approve(
        self,
        caller: str,
        transfer_hash: bytes,
        fee: int = 0,
        fee_recipient: Optional[str] = None,
        deduct_from_amount: bool = False,
    ) -> None:
        """Operator attestation that the deposit exists; starts the cancel window."""
        with self.chain.atomic():
            self.access.require_operator(caller)
            pending = self._load_withdraw(transfer_hash)
            if pending.executed:
                raise WithdrawAlreadyExecuted(pending.transfer_hash)
            if pending.approved:
                raise WithdrawAlreadyApproved(pending.transfer_hash)
            if fee < 0:
                raise InvalidAmount(fee)

            native = is_native_token(pending.token)
            if deduct_from_amount and not native:
                raise ApprovalRequiresNativePath(pending.transfer_hash, pending.token)
            if native and fee > 0 and not deduct_from_amount:
                raise ApprovalNotNativePath(pending.transfer_hash)
            if deduct_from_amount:
                payout = normalize_decimals(pending.amount, pending.src_decimals, pending.dest_decimals)
                if fee > payout:
                    raise FeeExceedsAmount(fee, payout)

            nonce_key = (pending.src_chain, pending.nonce)
            if nonce_key in self._approved_nonces:
                raise WithdrawNonceAlreadyUsed(pending.src_chain, pending.nonce)
            self._approved_nonces.add(nonce_key)

            pending.fee = fee
            pending.fee_recipient = Web3.to_checksum_address(fee_recipient or self._fee_config.fee_recipient)
            pending.deduct_from_amount = deduct_from_amount
            pending.approved = True
            pending.approved_at = self.chain.now()

            if pending.operator_gas > 0:
                self.chain.bank.transfer(self.address, caller, pending.operator_gas)

            self._emit(WithdrawApproveEvent(
                pending.transfer_hash,
                Web3.to_checksum_address(caller),
                fee,
                pending.fee_recipient,
                deduct_from_amount,
                pending.approved_at,
            ))
            self.log.info(
                "withdraw_approved",
                transfer_hash=bytes32_to_hex(pending.transfer_hash),
                operator=caller,
                fee=fee,
                deduct_from_amount=deduct_from_amount,
                window_end=self._window_end(pending),
            )

    def withdraw_cancel(self, caller: str, transfer_hash: bytes) -> None:
        """Block an approved withdrawal while its cancel window is open."""
        with self.chain.atomic():
            self.access.require_canceler(caller)
            pending = self._load_withdraw(transfer_hash)
            if pending.executed:
                raise WithdrawAlreadyExecuted(pending.transfer_hash)
            if not pending.approved:
                raise WithdrawNotApproved(pending.transfer_hash)
            if pending.cancelled:
                raise WithdrawCancelled(pending.transfer_hash)
            window_end = self._window_end(pending)
            if self.chain.now() >= window_end:
                raise CancelWindowExpired(pending.transfer_hash, window_end)

            pending.cancelled = True
            self._emit(WithdrawCancelEvent(pending.transfer_hash, Web3.to_checksum_address(caller)))
            self.log.warning("withdraw_cancelled", transfer_hash=bytes32_to_hex(pending.transfer_hash), canceler=caller)

    def withdraw_uncancel(self, caller: str, transfer_hash: bytes) -> None:
        """Lift a cancellation and restart the cancel window."""
        with self.chain.atomic():
            self.access.require_operator(caller)
            pending = self._load_withdraw(transfer_hash)
            if pending.executed:
                raise WithdrawAlreadyExecuted(pending.transfer_hash)
            if not pending.cancelled:
                raise WithdrawNotCancelled(pending.transfer_hash)
            window_end = self._window_end(pending)
            if self.chain.now() >= window_end:
                raise CancelWindowExpired(pending.transfer_hash, window_end)

            pending.cancelled = False
            pending.approved_at = self.chain.now()
            self._emit(WithdrawUncancelEvent(pending.transfer_hash, Web3.to_checksum_address(caller), pending.approved_at))
            self.log.info(
                "withdraw_uncancelled",
                transfer_hash=bytes32_to_hex(pending.transfer_hash),
                operator=caller,
                window_end=self._window_end(pending),
            )

    def withdraw_execute_unlock(self, caller: str, transfer_hash: bytes, value: int = 0) -> int:
        """Pay out a lock/unlock (or native) withdrawal. Anyone may execute."""
        return self._execute(caller, transfer_hash, TokenType.LOCK_UNLOCK, value)

    def withdraw_execute_mint(self, caller: str, transfer_hash: bytes, value: int = 0) -> int:
        """Pay out a mint/burn withdrawal. Anyone may execute."""
        return self._execute(caller, transfer_hash, TokenType.MINT_BURN, value)

    def _execute(self, caller: str, transfer_hash: bytes, expected: TokenType, value: int) -> int:
        with self.chain.atomic():
            self._require_not_paused()
            pending = self._load_withdraw(transfer_hash)
            if pending.executed:
                raise WithdrawAlreadyExecuted(pending.transfer_hash)
            if not pending.approved:
                raise WithdrawNotApproved(pending.transfer_hash)
            if pending.cancelled:
                raise WithdrawCancelled(pending.transfer_hash)
            window_end = self._window_end(pending)
            if self.chain.now() < window_end:
                raise CancelWindowActive(window_end)
            if self.tokens.get_token_type(pending.token) != expected:
                raise WrongTokenType(pending.token, expected.value)

            payout = normalize_decimals(pending.amount, pending.src_decimals, pending.dest_decimals)
            if payout > UINT256_MAX:
                raise InvalidAmount(payout)
            self._consume_rate_limit(pending.token, payout)
            pending.executed = True

            self._collect_caller_fee(caller, pending, value)
            deducted = pending.fee if pending.deduct_from_amount else 0
            if is_native_token(pending.token):
                self._release_native(pending, payout, deducted)
            else:
                self._custody[expected].release(self.address, pending.recipient, pending.token, payout)

            self._emit(WithdrawExecuteEvent(pending.transfer_hash, pending.recipient, pending.token, payout - deducted, pending.fee))
            self.log.info(
                "withdraw_executed",
                transfer_hash=bytes32_to_hex(pending.transfer_hash),
                recipient=pending.recipient,
                token=pending.token,
                amount=payout - deducted,
                fee=pending.fee,
            )
            return payout - deducted

    def _collect_caller_fee(self, caller: str, pending: PendingWithdraw, value: int) -> None:
        """Forward attached native value to the fee recipient; no refund of any excess."""
        required = 0 if pending.deduct_from_amount else pending.fee
        if value < required:
            raise InsufficientNativeValue(value, required)
        if value > 0:
            self.chain.bank.transfer(caller, pending.fee_recipient, value)

    def _release_native(self, pending: PendingWithdraw, payout: int, deducted: int) -> None:
        if payout > self._locked_native:
            raise InsufficientLiquidity(self._locked_native, payout)
        self._locked_native -= payout
        self.chain.bank.transfer(self.address, pending.recipient, payout - deducted)
        if deducted > 0:
            self.chain.bank.transfer(self.address, pending.fee_recipient, deducted)

    def _consume_rate_limit(self, token: str, amount: int) -> None:
        limit = self._rate_limits.get(token)
        if limit is None:
            return
        if limit.max_per_transaction and amount > limit.max_per_transaction:
            raise RateLimitExceeded("per_transaction", limit.max_per_transaction, amount)
        if not limit.max_per_period:
            return

        now = self.chain.now()
        window = self._rate_windows.get(token)
        if window is None or now >= window.window_start + RATE_LIMIT_PERIOD:
            window = RateLimitWindow(window_start=now, used=0)
        if window.used + amount > limit.max_per_period:
            raise RateLimitExceeded("per_period", limit.max_per_period, amount)
        self._rate_windows[token] = RateLimitWindow(window.window_start, window.used + amount)

    # ===================
    # Admin
    # ===================

    def set_cancel_window(self, caller: str, seconds: int) -> None:
        self.access.require_admin(caller)
        self._require_window_bounds(seconds)
        self._cancel_window = seconds
        self._emit(ConfigEvent("cancel_window", str(seconds)))
        self.log.info("cancel_window_updated", seconds=seconds)

    def set_fee_config(self, caller: str, config: FeeConfig) -> None:
        self.access.require_admin(caller)
        validate_config(config)
        self._fee_config = dataclasses.replace(config, fee_recipient=Web3.to_checksum_address(config.fee_recipient))
        self._emit(ConfigEvent("fee_config", repr(self._fee_config)))
        self.log.info(
            "fee_config_updated",
            standard_fee_bps=config.standard_fee_bps,
            discounted_fee_bps=config.discounted_fee_bps,
            fee_recipient=config.fee_recipient,
        )

    def set_custom_account_fee(self, caller: str, account: str, fee_bps: int) -> None:
        self.access.require_admin(caller)
        custom_fee = CustomAccountFee(fee_bps=fee_bps, is_set=True)
        validate_custom_fee(custom_fee)
        self._custom_fees[Web3.to_checksum_address(account)] = custom_fee
        self.log.info("custom_fee_set", account=account, fee_bps=fee_bps)

    def remove_custom_account_fee(self, caller: str, account: str) -> None:
        self.access.require_admin(caller)
        self._custom_fees.pop(Web3.to_checksum_address(account), None)
        self.log.info("custom_fee_removed", account=account)

    def set_rate_limit(self, caller: str, token: str, max_per_transaction: int = 0, max_per_period: int = 0) -> None:
        self.access.require_admin(caller)
        if max_per_transaction < 0 or max_per_period < 0:
            raise InvalidAmount(min(max_per_transaction, max_per_period))
        self._rate_limits[Web3.to_checksum_address(token)] = RateLimitConfig(max_per_transaction, max_per_period)
        self.log.info("rate_limit_set", token=token, max_per_transaction=max_per_transaction, max_per_period=max_per_period)

    def pause(self, caller: str) -> None:
        self.access.require_admin(caller)
        self._paused = True
        self._emit(ConfigEvent("paused", "true"))
        self.log.warning("bridge_paused", admin=caller)

    def unpause(self, caller: str) -> None:
        self.access.require_admin(caller)
        self._paused = False
        self._emit(ConfigEvent("paused", "false"))
        self.log.info("bridge_unpaused", admin=caller)

    # ===================
    # Queries
    # ===================

    def get_deposit(self, transfer_hash: bytes) -> Optional[DepositRecord]:
        return self._deposits.get(bytes(transfer_hash))

    def get_deposit_by_nonce(self, nonce: int) -> Optional[DepositRecord]:
        transfer_hash = self._deposit_hash_by_nonce.get(nonce)
        return self._deposits.get(transfer_hash) if transfer_hash else None

    def get_deposit_nonce(self) -> int:
        """Nonce the next deposit will receive."""
        return self._deposit_nonce

    def get_last_deposit_nonce(self) -> int:
        return self._deposit_nonce - 1

    def get_pending_withdraw(self, transfer_hash: bytes) -> Optional[PendingWithdraw]:
        pending = self._withdraws.get(bytes(transfer_hash))
        return dataclasses.replace(pending) if pending else None

    def get_pending_withdraw_hashes(self) -> list[bytes]:
        return list(self._withdraws)

    def get_withdraw_status(self, transfer_hash: bytes) -> WithdrawStatus:
        return self._load_withdraw(transfer_hash).status(self.chain.now(), self._cancel_window)

    def get_cancel_window(self) -> int:
        return self._cancel_window

    def get_fee_config(self) -> FeeConfig:
        return self._fee_config

    def get_custom_account_fee(self, account: str) -> CustomAccountFee:
        return self._custom_fees.get(Web3.to_checksum_address(account), NO_CUSTOM_FEE)

    def get_fee_type(self, account: str) -> FeeType:
        return get_fee_type(self._fee_config, self.get_custom_account_fee(account), account, self._balance_of)

    def get_effective_fee_bps(self, account: str) -> int:
        return get_effective_fee_bps(self._fee_config, self.get_custom_account_fee(account), account, self._balance_of)

    def calculate_fee(self, account: str, amount: int) -> int:
        return calculate_fee(self._fee_config, self.get_custom_account_fee(account), account, amount, self._balance_of)

    def get_rate_limit(self, token: str) -> Optional[RateLimitConfig]:
        return self._rate_limits.get(Web3.to_checksum_address(token))

    def get_locked_native_balance(self) -> int:
        return self._locked_native

    def is_paused(self) -> bool:
        return self._paused

    @property
    def events(self) -> tuple[BridgeEvent, ...]:
        return tuple(self._events)

    def register_native(self, caller: str) -> None:
        """Register the native asset as a lock/unlock token held by the bridge."""
        self.tokens.register_token(caller, NATIVE_TOKEN, TokenType.LOCK_UNLOCK, NATIVE_DECIMALS)
