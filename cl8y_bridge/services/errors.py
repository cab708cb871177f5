"""
Typed errors raised by the bridge core.

Every validation failure aborts the call that triggered it and surfaces one
of these, carrying the offending values as attributes.
"""

from typing import Optional


def _hex(value: bytes) -> str:
    return "0x" + value.hex()


class BridgeError(Exception):
    """Base exception for all bridge failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# ===================
# Access & Lifecycle Switches
# ===================

class Unauthorized(BridgeError):
    """Caller does not hold the role an entry point requires."""

    def __init__(self, caller: str, role: str):
        self.caller = caller
        self.role = role
        super().__init__(f"Unauthorized: {caller} is not {role}")


class BridgePaused(BridgeError):
    def __init__(self):
        super().__init__("Bridge is paused")


class ReentrantCall(BridgeError):
    """A mutating entry point was re-entered while another was in progress."""

    def __init__(self, module: str):
        self.module = module
        super().__init__(f"Reentrant call into {module}")


# ===================
# Address Codec
# ===================

class InvalidChainType(BridgeError):
    def __init__(self, got: int, expected: Optional[int] = None):
        self.got = got
        self.expected = expected
        if expected is None:
            super().__init__(f"Invalid chain type: {got}")
        else:
            super().__init__(f"Invalid chain type: expected {expected}, got {got}")


class NonZeroReservedBytes(BridgeError):
    def __init__(self, reserved: bytes):
        self.reserved = reserved
        super().__init__(f"Non-zero reserved bytes: {_hex(reserved)}")


class InvalidAddressLength(BridgeError):
    def __init__(self, expected: int, got: int):
        self.expected = expected
        self.got = got
        super().__init__(f"Invalid address length: expected {expected} bytes, got {got}")


# ===================
# Registries
# ===================

class ChainNotRegistered(BridgeError):
    def __init__(self, chain: bytes):
        self.chain = chain
        super().__init__(f"Chain not registered: {_hex(chain)}")


class TokenNotRegistered(BridgeError):
    def __init__(self, token: str):
        self.token = token
        super().__init__(f"Token not registered: {token}")


class DestTokenMappingNotSet(BridgeError):
    def __init__(self, token: str, dest_chain: bytes):
        self.token = token
        self.dest_chain = dest_chain
        super().__init__(f"No destination mapping for {token} on chain {_hex(dest_chain)}")


class WrongTokenType(BridgeError):
    def __init__(self, token: str, expected: str):
        self.token = token
        self.expected = expected
        super().__init__(f"Token {token} is not registered as {expected}")


# ===================
# Deposits
# ===================

class InvalidAmount(BridgeError):
    def __init__(self, amount: int):
        self.amount = amount
        super().__init__(f"Invalid amount: {amount}")


class InvalidDestAccount(BridgeError):
    def __init__(self):
        super().__init__("Destination account must not be zero")


class InvalidDecimals(BridgeError):
    def __init__(self, decimals: int):
        self.decimals = decimals
        super().__init__(f"Token decimals must be in 0..255, got {decimals}")


class InvalidNonce(BridgeError):
    def __init__(self, nonce: int):
        self.nonce = nonce
        super().__init__(f"Invalid nonce: {nonce}")


# ===================
# Fees
# ===================

class FeeExceedsMax(BridgeError):
    def __init__(self, given: int, max: int):
        self.given = given
        self.max = max
        super().__init__(f"Fee {given} bps exceeds max {max} bps")


class InvalidFeeRate(BridgeError):
    def __init__(self, given: int):
        self.given = given
        super().__init__(f"Fee rate must not be negative, got {given} bps")


class InvalidFeeRecipient(BridgeError):
    def __init__(self):
        super().__init__("Fee recipient must not be the zero address")


class FeeExceedsAmount(BridgeError):
    def __init__(self, fee: int, amount: int):
        self.fee = fee
        self.amount = amount
        super().__init__(f"Fee {fee} exceeds withdrawal amount {amount}")


class InsufficientNativeValue(BridgeError):
    def __init__(self, given: int, required: int):
        self.given = given
        self.required = required
        super().__init__(f"Insufficient native value: sent {given}, required {required}")


class NativeTransferFailed(BridgeError):
    def __init__(self, to: str, amount: int):
        self.to = to
        self.amount = amount
        super().__init__(f"Native transfer of {amount} to {to} failed")


class ApprovalNotNativePath(BridgeError):
    """A native-asset withdrawal was approved with a fee that is not deducted from the amount."""

    def __init__(self, hash: bytes):
        self.hash = hash
        super().__init__(f"Withdrawal {_hex(hash)} is native: fee must be deducted from amount")


class ApprovalRequiresNativePath(BridgeError):
    """Deducting the fee from the amount is only possible for native-asset withdrawals."""

    def __init__(self, hash: bytes, token: str):
        self.hash = hash
        self.token = token
        super().__init__(f"Withdrawal {_hex(hash)} of {token} cannot deduct its fee from amount")


# ===================
# Withdrawal Lifecycle
# ===================

class WithdrawNotFound(BridgeError):
    def __init__(self, hash: bytes):
        self.hash = hash
        super().__init__(f"Withdrawal not found: {_hex(hash)}")


class WithdrawAlreadySubmitted(BridgeError):
    def __init__(self, hash: bytes):
        self.hash = hash
        super().__init__(f"Withdrawal already submitted: {_hex(hash)}")


class WithdrawAlreadyApproved(BridgeError):
    def __init__(self, hash: bytes):
        self.hash = hash
        super().__init__(f"Withdrawal already approved: {_hex(hash)}")


class WithdrawNotApproved(BridgeError):
    def __init__(self, hash: bytes):
        self.hash = hash
        super().__init__(f"Withdrawal not approved: {_hex(hash)}")


class WithdrawCancelled(BridgeError):
    def __init__(self, hash: bytes):
        self.hash = hash
        super().__init__(f"Withdrawal cancelled: {_hex(hash)}")


class WithdrawNotCancelled(BridgeError):
    def __init__(self, hash: bytes):
        self.hash = hash
        super().__init__(f"Withdrawal is not cancelled: {_hex(hash)}")


class WithdrawAlreadyExecuted(BridgeError):
    def __init__(self, hash: bytes):
        self.hash = hash
        super().__init__(f"Withdrawal already executed: {_hex(hash)}")


class WithdrawNonceAlreadyUsed(BridgeError):
    def __init__(self, src_chain: bytes, nonce: int):
        self.src_chain = src_chain
        self.nonce = nonce
        super().__init__(f"Nonce {nonce} from chain {_hex(src_chain)} already approved")


class CancelWindowOutOfBounds(BridgeError):
    def __init__(self, given: int, min: int, max: int):
        self.given = given
        self.min = min
        self.max = max
        super().__init__(f"Cancel window {given}s outside [{min}, {max}]")


class CancelWindowExpired(BridgeError):
    def __init__(self, hash: bytes, window_end: int):
        self.hash = hash
        self.window_end = window_end
        super().__init__(f"Cancel window for {_hex(hash)} ended at {window_end}")


class CancelWindowActive(BridgeError):
    def __init__(self, window_end: int):
        self.window_end = window_end
        super().__init__(f"Cancel window active until {window_end}")


class RateLimitExceeded(BridgeError):
    def __init__(self, limit_type: str, limit: int, requested: int):
        self.limit_type = limit_type
        self.limit = limit
        self.requested = requested
        super().__init__(f"Rate limit exceeded ({limit_type}): limit {limit}, requested {requested}")


class InsufficientLiquidity(BridgeError):
    def __init__(self, available: int, requested: int):
        self.available = available
        self.requested = requested
        super().__init__(f"Insufficient liquidity: available {available}, requested {requested}")
