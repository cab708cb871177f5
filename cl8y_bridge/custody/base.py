"""
Custody strategies hold or supply the tokens behind a bridge transfer.

Every strategy checks token balances before and after it moves funds, so a
token that charges a transfer tax or otherwise misreports a transfer makes
the call revert instead of leaving the bridge under-collateralized.
"""

import functools
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, TypeVar

from web3 import Web3

from cl8y_bridge.services.chain import LocalChain, Revertible, derive_address
from cl8y_bridge.services.errors import BridgeError, ReentrantCall, Unauthorized
from cl8y_bridge.services.roles import OrderedAddressSet
from cl8y_bridge.utils.logging import LoggerMixin


class TokenType(str, Enum):
    """Custody strategy a registered token is bridged with."""
    LOCK_UNLOCK = "lock_unlock"
    MINT_BURN = "mint_burn"


# ===================
# Custody Errors
# ===================

class CustodyError(BridgeError):
    """Base class for custody and token accounting failures."""
    pass


class InsufficientBalance(CustodyError):
    def __init__(self, account: str, balance: int, required: int):
        self.account = account
        self.balance = balance
        self.required = required
        super().__init__(f"Insufficient balance for {account}: have {balance}, need {required}")


class InsufficientAllowance(CustodyError):
    def __init__(self, owner: str, spender: str, allowance: int, required: int):
        self.owner = owner
        self.spender = spender
        self.allowance = allowance
        self.required = required
        super().__init__(
            f"Insufficient allowance from {owner} to {spender}: have {allowance}, need {required}"
        )


class _BalanceMismatch(CustodyError):
    label = "balance"

    def __init__(self, account: str, expected: int, actual: int):
        self.account = account
        self.expected = expected
        self.actual = actual
        super().__init__(f"{self.label}: {account} expected {expected}, got {actual}")


class InvalidLockThis(_BalanceMismatch):
    label = "Lock credited custody incorrectly"


class InvalidLockFrom(_BalanceMismatch):
    label = "Lock debited depositor incorrectly"


class InvalidUnlockTo(_BalanceMismatch):
    label = "Unlock credited recipient incorrectly"


class InvalidUnlockThis(_BalanceMismatch):
    label = "Unlock debited custody incorrectly"


class InvalidMint(_BalanceMismatch):
    label = "Mint credited recipient incorrectly"


class InvalidBurn(_BalanceMismatch):
    label = "Burn debited holder incorrectly"


# ===================
# Reentrancy Guard
# ===================

F = TypeVar("F", bound=Callable)


def nonreentrant(method: F) -> F:
    """Reject a call into the module while another of its guarded calls is running."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        if self._entered:
            raise ReentrantCall(type(self).__name__)
        self._entered = True
        try:
            with self.chain.atomic():
                return method(self, *args, **kwargs)
        finally:
            self._entered = False

    return wrapper  # type: ignore[return-value]


# ===================
# Strategy Base
# ===================

class CustodyStrategy(Revertible, LoggerMixin, ABC):
    """
    Base class for custody modules.

    Only authorized callers (the bridge) may move funds. escrow() takes an
    outgoing deposit into custody and release() pays out an executed
    withdrawal; subclasses map these to lock/unlock or burn/mint.
    """

    token_type: TokenType
    _state_fields = ("_authorized", "_entered")

    def __init__(self, chain: LocalChain, admin: str, label: str):
        self.chain = chain
        self.admin = Web3.to_checksum_address(admin)
        self.address = derive_address(f"{chain.name}:{label}")
        self._authorized = OrderedAddressSet()
        self._entered = False
        chain.register(self)

    def set_authorized(self, caller: str, account: str, authorized: bool) -> None:
        if Web3.to_checksum_address(caller) != self.admin:
            raise Unauthorized(caller, "admin")
        if authorized:
            self._authorized.add(account)
        else:
            self._authorized.discard(account)

    def is_authorized(self, account: str) -> bool:
        return account in self._authorized

    def get_authorized(self) -> list[str]:
        return self._authorized.values()

    def _require_authorized(self, caller: str) -> None:
        if not self.is_authorized(caller):
            raise Unauthorized(caller, "custody caller")

    def _check_delta(self, error: type, account: str, before: int, expected: int, after: int) -> None:
        if after != before + expected:
            self.log.warning(
                "balance_delta_mismatch",
                check=error.__name__,
                account=account,
                expected=before + expected,
                actual=after,
            )
            raise error(account, before + expected, after)

    @abstractmethod
    def escrow(self, caller: str, from_address: str, token: str, amount: int) -> None:
        """Take a deposit's net amount into custody."""
        pass

    @abstractmethod
    def release(self, caller: str, to: str, token: str, amount: int) -> None:
        """Pay out an executed withdrawal."""
        pass
