"""
Lock/unlock custody: deposits are held by the module and withdrawals are
paid from that pool.
"""

from cl8y_bridge.custody.base import (
    CustodyStrategy,
    InvalidLockFrom,
    InvalidLockThis,
    InvalidUnlockThis,
    InvalidUnlockTo,
    TokenType,
    nonreentrant,
)
from cl8y_bridge.services.chain import LocalChain


class LockUnlockCustody(CustodyStrategy):
    token_type = TokenType.LOCK_UNLOCK

    def __init__(self, chain: LocalChain, admin: str):
        super().__init__(chain, admin, "lock-unlock")

    @nonreentrant
    def lock(self, caller: str, from_address: str, token: str, amount: int) -> None:
        """Pull amount from from_address; requires a prior allowance to this module."""
        self._require_authorized(caller)
        erc20 = self.chain.token(token)
        this_before = erc20.balance_of(self.address)
        from_before = erc20.balance_of(from_address)

        erc20.transfer_from(self.address, from_address, self.address, amount)

        self._check_delta(InvalidLockThis, self.address, this_before, amount, erc20.balance_of(self.address))
        self._check_delta(InvalidLockFrom, from_address, from_before, -amount, erc20.balance_of(from_address))
        self.log.debug("tokens_locked", token=erc20.address, from_address=from_address, amount=amount)

    @nonreentrant
    def unlock(self, caller: str, to: str, token: str, amount: int) -> None:
        self._require_authorized(caller)
        erc20 = self.chain.token(token)
        this_before = erc20.balance_of(self.address)
        to_before = erc20.balance_of(to)

        erc20.transfer(self.address, to, amount)

        self._check_delta(InvalidUnlockTo, to, to_before, amount, erc20.balance_of(to))
        self._check_delta(InvalidUnlockThis, self.address, this_before, -amount, erc20.balance_of(self.address))
        self.log.debug("tokens_unlocked", token=erc20.address, to=to, amount=amount)

    def locked_balance(self, token: str) -> int:
        return self.chain.token(token).balance_of(self.address)

    def escrow(self, caller: str, from_address: str, token: str, amount: int) -> None:
        self.lock(caller, from_address, token, amount)

    def release(self, caller: str, to: str, token: str, amount: int) -> None:
        self.unlock(caller, to, token, amount)
