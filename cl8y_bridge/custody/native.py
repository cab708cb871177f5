"""
Native asset ledger of a local chain.

The native asset is addressed in token registries by NATIVE_TOKEN, the
conventional 0xEeee... sentinel.
"""

from web3 import Web3

from cl8y_bridge.custody.base import InsufficientBalance
from cl8y_bridge.services.chain import Revertible
from cl8y_bridge.services.errors import InvalidAmount, NativeTransferFailed
from cl8y_bridge.services.roles import OrderedAddressSet

NATIVE_TOKEN = Web3.to_checksum_address("0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee")
NATIVE_DECIMALS = 18


def is_native_token(token: str) -> bool:
    return Web3.to_checksum_address(token) == NATIVE_TOKEN


class NativeBank(Revertible):
    """Native balances; accounts can be flagged to reject incoming value."""

    _state_fields = ("_balances", "_rejecting")

    def __init__(self):
        self._balances: dict[str, int] = {}
        self._rejecting = OrderedAddressSet()

    def balance_of(self, account: str) -> int:
        return self._balances.get(Web3.to_checksum_address(account), 0)

    def credit(self, account: str, amount: int) -> None:
        """Genesis allocation."""
        if amount < 0:
            raise InvalidAmount(amount)
        account = Web3.to_checksum_address(account)
        self._balances[account] = self._balances.get(account, 0) + amount

    def set_rejecting(self, account: str, rejecting: bool = True) -> None:
        if rejecting:
            self._rejecting.add(account)
        else:
            self._rejecting.discard(account)

    def transfer(self, sender: str, to: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmount(amount)
        sender = Web3.to_checksum_address(sender)
        to = Web3.to_checksum_address(to)
        if to in self._rejecting:
            raise NativeTransferFailed(to, amount)
        balance = self._balances.get(sender, 0)
        if balance < amount:
            raise InsufficientBalance(sender, balance, amount)
        self._balances[sender] = balance - amount
        self._balances[to] = self._balances.get(to, 0) + amount
