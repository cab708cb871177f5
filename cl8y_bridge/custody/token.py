"""
In-memory fungible token with optional transfer tax and transfer hook.
"""

from typing import Callable, Optional

from web3 import Web3

from cl8y_bridge.custody.base import InsufficientAllowance, InsufficientBalance
from cl8y_bridge.services.chain import Revertible
from cl8y_bridge.services.errors import InvalidAmount, Unauthorized
from cl8y_bridge.services.fee import BPS_DENOMINATOR
from cl8y_bridge.services.roles import OrderedAddressSet

# (sender, recipient, amount)
TransferHook = Callable[[str, str, int], None]


def _addr(address: str) -> str:
    return Web3.to_checksum_address(address)


class FungibleToken(Revertible):
    """
    ERC-20 style ledger.

    A non-zero transfer_tax_bps burns that share of every transfer, which is
    how fee-on-transfer tokens are modelled. on_transfer runs after each
    balance move and may call back into other modules.
    """

    _state_fields = ("_balances", "_allowances", "_total_supply", "_minters")

    def __init__(self, address: str, symbol: str, decimals: int = 18, transfer_tax_bps: int = 0):
        self.address = _addr(address)
        self.symbol = symbol
        self.decimals = decimals
        self.transfer_tax_bps = transfer_tax_bps
        self.on_transfer: Optional[TransferHook] = None
        self._balances: dict[str, int] = {}
        self._allowances: dict[tuple[str, str], int] = {}
        self._total_supply = 0
        self._minters = OrderedAddressSet()

    def balance_of(self, account: str) -> int:
        return self._balances.get(_addr(account), 0)

    def total_supply(self) -> int:
        return self._total_supply

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((_addr(owner), _addr(spender)), 0)

    def approve(self, owner: str, spender: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmount(amount)
        self._allowances[(_addr(owner), _addr(spender))] = amount

    def transfer(self, sender: str, to: str, amount: int) -> None:
        self._move(_addr(sender), _addr(to), amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> None:
        self._spend_allowance(_addr(owner), _addr(spender), amount)
        self._move(_addr(owner), _addr(to), amount)

    # ===================
    # Supply
    # ===================

    def add_minter(self, account: str) -> None:
        self._minters.add(account)

    def is_minter(self, account: str) -> bool:
        return account in self._minters

    def mint(self, caller: str, to: str, amount: int) -> None:
        if not self.is_minter(caller):
            raise Unauthorized(caller, "minter")
        if amount < 0:
            raise InvalidAmount(amount)
        to = _addr(to)
        self._balances[to] = self._balances.get(to, 0) + amount
        self._total_supply += amount

    def burn_from(self, caller: str, owner: str, amount: int) -> None:
        """Destroy amount held by owner, consuming owner's allowance to caller."""
        if not self.is_minter(caller):
            raise Unauthorized(caller, "minter")
        owner = _addr(owner)
        self._spend_allowance(owner, _addr(caller), amount)
        self._debit(owner, amount)
        self._total_supply -= amount

    # ===================
    # Internals
    # ===================

    def _spend_allowance(self, owner: str, spender: str, amount: int) -> None:
        current = self._allowances.get((owner, spender), 0)
        if current < amount:
            raise InsufficientAllowance(owner, spender, current, amount)
        self._allowances[(owner, spender)] = current - amount

    def _debit(self, account: str, amount: int) -> None:
        if amount < 0:
            raise InvalidAmount(amount)
        balance = self._balances.get(account, 0)
        if balance < amount:
            raise InsufficientBalance(account, balance, amount)
        self._balances[account] = balance - amount

    def _move(self, sender: str, to: str, amount: int) -> None:
        self._debit(sender, amount)
        tax = amount * self.transfer_tax_bps // BPS_DENOMINATOR
        self._balances[to] = self._balances.get(to, 0) + amount - tax
        self._total_supply -= tax
        if self.on_transfer is not None:
            self.on_transfer(sender, to, amount)
