"""
Role bookkeeping consumed by the bridge: one admin, enumerable operator and
canceler sets.
"""

from typing import Iterable, Iterator

from web3 import Web3

from cl8y_bridge.services.chain import Revertible
from cl8y_bridge.services.errors import Unauthorized


def normalize_address(address: str) -> str:
    return Web3.to_checksum_address(address)


class OrderedAddressSet:
    """Insertion-ordered set of addresses with positional access."""

    def __init__(self, addresses: Iterable[str] = ()):
        self._items: list[str] = []
        self._members: set[str] = set()
        for address in addresses:
            self.add(address)

    def add(self, address: str) -> bool:
        address = normalize_address(address)
        if address in self._members:
            return False
        self._items.append(address)
        self._members.add(address)
        return True

    def discard(self, address: str) -> bool:
        address = normalize_address(address)
        if address not in self._members:
            return False
        self._members.remove(address)
        self._items.remove(address)
        return True

    def at(self, index: int) -> str:
        return self._items[index]

    def values(self) -> list[str]:
        return list(self._items)

    def __contains__(self, address: object) -> bool:
        if not isinstance(address, str):
            return False
        return normalize_address(address) in self._members

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)


class AccessManager(Revertible):
    """Admin, operators and cancelers."""

    _state_fields = ("admin", "_operators", "_cancelers")

    def __init__(self, admin: str):
        self.admin = normalize_address(admin)
        self._operators = OrderedAddressSet()
        self._cancelers = OrderedAddressSet()

    # ===================
    # Checks
    # ===================

    def is_admin(self, account: str) -> bool:
        return normalize_address(account) == self.admin

    def is_operator(self, account: str) -> bool:
        return account in self._operators

    def is_canceler(self, account: str) -> bool:
        return account in self._cancelers

    def require_admin(self, caller: str) -> None:
        if not self.is_admin(caller):
            raise Unauthorized(caller, "admin")

    def require_operator(self, caller: str) -> None:
        if not self.is_operator(caller):
            raise Unauthorized(caller, "operator")

    def require_canceler(self, caller: str) -> None:
        if not self.is_canceler(caller):
            raise Unauthorized(caller, "canceler")

    # ===================
    # Admin Mutations
    # ===================

    def grant_operator(self, caller: str, account: str) -> bool:
        self.require_admin(caller)
        return self._operators.add(account)

    def revoke_operator(self, caller: str, account: str) -> bool:
        self.require_admin(caller)
        return self._operators.discard(account)

    def grant_canceler(self, caller: str, account: str) -> bool:
        self.require_admin(caller)
        return self._cancelers.add(account)

    def revoke_canceler(self, caller: str, account: str) -> bool:
        self.require_admin(caller)
        return self._cancelers.discard(account)

    def get_operators(self) -> list[str]:
        return self._operators.values()

    def get_cancelers(self) -> list[str]:
        return self._cancelers.values()
