"""Token custody strategies and the in-memory token ledgers they move."""

from cl8y_bridge.custody.base import CustodyStrategy, TokenType
from cl8y_bridge.custody.lock_unlock import LockUnlockCustody
from cl8y_bridge.custody.mint_burn import MintBurnCustody
from cl8y_bridge.custody.native import NATIVE_TOKEN, NativeBank
from cl8y_bridge.custody.token import FungibleToken

__all__ = [
    "CustodyStrategy",
    "TokenType",
    "LockUnlockCustody",
    "MintBurnCustody",
    "NATIVE_TOKEN",
    "NativeBank",
    "FungibleToken",
]
