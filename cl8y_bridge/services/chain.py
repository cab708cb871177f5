"""
Local chain execution model.

A LocalChain sequences every state-changing call: one call completes fully
before the next begins, and a call that raises leaves no state behind. State
holders register with the chain and expose snapshot()/restore() over an
explicit list of mutable fields; atomic() snapshots them all on entry and
restores them if an exception escapes.
"""

import copy
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

from web3 import Web3

from cl8y_bridge.utils.logging import LoggerMixin

Clock = Callable[[], int]


def derive_address(label: str) -> str:
    """Deterministic checksummed address for a named on-chain component."""
    return Web3.to_checksum_address("0x" + bytes(Web3.keccak(text=label))[12:].hex())


class Revertible:
    """State holder whose mutable fields can be snapshotted and restored."""

    _state_fields: tuple[str, ...] = ()

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy({name: getattr(self, name) for name in self._state_fields})

    def restore(self, state: dict[str, Any]) -> None:
        for name, value in state.items():
            setattr(self, name, value)


class LocalChain(LoggerMixin):
    """One ledger: its id, clock, native bank, deployed tokens and state holders."""

    def __init__(self, chain_id: bytes, clock: Optional[Clock] = None, name: str = ""):
        from cl8y_bridge.custody.native import NativeBank

        if len(chain_id) != 4:
            raise ValueError(f"Chain id must be 4 bytes, got {len(chain_id)}")
        self.chain_id = bytes(chain_id)
        self.name = name or f"chain-{self.chain_id.hex()}"
        self._clock = clock or (lambda: int(time.time()))
        self._participants: list[Revertible] = []
        self._tokens: dict[str, Any] = {}
        self._depth = 0
        self.bank = self.register(NativeBank())

    def now(self) -> int:
        """Current block time in seconds."""
        return self._clock()

    def register(self, participant: Revertible) -> Any:
        """Track a state holder so atomic() can roll it back."""
        self._participants.append(participant)
        return participant

    # ===================
    # Tokens
    # ===================

    def deploy_token(
        self,
        symbol: str,
        decimals: int = 18,
        transfer_tax_bps: int = 0,
    ):
        """Deploy an in-memory fungible token at a deterministic address."""
        from cl8y_bridge.custody.token import FungibleToken

        address = derive_address(f"{self.name}:token:{symbol}:{len(self._tokens)}")
        token = FungibleToken(address, symbol, decimals=decimals, transfer_tax_bps=transfer_tax_bps)
        self._tokens[address] = self.register(token)
        self.log.debug("token_deployed", chain=self.name, symbol=symbol, address=address)
        return token

    def token(self, address: str):
        """Look up a deployed token by address."""
        address = Web3.to_checksum_address(address)
        if address not in self._tokens:
            raise KeyError(f"No token deployed at {address}")
        return self._tokens[address]

    def has_token(self, address: str) -> bool:
        return Web3.to_checksum_address(address) in self._tokens

    # ===================
    # Atomic Execution
    # ===================

    @contextmanager
    def atomic(self) -> Iterator[None]:
        """Run a call so that any exception reverts every registered state holder."""
        if self._depth:
            # Nested calls join the outermost snapshot
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        snapshots = [(participant, participant.snapshot()) for participant in self._participants]
        self._depth = 1
        try:
            yield
        except Exception as e:
            for participant, state in snapshots:
                participant.restore(state)
            self.log.debug("call_reverted", chain=self.name, error=type(e).__name__)
            raise
        finally:
            self._depth = 0
