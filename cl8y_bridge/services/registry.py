"""
Chain and token registries read by the bridge.
"""

from dataclasses import dataclass
from typing import Optional

from web3 import Web3

from cl8y_bridge.custody.base import TokenType
from cl8y_bridge.services.chain import Revertible
from cl8y_bridge.services.errors import (
    ChainNotRegistered,
    DestTokenMappingNotSet,
    InvalidDecimals,
    TokenNotRegistered,
)
from cl8y_bridge.services.hashing import chain_id_to_bytes4, keccak256
from cl8y_bridge.services.roles import AccessManager

MAX_DECIMALS = 255


def require_decimals(decimals: int) -> int:
    if not 0 <= decimals <= MAX_DECIMALS:
        raise InvalidDecimals(decimals)
    return decimals


@dataclass(frozen=True)
class ChainInfo:
    """A registered remote (or local) chain."""
    chain_id: bytes
    identifier: str
    identifier_hash: bytes


@dataclass(frozen=True)
class TokenMapping:
    """Binding of a local token to its counterpart on another chain."""
    token: str
    dest_chain: bytes
    dest_token: bytes
    dest_decimals: int


class ChainRegistry(Revertible):
    """Identifier -> 4-byte chain id, assigned incrementally from 1."""

    _state_fields = ("_chains", "_ids_by_identifier")

    def __init__(self, access: AccessManager):
        self._access = access
        self._chains: dict[bytes, ChainInfo] = {}
        self._ids_by_identifier: dict[str, bytes] = {}

    def register_chain(self, caller: str, identifier: str, chain_id: Optional[bytes] = None) -> bytes:
        """Register a chain; uses the next free id unless one is agreed out of band."""
        self._access.require_admin(caller)
        if identifier in self._ids_by_identifier:
            raise ValueError(f"Chain identifier already registered: {identifier}")
        if chain_id is None:
            next_id = max((int.from_bytes(c, "big") for c in self._chains), default=0) + 1
            chain_id = chain_id_to_bytes4(next_id)
        chain_id = bytes(chain_id)
        if len(chain_id) != 4 or chain_id == bytes(4):
            raise ValueError(f"Chain id must be 4 non-zero bytes: 0x{chain_id.hex()}")
        if chain_id in self._chains:
            raise ValueError(f"Chain id already registered: 0x{chain_id.hex()}")

        self._chains[chain_id] = ChainInfo(chain_id, identifier, keccak256(identifier.encode()))
        self._ids_by_identifier[identifier] = chain_id
        return chain_id

    def is_chain_registered(self, chain_id: bytes) -> bool:
        return bytes(chain_id) in self._chains

    def revert_if_not_registered(self, chain_id: bytes) -> None:
        if not self.is_chain_registered(chain_id):
            raise ChainNotRegistered(bytes(chain_id))

    def get_chain_id(self, identifier: str) -> Optional[bytes]:
        return self._ids_by_identifier.get(identifier)

    def get_chain(self, chain_id: bytes) -> Optional[ChainInfo]:
        return self._chains.get(bytes(chain_id))

    def get_registered_chains(self) -> list[ChainInfo]:
        return list(self._chains.values())


class TokenRegistry(Revertible):
    """Token -> custody strategy, decimals and per-destination mappings."""

    _state_fields = ("_token_types", "_decimals", "_mappings")

    def __init__(self, access: AccessManager, chains: ChainRegistry):
        self._access = access
        self._chains = chains
        self._token_types: dict[str, TokenType] = {}
        self._decimals: dict[str, int] = {}
        self._mappings: dict[tuple[str, bytes], TokenMapping] = {}

    def register_token(self, caller: str, token: str, token_type: TokenType, decimals: int) -> None:
        """Select the custody strategy for a token; fixed once chosen."""
        self._access.require_admin(caller)
        token = Web3.to_checksum_address(token)
        if token in self._token_types:
            raise ValueError(f"Token already registered: {token}")
        require_decimals(decimals)
        self._token_types[token] = TokenType(token_type)
        self._decimals[token] = decimals

    def set_token_destination(
        self,
        caller: str,
        token: str,
        dest_chain: bytes,
        dest_token: bytes,
        dest_decimals: int,
    ) -> TokenMapping:
        self._access.require_admin(caller)
        token = self._require_registered(token)
        self._chains.revert_if_not_registered(dest_chain)
        if len(dest_token) != 32:
            raise ValueError(f"Destination token must be 32 bytes, got {len(dest_token)}")
        mapping = TokenMapping(token, bytes(dest_chain), bytes(dest_token), require_decimals(dest_decimals))
        self._mappings[(token, bytes(dest_chain))] = mapping
        return mapping

    def _require_registered(self, token: str) -> str:
        token = Web3.to_checksum_address(token)
        if token not in self._token_types:
            raise TokenNotRegistered(token)
        return token

    def is_token_registered(self, token: str) -> bool:
        return Web3.to_checksum_address(token) in self._token_types

    def get_token_type(self, token: str) -> TokenType:
        return self._token_types[self._require_registered(token)]

    def get_token_decimals(self, token: str) -> int:
        return self._decimals[self._require_registered(token)]

    def get_dest_token_mapping(self, token: str, dest_chain: bytes) -> TokenMapping:
        token = self._require_registered(token)
        mapping = self._mappings.get((token, bytes(dest_chain)))
        if mapping is None:
            raise DestTokenMappingNotSet(token, bytes(dest_chain))
        return mapping

    def get_dest_token(self, token: str, dest_chain: bytes) -> bytes:
        return self.get_dest_token_mapping(token, dest_chain).dest_token

    def get_registered_tokens(self) -> list[str]:
        return list(self._token_types)
