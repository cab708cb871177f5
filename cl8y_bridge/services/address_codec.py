"""
Universal cross-chain address encoding.

All addresses travel between chains as 32 bytes:

    | chain type (4, big-endian) | raw address (20) | reserved (8) |

Chain type codes are permanent once assigned:
- 1: EVM (Ethereum, BSC, Polygon, ...)
- 2: Cosmos (Terra Classic, Osmosis, ...)
- 3: Solana (reserved)
- 4: Bitcoin (reserved)
"""

from dataclasses import dataclass
from enum import IntEnum

from bech32 import bech32_decode, bech32_encode, convertbits
from web3 import Web3

from cl8y_bridge.services.errors import (
    InvalidAddressLength,
    InvalidChainType,
    NonZeroReservedBytes,
)


class ChainType(IntEnum):
    """Address families that can be encoded."""
    EVM = 1
    COSMOS = 2
    SOLANA = 3
    BITCOIN = 4


CHAIN_TYPE_EVM = ChainType.EVM
CHAIN_TYPE_COSMOS = ChainType.COSMOS
CHAIN_TYPE_SOLANA = ChainType.SOLANA
CHAIN_TYPE_BITCOIN = ChainType.BITCOIN

UNIVERSAL_ADDRESS_LENGTH = 32
RAW_ADDRESS_LENGTH = 20
RESERVED_LENGTH = 8
EMPTY_RESERVED = bytes(RESERVED_LENGTH)


def _require_length(value: bytes, expected: int) -> bytes:
    value = bytes(value)
    if len(value) != expected:
        raise InvalidAddressLength(expected, len(value))
    return value


# ===================
# Encoding
# ===================

def encode(chain_type: int, raw_address: bytes) -> bytes:
    """Encode a chain-tagged address with an empty reserved field."""
    return encode_with_reserved(chain_type, raw_address, EMPTY_RESERVED)


def encode_with_reserved(chain_type: int, raw_address: bytes, reserved: bytes) -> bytes:
    """Encode a chain-tagged address carrying 8 bytes of reserved metadata."""
    if chain_type <= 0 or chain_type > 0xFFFFFFFF:
        raise InvalidChainType(chain_type)
    raw_address = _require_length(raw_address, RAW_ADDRESS_LENGTH)
    reserved = _require_length(reserved, RESERVED_LENGTH)
    return int(chain_type).to_bytes(4, "big") + raw_address + reserved


# ===================
# Decoding
# ===================

def decode(value: bytes) -> tuple[int, bytes, bytes]:
    """Split a universal address into (chain_type, raw_address, reserved). No validation."""
    value = _require_length(value, UNIVERSAL_ADDRESS_LENGTH)
    chain_type = int.from_bytes(value[0:4], "big")
    return chain_type, value[4:24], value[24:32]


def decode_strict(value: bytes) -> tuple[int, bytes, bytes]:
    """Decode, rejecting a zero chain type or a non-empty reserved field."""
    chain_type, raw_address, reserved = decode(value)
    if chain_type == 0:
        raise InvalidChainType(chain_type)
    if reserved != EMPTY_RESERVED:
        raise NonZeroReservedBytes(reserved)
    return chain_type, raw_address, reserved


def decode_as_chain_type(value: bytes, expected: int) -> bytes:
    """Decode and assert the address belongs to the expected family; returns the raw address."""
    chain_type, raw_address, _ = decode(value)
    if chain_type != expected:
        raise InvalidChainType(chain_type, expected)
    return raw_address


# ===================
# Left-padded bytes32 convention
# ===================

def address_to_bytes32(address: str | bytes) -> bytes:
    """Left-pad a 20-byte address to 32 bytes (bytes32(uint256(uint160(addr))))."""
    raw = parse_evm_address(address) if isinstance(address, str) else _require_length(address, RAW_ADDRESS_LENGTH)
    return bytes(12) + raw


def bytes32_to_address(value: bytes) -> str:
    """Take the low 20 bytes of a left-padded bytes32 as a checksummed address."""
    value = _require_length(value, UNIVERSAL_ADDRESS_LENGTH)
    return Web3.to_checksum_address("0x" + value[12:].hex())


def parse_evm_address(address: str) -> bytes:
    """Parse a 0x-prefixed (or bare) 40-hex-char EVM address into 20 bytes."""
    hex_str = address[2:] if address.startswith(("0x", "0X")) else address
    if len(hex_str) != RAW_ADDRESS_LENGTH * 2:
        raise InvalidAddressLength(RAW_ADDRESS_LENGTH, len(hex_str) // 2)
    return bytes.fromhex(hex_str)


# ===================
# Cosmos bech32
# ===================

def decode_bech32_address(address: str) -> tuple[bytes, str]:
    """Decode a bech32 address (e.g. terra1...) into (raw 20 bytes, hrp)."""
    hrp, data = bech32_decode(address)
    if hrp is None or data is None:
        raise ValueError(f"Invalid bech32 address: {address}")
    raw = convertbits(data, 5, 8, False)
    if raw is None:
        raise ValueError(f"Invalid bech32 payload: {address}")
    return _require_length(bytes(raw), RAW_ADDRESS_LENGTH), hrp


def encode_bech32_address(raw_address: bytes, hrp: str) -> str:
    """Encode 20 raw bytes as a bech32 address with the given prefix."""
    raw_address = _require_length(raw_address, RAW_ADDRESS_LENGTH)
    return bech32_encode(hrp, convertbits(raw_address, 8, 5))


# ===================
# UniversalAddress
# ===================

@dataclass(frozen=True)
class UniversalAddress:
    """Chain-tagged address as carried across chains."""
    chain_type: int
    raw_address: bytes
    reserved: bytes = EMPTY_RESERVED

    def __post_init__(self):
        if self.chain_type == 0:
            raise InvalidChainType(self.chain_type)
        _require_length(self.raw_address, RAW_ADDRESS_LENGTH)
        _require_length(self.reserved, RESERVED_LENGTH)

    @classmethod
    def from_evm(cls, address: str) -> "UniversalAddress":
        return cls(CHAIN_TYPE_EVM, parse_evm_address(address))

    @classmethod
    def from_cosmos(cls, address: str) -> "UniversalAddress":
        raw, _hrp = decode_bech32_address(address)
        return cls(CHAIN_TYPE_COSMOS, raw)

    @classmethod
    def from_bytes32(cls, value: bytes) -> "UniversalAddress":
        chain_type, raw_address, reserved = decode(value)
        return cls(chain_type, raw_address, reserved)

    @classmethod
    def from_bytes32_strict(cls, value: bytes) -> "UniversalAddress":
        return cls(*decode_strict(value))

    def to_bytes32(self) -> bytes:
        return encode_with_reserved(self.chain_type, self.raw_address, self.reserved)

    def to_evm_string(self) -> str:
        """Checksummed 0x address; only valid for EVM addresses."""
        if self.chain_type != CHAIN_TYPE_EVM:
            raise InvalidChainType(self.chain_type, CHAIN_TYPE_EVM)
        return Web3.to_checksum_address("0x" + self.raw_address.hex())

    def to_cosmos_string(self, hrp: str = "terra") -> str:
        if self.chain_type != CHAIN_TYPE_COSMOS:
            raise InvalidChainType(self.chain_type, CHAIN_TYPE_COSMOS)
        return encode_bech32_address(self.raw_address, hrp)

    @property
    def is_evm(self) -> bool:
        return self.chain_type == CHAIN_TYPE_EVM

    @property
    def is_cosmos(self) -> bool:
        return self.chain_type == CHAIN_TYPE_COSMOS

    @property
    def is_known_chain_type(self) -> bool:
        return CHAIN_TYPE_EVM <= self.chain_type <= CHAIN_TYPE_BITCOIN

    def __str__(self) -> str:
        try:
            family = ChainType(self.chain_type).name
        except ValueError:
            family = f"UNKNOWN({self.chain_type})"
        return f"{family}:{self.raw_address.hex()}"
