"""
Canonical transfer hashing shared by every side of a transfer.

The V2 transfer hash is a wire contract:

    keccak256(abi.encode(
        bytes32(srcChain),   # 4-byte id, left-aligned, zero-padded
        bytes32(destChain),  # 4-byte id, left-aligned, zero-padded
        srcAccount,          # bytes32
        destAccount,         # bytes32
        token,               # bytes32, token address on the destination chain
        uint256(amount),
        uint256(nonce),
    ))

Byte layout (224 bytes): srcChain 0-31, destChain 32-63, srcAccount 64-95,
destAccount 96-127, token 128-159, amount 160-191, nonce 192-223.

The legacy V1 transfer id (6 fields, 32-byte hashed chain keys) is kept only
as a compatibility shim selected through HashVersion; a transfer is never
hashed with both.
"""

from dataclasses import dataclass
from enum import Enum

from eth_abi import encode as abi_encode
from web3 import Web3

UINT256_MAX = 2**256 - 1

_TRANSFER_HASH_TYPES = ["bytes32", "bytes32", "bytes32", "bytes32", "bytes32", "uint256", "uint256"]
_LEGACY_TRANSFER_ID_TYPES = ["bytes32", "bytes32", "bytes32", "bytes32", "uint256", "uint256"]

EVM_CHAIN_KEY_TAG = "EVM"
COSMOS_CHAIN_KEY_TAG = "COSMW"
TERRA_CLASSIC_CHAIN_ID = "columbus-5"


class HashVersion(str, Enum):
    """Transfer hash formats."""
    V1_LEGACY = "v1"  # 6-field transfer id over 32-byte chain keys
    V2 = "v2"         # 7-field unified hash over 4-byte chain ids


def keccak256(data: bytes) -> bytes:
    """Single-pass Keccak-256."""
    return bytes(Web3.keccak(data))


def _bytes32(value: bytes, name: str) -> bytes:
    value = bytes(value)
    if len(value) != 32:
        raise ValueError(f"{name} must be 32 bytes, got {len(value)}")
    return value


def _uint256(value: int, name: str) -> int:
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"{name} does not fit in uint256: {value}")
    return value


def chain_id_to_bytes4(chain_id: int) -> bytes:
    """Incremental integer chain id as its 4-byte big-endian form."""
    if chain_id < 0 or chain_id > 0xFFFFFFFF:
        raise ValueError(f"Chain id out of range: {chain_id}")
    return chain_id.to_bytes(4, "big")


def bytes4_to_chain_id(value: bytes) -> int:
    if len(value) != 4:
        raise ValueError(f"Chain id must be 4 bytes, got {len(value)}")
    return int.from_bytes(value, "big")


def chain_id_to_word(chain_id: bytes) -> bytes:
    """Place a 4-byte chain id in the high-order bytes of a 32-byte word."""
    if len(chain_id) != 4:
        raise ValueError(f"Chain id must be 4 bytes, got {len(chain_id)}")
    return bytes(chain_id) + bytes(28)


# ===================
# Transfer Hashes
# ===================

def compute_transfer_hash(
    src_chain: bytes,
    dest_chain: bytes,
    src_account: bytes,
    dest_account: bytes,
    token: bytes,
    amount: int,
    nonce: int,
) -> bytes:
    """Compute the V2 7-field transfer hash used by both deposit and withdraw sides."""
    data = abi_encode(
        _TRANSFER_HASH_TYPES,
        [
            chain_id_to_word(src_chain),
            chain_id_to_word(dest_chain),
            _bytes32(src_account, "src_account"),
            _bytes32(dest_account, "dest_account"),
            _bytes32(token, "token"),
            _uint256(amount, "amount"),
            _uint256(nonce, "nonce"),
        ],
    )
    return keccak256(data)


def compute_legacy_transfer_id(
    src_chain_key: bytes,
    dest_chain_key: bytes,
    token: bytes,
    account: bytes,
    amount: int,
    nonce: int,
) -> bytes:
    """Legacy V1 transfer id over 32-byte chain keys. Compatibility only."""
    data = abi_encode(
        _LEGACY_TRANSFER_ID_TYPES,
        [
            _bytes32(src_chain_key, "src_chain_key"),
            _bytes32(dest_chain_key, "dest_chain_key"),
            _bytes32(token, "token"),
            _bytes32(account, "account"),
            _uint256(amount, "amount"),
            _uint256(nonce, "nonce"),
        ],
    )
    return keccak256(data)


@dataclass(frozen=True)
class TransferFields:
    """The constituents of one logical transfer."""
    src_chain: bytes
    dest_chain: bytes
    src_account: bytes
    dest_account: bytes
    token: bytes
    amount: int
    nonce: int

    def hash(self, version: HashVersion = HashVersion.V2) -> bytes:
        if version == HashVersion.V2:
            return compute_transfer_hash(
                self.src_chain,
                self.dest_chain,
                self.src_account,
                self.dest_account,
                self.token,
                self.amount,
                self.nonce,
            )
        # V1 has no source account and keys chains by their 32-byte hashed key
        return compute_legacy_transfer_id(
            _bytes32(self.src_chain, "src_chain_key"),
            _bytes32(self.dest_chain, "dest_chain_key"),
            self.token,
            self.dest_account,
            self.amount,
            self.nonce,
        )


# ===================
# Legacy Chain Keys
# ===================

def _tagged_chain_key(tag: str, raw_key: bytes) -> bytes:
    return keccak256(abi_encode(["string", "bytes32"], [tag, raw_key]))


def evm_chain_key(chain_id: int) -> bytes:
    """keccak256(abi.encode("EVM", bytes32(chainId)))"""
    return _tagged_chain_key(EVM_CHAIN_KEY_TAG, _uint256(chain_id, "chain_id").to_bytes(32, "big"))


def cosmos_chain_key(chain_id: str) -> bytes:
    """keccak256(abi.encode("COSMW", keccak256(abi.encode(chainId))))"""
    inner = keccak256(abi_encode(["string"], [chain_id]))
    return _tagged_chain_key(COSMOS_CHAIN_KEY_TAG, inner)


def terra_chain_key() -> bytes:
    return cosmos_chain_key(TERRA_CLASSIC_CHAIN_ID)


# ===================
# Hex Helpers
# ===================

def bytes32_to_hex(value: bytes) -> str:
    return "0x" + bytes(value).hex()


def _from_hex(value: str, length: int) -> bytes:
    hex_str = value[2:] if value.startswith(("0x", "0X")) else value
    if len(hex_str) != length * 2:
        raise ValueError(f"Invalid hex length: expected {length * 2} characters, got {len(hex_str)}")
    return bytes.fromhex(hex_str)


def hex_to_bytes32(value: str) -> bytes:
    """Parse a 64-hex-char string (0x optional) into 32 bytes."""
    return _from_hex(value, 32)


def hex_to_bytes4(value: str) -> bytes:
    return _from_hex(value, 4)
