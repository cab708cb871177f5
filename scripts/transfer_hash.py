#!/usr/bin/env python
"""
Transfer hash and address encoding helper for relayers and operators.

Usage:
    python scripts/transfer_hash.py transfer --src-chain 0x00000001 --dest-chain 0x00000002 \
        --src-account 0x... --dest-account 0x... --token 0x... --amount 1000 --nonce 1
    python scripts/transfer_hash.py chain-key --evm 56
    python scripts/transfer_hash.py chain-key --cosmos columbus-5
    python scripts/transfer_hash.py address 0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266
    python scripts/transfer_hash.py address terra1...
"""

import argparse
import sys

from cl8y_bridge.services.address_codec import UniversalAddress, address_to_bytes32
from cl8y_bridge.services.errors import BridgeError
from cl8y_bridge.services.hashing import (
    bytes32_to_hex,
    compute_transfer_hash,
    cosmos_chain_key,
    evm_chain_key,
    hex_to_bytes32,
    hex_to_bytes4,
)


def _account(value: str) -> bytes:
    """Accept a 32-byte hex value or a 20-byte EVM address (left-padded)."""
    hex_str = value[2:] if value.startswith(("0x", "0X")) else value
    if len(hex_str) == 40:
        return address_to_bytes32(value)
    return hex_to_bytes32(value)


def cmd_transfer(args: argparse.Namespace) -> str:
    transfer_hash = compute_transfer_hash(
        hex_to_bytes4(args.src_chain),
        hex_to_bytes4(args.dest_chain),
        _account(args.src_account),
        _account(args.dest_account),
        _account(args.token),
        args.amount,
        args.nonce,
    )
    return bytes32_to_hex(transfer_hash)


def cmd_chain_key(args: argparse.Namespace) -> str:
    if args.evm is not None:
        return bytes32_to_hex(evm_chain_key(args.evm))
    return bytes32_to_hex(cosmos_chain_key(args.cosmos))


def cmd_address(args: argparse.Namespace) -> str:
    if args.address.startswith(("0x", "0X")):
        universal = UniversalAddress.from_evm(args.address)
    else:
        universal = UniversalAddress.from_cosmos(args.address)
    return bytes32_to_hex(universal.to_bytes32())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compute bridge transfer hashes and encodings")
    subparsers = parser.add_subparsers(dest="command", required=True)

    transfer = subparsers.add_parser("transfer", help="V2 transfer hash")
    transfer.add_argument("--src-chain", required=True, help="4-byte source chain id (hex)")
    transfer.add_argument("--dest-chain", required=True, help="4-byte destination chain id (hex)")
    transfer.add_argument("--src-account", required=True, help="Depositor (32-byte hex or EVM address)")
    transfer.add_argument("--dest-account", required=True, help="Recipient (32-byte hex or EVM address)")
    transfer.add_argument("--token", required=True, help="Destination token (32-byte hex or EVM address)")
    transfer.add_argument("--amount", required=True, type=int)
    transfer.add_argument("--nonce", required=True, type=int)
    transfer.set_defaults(handler=cmd_transfer)

    chain_key = subparsers.add_parser("chain-key", help="Legacy 32-byte chain key")
    group = chain_key.add_mutually_exclusive_group(required=True)
    group.add_argument("--evm", type=int, help="EVM chain id")
    group.add_argument("--cosmos", help="Cosmos chain id string")
    chain_key.set_defaults(handler=cmd_chain_key)

    address = subparsers.add_parser("address", help="Universal 32-byte address encoding")
    address.add_argument("address", help="0x EVM address or bech32 Cosmos address")
    address.set_defaults(handler=cmd_address)

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        print(args.handler(args))
    except (BridgeError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
