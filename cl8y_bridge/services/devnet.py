"""
Single-chain bridge deployment built from Settings, used by the API runner.
"""

from typing import Optional

from eth_account import Account
from web3 import Web3

from cl8y_bridge.config import Settings
from cl8y_bridge.services.bridge import BridgeCore
from cl8y_bridge.services.chain import LocalChain
from cl8y_bridge.services.fee import FeeConfig
from cl8y_bridge.utils.logging import get_logger

logger = get_logger(__name__)


def build_local_bridge(settings: Settings, admin: Optional[str] = None) -> BridgeCore:
    """Deploy a bridge on a fresh LocalChain configured from settings."""
    admin = admin or settings.admin_address
    if admin is None:
        admin = Account.create().address
        logger.warning("No admin configured, generated an ephemeral admin", admin=admin)
    admin = Web3.to_checksum_address(admin)
    fee_recipient = Web3.to_checksum_address(settings.fee_recipient or admin)

    chain = LocalChain(settings.this_chain_bytes, name=settings.chain_identifier)
    fee_config = FeeConfig(
        fee_recipient=fee_recipient,
        standard_fee_bps=settings.standard_fee_bps,
        discounted_fee_bps=settings.discounted_fee_bps,
        cl8y_threshold=settings.discount_threshold,
        discount_token=settings.discount_token,
    )
    bridge = BridgeCore.deploy(
        chain,
        admin,
        fee_recipient,
        cancel_window=settings.cancel_window_seconds,
        fee_config=fee_config,
    )

    logger.info(
        "bridge_deployed",
        chain=settings.chain_identifier,
        chain_id=settings.this_chain_id,
        bridge=bridge.address,
        cancel_window=settings.cancel_window_seconds,
    )
    return bridge
