"""
Pytest configuration and fixtures.
"""

import pytest

from cl8y_bridge.custody.base import TokenType
from cl8y_bridge.services.address_codec import address_to_bytes32
from cl8y_bridge.services.bridge import BridgeCore
from cl8y_bridge.services.chain import LocalChain
from cl8y_bridge.services.hashing import chain_id_to_bytes4

ADMIN = "0x1000000000000000000000000000000000000001"
OPERATOR = "0x1000000000000000000000000000000000000002"
CANCELER = "0x1000000000000000000000000000000000000003"
FEE_RECIPIENT = "0x1000000000000000000000000000000000000004"
USER = "0x1000000000000000000000000000000000000005"
RELAYER = "0x1000000000000000000000000000000000000006"
REMOTE_USER = "0x2000000000000000000000000000000000000005"
REMOTE_TOKEN = address_to_bytes32("0x2000000000000000000000000000000000000abc")

CHAIN_A = chain_id_to_bytes4(1)
CHAIN_B = chain_id_to_bytes4(2)

START_TIME = 1_700_000_000


class FakeClock:
    """Manually advanced block time."""

    def __init__(self, start: int = START_TIME):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


def deploy_bridge(chain: LocalChain, remote_id: bytes, remote_name: str) -> BridgeCore:
    """Bridge with roles granted and one remote chain registered."""
    bridge = BridgeCore.deploy(chain, ADMIN, FEE_RECIPIENT)
    bridge.access.grant_operator(ADMIN, OPERATOR)
    bridge.access.grant_canceler(ADMIN, CANCELER)
    bridge.chains.register_chain(ADMIN, remote_name, remote_id)
    return bridge


def allow(bridge: BridgeCore, token, owner: str, amount: int) -> None:
    """Approve the bridge (fee leg) and both custody modules (net leg)."""
    token.approve(owner, bridge.address, amount)
    token.approve(owner, bridge.lock_unlock.address, amount)
    token.approve(owner, bridge.mint_burn.address, amount)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def chain(clock) -> LocalChain:
    return LocalChain(CHAIN_A, clock, name="evm-a")


@pytest.fixture
def bridge(chain) -> BridgeCore:
    return deploy_bridge(chain, CHAIN_B, "evm-b")


@pytest.fixture
def lock_token(chain, bridge):
    """6-decimal lock/unlock token mapped to an 18-decimal counterpart on CHAIN_B."""
    token = chain.deploy_token("USDC", decimals=6)
    bridge.tokens.register_token(ADMIN, token.address, TokenType.LOCK_UNLOCK, 6)
    bridge.tokens.set_token_destination(ADMIN, token.address, CHAIN_B, REMOTE_TOKEN, 18)
    token.add_minter(ADMIN)
    token.mint(ADMIN, USER, 1_000_000 * 10**6)
    return token


@pytest.fixture
def mint_token(chain, bridge):
    """18-decimal mint/burn token mapped to CHAIN_B."""
    token = chain.deploy_token("wETH", decimals=18)
    token.add_minter(bridge.mint_burn.address)
    token.add_minter(ADMIN)
    bridge.tokens.register_token(ADMIN, token.address, TokenType.MINT_BURN, 18)
    bridge.tokens.set_token_destination(ADMIN, token.address, CHAIN_B, REMOTE_TOKEN, 18)
    token.mint(ADMIN, USER, 1_000 * 10**18)
    return token


@pytest.fixture
def native(chain, bridge):
    """Native asset registered and mapped to CHAIN_B; USER holds 100 units."""
    from cl8y_bridge.custody.native import NATIVE_TOKEN

    bridge.register_native(ADMIN)
    bridge.tokens.set_token_destination(ADMIN, NATIVE_TOKEN, CHAIN_B, REMOTE_TOKEN, 18)
    chain.bank.credit(USER, 100 * 10**18)
    chain.bank.credit(RELAYER, 10 * 10**18)
    return NATIVE_TOKEN
