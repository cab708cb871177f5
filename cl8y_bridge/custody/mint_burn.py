"""
Mint/burn custody: deposits destroy the wrapped token and withdrawals mint
it. The module must be a minter of every token it handles.
"""

from cl8y_bridge.custody.base import (
    CustodyStrategy,
    InvalidBurn,
    InvalidMint,
    TokenType,
    nonreentrant,
)
from cl8y_bridge.services.chain import LocalChain


class MintBurnCustody(CustodyStrategy):
    token_type = TokenType.MINT_BURN

    def __init__(self, chain: LocalChain, admin: str):
        super().__init__(chain, admin, "mint-burn")

    @nonreentrant
    def mint(self, caller: str, to: str, token: str, amount: int) -> None:
        self._require_authorized(caller)
        erc20 = self.chain.token(token)
        to_before = erc20.balance_of(to)

        erc20.mint(self.address, to, amount)

        self._check_delta(InvalidMint, to, to_before, amount, erc20.balance_of(to))
        self.log.debug("tokens_minted", token=erc20.address, to=to, amount=amount)

    @nonreentrant
    def burn(self, caller: str, from_address: str, token: str, amount: int) -> None:
        """Destroy amount held by from_address; requires a prior allowance to this module."""
        self._require_authorized(caller)
        erc20 = self.chain.token(token)
        from_before = erc20.balance_of(from_address)

        erc20.burn_from(self.address, from_address, amount)

        self._check_delta(InvalidBurn, from_address, from_before, -amount, erc20.balance_of(from_address))
        self.log.debug("tokens_burned", token=erc20.address, from_address=from_address, amount=amount)

    def escrow(self, caller: str, from_address: str, token: str, amount: int) -> None:
        self.burn(caller, from_address, token, amount)

    def release(self, caller: str, to: str, token: str, amount: int) -> None:
        self.mint(caller, to, token, amount)
