"""
Off-chain verification services.

The operator approves a pending withdrawal only after finding the matching
deposit on the source chain; the canceler re-checks approved withdrawals
during their cancel window and cancels any without one. Both compare the
withdrawal against the source chain's deposit record, keyed by transfer hash.
"""

from dataclasses import dataclass
from typing import Optional

from cl8y_bridge.custody.native import is_native_token
from cl8y_bridge.services.address_codec import address_to_bytes32
from cl8y_bridge.services.bridge import BridgeCore, PendingWithdraw, WithdrawStatus
from cl8y_bridge.services.errors import BridgeError, DestTokenMappingNotSet
from cl8y_bridge.services.hashing import bytes32_to_hex
from cl8y_bridge.utils.logging import get_logger, log_context

logger = get_logger(__name__)


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of checking one withdrawal against its source deposit."""
    transfer_hash: bytes
    valid: bool
    reason: str = "ok"


class DepositVerifier:
    """Looks up source-chain deposits for withdrawals on a destination bridge."""

    def __init__(self, source_bridges: Optional[dict[bytes, BridgeCore]] = None):
        self._sources: dict[bytes, BridgeCore] = dict(source_bridges or {})

    def add_source(self, chain_id: bytes, bridge: BridgeCore) -> None:
        self._sources[bytes(chain_id)] = bridge

    def verify(self, dest_bridge: BridgeCore, transfer_hash: bytes) -> VerificationResult:
        pending = dest_bridge.get_pending_withdraw(transfer_hash)
        if pending is None:
            return VerificationResult(transfer_hash, False, "withdrawal not found")
        return self.verify_pending(dest_bridge, pending)

    def verify_pending(self, dest_bridge: BridgeCore, pending: PendingWithdraw) -> VerificationResult:
        def invalid(reason: str) -> VerificationResult:
            return VerificationResult(pending.transfer_hash, False, reason)

        source = self._sources.get(pending.src_chain)
        if source is None:
            return invalid("unknown source chain")

        deposit = source.get_deposit(pending.transfer_hash)
        if deposit is None:
            return invalid("no matching deposit on source chain")

        if deposit.dest_chain != dest_bridge.chain_id:
            return invalid("destination chain mismatch")
        if deposit.src_account != pending.src_account:
            return invalid("source account mismatch")
        if deposit.dest_account != pending.dest_account:
            return invalid("destination account mismatch")
        if deposit.dest_token != address_to_bytes32(pending.token):
            return invalid("token mismatch")
        if deposit.amount != pending.amount or deposit.nonce != pending.nonce:
            return invalid("amount or nonce mismatch")

        # Decimals are not covered by the hash
        try:
            mapping = source.tokens.get_dest_token_mapping(deposit.token, dest_bridge.chain_id)
        except DestTokenMappingNotSet:
            return invalid("source token has no mapping to this chain")
        if source.tokens.get_token_decimals(deposit.token) != pending.src_decimals:
            return invalid("source decimals mismatch")
        if mapping.dest_decimals != pending.dest_decimals:
            return invalid("destination decimals mismatch")

        return VerificationResult(pending.transfer_hash, True)


class OperatorService:
    """Approves submitted withdrawals that have a verified source deposit."""

    def __init__(
        self,
        bridge: BridgeCore,
        verifier: DepositVerifier,
        operator: str,
        fee: int = 0,
        fee_recipient: Optional[str] = None,
    ):
        self.bridge = bridge
        self.verifier = verifier
        self.operator = operator
        self.fee = fee
        self.fee_recipient = fee_recipient

    def process_pending(self) -> list[bytes]:
        """
        Approve every verified withdrawal still awaiting approval.

        Returns:
            Hashes approved in this pass
        """
        with log_context(chain=self.bridge.chain.name, role="operator"):
            approved = self._approve_verified()
            logger.info("operator_pass_complete", approved=len(approved))
        return approved

    def _approve_verified(self) -> list[bytes]:
        approved = []
        for transfer_hash in self.bridge.get_pending_withdraw_hashes():
            if self.bridge.get_withdraw_status(transfer_hash) != WithdrawStatus.SUBMITTED:
                continue

            result = self.verifier.verify(self.bridge, transfer_hash)
            if not result.valid:
                logger.warning(
                    "withdraw_not_approved",
                    transfer_hash=bytes32_to_hex(transfer_hash),
                    reason=result.reason,
                )
                continue

            pending = self.bridge.get_pending_withdraw(transfer_hash)
            deduct = self.fee > 0 and is_native_token(pending.token)
            try:
                self.bridge.withdraw_approve(
                    self.operator,
                    transfer_hash,
                    fee=self.fee,
                    fee_recipient=self.fee_recipient,
                    deduct_from_amount=deduct,
                )
            except BridgeError as e:
                logger.error(
                    "withdraw_approve_failed",
                    transfer_hash=bytes32_to_hex(transfer_hash),
                    error=e.message,
                )
                continue
            approved.append(transfer_hash)
        return approved


class CancelerService:
    """Cancels approved withdrawals that fail verification while the window is open."""

    def __init__(self, bridge: BridgeCore, verifier: DepositVerifier, canceler: str):
        self.bridge = bridge
        self.verifier = verifier
        self.canceler = canceler

    def review(self) -> list[bytes]:
        """
        Re-verify approved withdrawals inside their cancel window.

        Returns:
            Hashes cancelled in this pass
        """
        with log_context(chain=self.bridge.chain.name, role="canceler"):
            return self._cancel_unverified()

    def _cancel_unverified(self) -> list[bytes]:
        cancelled = []
        for transfer_hash in self.bridge.get_pending_withdraw_hashes():
            if self.bridge.get_withdraw_status(transfer_hash) != WithdrawStatus.APPROVED:
                continue

            result = self.verifier.verify(self.bridge, transfer_hash)
            if result.valid:
                continue

            try:
                self.bridge.withdraw_cancel(self.canceler, transfer_hash)
            except BridgeError as e:
                logger.error(
                    "withdraw_cancel_failed",
                    transfer_hash=bytes32_to_hex(transfer_hash),
                    error=e.message,
                )
                continue
            logger.warning(
                "fraudulent_withdraw_cancelled",
                transfer_hash=bytes32_to_hex(transfer_hash),
                reason=result.reason,
            )
            cancelled.append(transfer_hash)

        return cancelled
