"""Pydantic schemas for API requests and responses.

Byte values are 0x-prefixed hex; token amounts are decimal strings since
uint256 exceeds the JSON-safe integer range.
"""
from typing import Optional

from pydantic import BaseModel, Field

from cl8y_bridge.services.bridge import DepositRecord, PendingWithdraw, WithdrawStatus
from cl8y_bridge.services.hashing import bytes32_to_hex


class DepositResponse(BaseModel):
    """Deposit record on the local chain."""
    transfer_hash: str
    nonce: int
    src_account: str
    dest_chain: str
    dest_account: str
    token: str
    dest_token: str
    amount: str
    fee: str
    timestamp: int

    @classmethod
    def from_record(cls, record: DepositRecord) -> "DepositResponse":
        return cls(
            transfer_hash=bytes32_to_hex(record.transfer_hash),
            nonce=record.nonce,
            src_account=bytes32_to_hex(record.src_account),
            dest_chain=bytes32_to_hex(record.dest_chain),
            dest_account=bytes32_to_hex(record.dest_account),
            token=record.token,
            dest_token=bytes32_to_hex(record.dest_token),
            amount=str(record.amount),
            fee=str(record.fee),
            timestamp=record.timestamp,
        )


class DepositNonceResponse(BaseModel):
    next_nonce: int
    last_nonce: int


class WithdrawResponse(BaseModel):
    """Pending withdrawal on the local chain."""
    transfer_hash: str
    status: WithdrawStatus
    src_chain: str
    src_account: str
    dest_account: str
    token: str
    recipient: str
    amount: str
    nonce: int
    src_decimals: int
    dest_decimals: int
    operator_gas: str
    fee: str
    fee_recipient: Optional[str] = None
    deduct_from_amount: bool = False
    approved_at: Optional[int] = None
    cancel_window_end: Optional[int] = None

    @classmethod
    def from_pending(
        cls,
        pending: PendingWithdraw,
        status: WithdrawStatus,
        cancel_window: int,
    ) -> "WithdrawResponse":
        return cls(
            transfer_hash=bytes32_to_hex(pending.transfer_hash),
            status=status,
            src_chain=bytes32_to_hex(pending.src_chain),
            src_account=bytes32_to_hex(pending.src_account),
            dest_account=bytes32_to_hex(pending.dest_account),
            token=pending.token,
            recipient=pending.recipient,
            amount=str(pending.amount),
            nonce=pending.nonce,
            src_decimals=pending.src_decimals,
            dest_decimals=pending.dest_decimals,
            operator_gas=str(pending.operator_gas),
            fee=str(pending.fee),
            fee_recipient=pending.fee_recipient,
            deduct_from_amount=pending.deduct_from_amount,
            approved_at=pending.approved_at if pending.approved else None,
            cancel_window_end=pending.approved_at + cancel_window if pending.approved else None,
        )


class WithdrawSummary(BaseModel):
    transfer_hash: str
    status: WithdrawStatus


class CancelWindowResponse(BaseModel):
    cancel_window_seconds: int


class FeeConfigResponse(BaseModel):
    fee_recipient: str
    standard_fee_bps: int
    discounted_fee_bps: int
    cl8y_threshold: str
    discount_token: Optional[str] = None


class AccountFeeResponse(BaseModel):
    """Fee that applies to one account, optionally for a given amount."""
    account: str
    fee_type: str
    fee_bps: int
    amount: Optional[str] = None
    fee: Optional[str] = None
    net_amount: Optional[str] = None


class TransferHashRequest(BaseModel):
    """Fields of a transfer; chain ids are 4-byte hex, accounts and token 32-byte hex."""
    src_chain: str = Field(..., description="0x-prefixed 4-byte chain id")
    dest_chain: str = Field(..., description="0x-prefixed 4-byte chain id")
    src_account: str
    dest_account: str
    token: str
    amount: str = Field(..., description="Decimal uint256")
    nonce: int = Field(..., ge=0)


class TransferHashResponse(BaseModel):
    transfer_hash: str
