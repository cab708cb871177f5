"""
SQLAlchemy models for the off-chain archive of bridge activity.

Token amounts are uint256 values and are stored as decimal strings so no
backend truncates them.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Enum as SQLEnum,
    func,
)
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from cl8y_bridge.services.bridge import WithdrawStatus


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all models."""
    pass


# ===================
# Deposits
# ===================

class DepositArchive(Base):
    """A deposit observed on the local chain."""

    __tablename__ = "deposits"

    transfer_hash: Mapped[str] = mapped_column(String(66), primary_key=True)
    nonce: Mapped[int] = mapped_column(BigInteger, unique=True, index=True)
    src_chain: Mapped[str] = mapped_column(String(10))
    dest_chain: Mapped[str] = mapped_column(String(10), index=True)
    src_account: Mapped[str] = mapped_column(String(66))
    dest_account: Mapped[str] = mapped_column(String(66))
    token: Mapped[str] = mapped_column(String(42))
    dest_token: Mapped[str] = mapped_column(String(66))
    amount: Mapped[str] = mapped_column(String(78))
    fee: Mapped[str] = mapped_column(String(78), default="0")
    deposited_at: Mapped[int] = mapped_column(BigInteger)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )

    def __repr__(self) -> str:
        return f"<DepositArchive(nonce={self.nonce}, hash={self.transfer_hash})>"


# ===================
# Withdrawals
# ===================

class WithdrawArchive(Base):
    """Latest known state of a withdrawal on the local chain."""

    __tablename__ = "withdraws"

    transfer_hash: Mapped[str] = mapped_column(String(66), primary_key=True)
    src_chain: Mapped[str] = mapped_column(String(10))
    src_account: Mapped[str] = mapped_column(String(66))
    dest_account: Mapped[str] = mapped_column(String(66))
    token: Mapped[str] = mapped_column(String(42))
    recipient: Mapped[str] = mapped_column(String(42), index=True)
    amount: Mapped[str] = mapped_column(String(78))
    nonce: Mapped[int] = mapped_column(BigInteger)
    src_decimals: Mapped[int] = mapped_column(Integer)
    dest_decimals: Mapped[int] = mapped_column(Integer)

    # Approval
    fee: Mapped[str] = mapped_column(String(78), default="0")
    fee_recipient: Mapped[Optional[str]] = mapped_column(String(42), nullable=True)
    deduct_from_amount: Mapped[bool] = mapped_column(Boolean, default=False)
    approved_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    status: Mapped[WithdrawStatus] = mapped_column(SQLEnum(WithdrawStatus), index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )

    __table_args__ = (
        Index("ix_withdraws_src_nonce", "src_chain", "nonce"),
    )

    def __repr__(self) -> str:
        return f"<WithdrawArchive(hash={self.transfer_hash}, status={self.status})>"
