"""
Database connection, session management and archive operations.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from cl8y_bridge.db.models import Base, DepositArchive, WithdrawArchive
from cl8y_bridge.services.bridge import BridgeCore, DepositRecord, PendingWithdraw, WithdrawStatus
from cl8y_bridge.services.hashing import bytes32_to_hex
from cl8y_bridge.utils.logging import get_logger

logger = get_logger(__name__)

# Global engine and session factory
_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


async def init_db(database_url: str) -> None:
    """Initialize database connection."""
    global _engine, _session_factory

    # Convert postgres:// to postgresql+asyncpg://
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    if database_url.startswith("sqlite"):
        _engine = create_async_engine(database_url, echo=False)
    else:
        _engine = create_async_engine(
            database_url,
            echo=False,
            pool_size=5,
            max_overflow=10,
            pool_pre_ping=True,
        )

    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    logger.info("Database connection initialized")


async def create_tables() -> None:
    """Create all database tables."""
    if _engine is None:
        raise RuntimeError("Database not initialized")

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables created")


async def close_db() -> None:
    """Close database connection."""
    global _engine, _session_factory

    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database connection closed")


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get an async database session; commits on success, rolls back on error."""
    if _session_factory is None:
        raise RuntimeError("Database not initialized")

    async with _session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ===================
# Deposit Operations
# ===================

def _deposit_row(record: DepositRecord, src_chain: bytes) -> DepositArchive:
    return DepositArchive(
        transfer_hash=bytes32_to_hex(record.transfer_hash),
        nonce=record.nonce,
        src_chain=bytes32_to_hex(src_chain),
        dest_chain=bytes32_to_hex(record.dest_chain),
        src_account=bytes32_to_hex(record.src_account),
        dest_account=bytes32_to_hex(record.dest_account),
        token=record.token,
        dest_token=bytes32_to_hex(record.dest_token),
        amount=str(record.amount),
        fee=str(record.fee),
        deposited_at=record.timestamp,
    )


async def archive_deposit(record: DepositRecord, src_chain: bytes) -> None:
    """Insert or refresh a deposit row."""
    async with get_session() as session:
        await session.merge(_deposit_row(record, src_chain))


async def get_archived_deposit(transfer_hash: str) -> Optional[DepositArchive]:
    async with get_session() as session:
        return await session.get(DepositArchive, transfer_hash.lower())


async def get_archived_deposit_by_nonce(nonce: int) -> Optional[DepositArchive]:
    async with get_session() as session:
        result = await session.execute(
            select(DepositArchive).where(DepositArchive.nonce == nonce)
        )
        return result.scalar_one_or_none()


# ===================
# Withdraw Operations
# ===================

async def archive_withdraw(pending: PendingWithdraw, status: WithdrawStatus) -> None:
    """Insert or update a withdrawal row with its current status."""
    async with get_session() as session:
        await session.merge(WithdrawArchive(
            transfer_hash=bytes32_to_hex(pending.transfer_hash),
            src_chain=bytes32_to_hex(pending.src_chain),
            src_account=bytes32_to_hex(pending.src_account),
            dest_account=bytes32_to_hex(pending.dest_account),
            token=pending.token,
            recipient=pending.recipient,
            amount=str(pending.amount),
            nonce=pending.nonce,
            src_decimals=pending.src_decimals,
            dest_decimals=pending.dest_decimals,
            fee=str(pending.fee),
            fee_recipient=pending.fee_recipient,
            deduct_from_amount=pending.deduct_from_amount,
            approved_at=pending.approved_at if pending.approved else None,
            status=status,
        ))


async def get_archived_withdraw(transfer_hash: str) -> Optional[WithdrawArchive]:
    async with get_session() as session:
        return await session.get(WithdrawArchive, transfer_hash.lower())


async def list_withdraws_by_status(status: WithdrawStatus) -> list[WithdrawArchive]:
    async with get_session() as session:
        result = await session.execute(
            select(WithdrawArchive)
            .where(WithdrawArchive.status == status)
            .order_by(WithdrawArchive.nonce)
        )
        return list(result.scalars().all())


async def count_deposits() -> int:
    async with get_session() as session:
        result = await session.execute(select(func.count()).select_from(DepositArchive))
        return result.scalar_one()


async def archive_bridge_state(bridge: BridgeCore) -> tuple[int, int]:
    """
    Snapshot every deposit and withdrawal of a bridge into the archive.

    Returns:
        (deposits archived, withdrawals archived)
    """
    deposits = 0
    for nonce in range(1, bridge.get_deposit_nonce()):
        record = bridge.get_deposit_by_nonce(nonce)
        if record is None:
            continue
        await archive_deposit(record, bridge.chain_id)
        deposits += 1

    withdraws = 0
    for transfer_hash in bridge.get_pending_withdraw_hashes():
        pending = bridge.get_pending_withdraw(transfer_hash)
        await archive_withdraw(pending, bridge.get_withdraw_status(transfer_hash))
        withdraws += 1

    logger.info("bridge_state_archived", deposits=deposits, withdraws=withdraws)
    return deposits, withdraws
