"""
Read-only REST API over a bridge deployment.

Exposes deposit records, pending withdrawals, fee and cancel-window
configuration, and a transfer hash calculator for relayers.
"""

import time
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from ..services.bridge import BridgeCore, WithdrawStatus
from ..services.errors import BridgeError, WithdrawNotFound
from ..services.hashing import compute_transfer_hash, hex_to_bytes32, hex_to_bytes4
from ..utils.logging import get_logger
from .schemas import (
    AccountFeeResponse,
    CancelWindowResponse,
    DepositNonceResponse,
    DepositResponse,
    FeeConfigResponse,
    TransferHashRequest,
    TransferHashResponse,
    WithdrawResponse,
    WithdrawSummary,
)

router = APIRouter(prefix="/api/v1", tags=["Bridge API"])


def get_bridge(request: Request) -> BridgeCore:
    """Bridge instance attached to the running app."""
    return request.app.state.bridge


def _parse_hash(value: str) -> bytes:
    try:
        return hex_to_bytes32(value)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ===================
# Deposits
# ===================

@router.get("/deposits/nonce", response_model=DepositNonceResponse)
async def get_deposit_nonce(bridge: BridgeCore = Depends(get_bridge)):
    return DepositNonceResponse(
        next_nonce=bridge.get_deposit_nonce(),
        last_nonce=bridge.get_last_deposit_nonce(),
    )


@router.get("/deposits/by-nonce/{nonce}", response_model=DepositResponse)
async def get_deposit_by_nonce(nonce: int, bridge: BridgeCore = Depends(get_bridge)):
    record = bridge.get_deposit_by_nonce(nonce)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No deposit with nonce {nonce}")
    return DepositResponse.from_record(record)


@router.get("/deposits/{transfer_hash}", response_model=DepositResponse)
async def get_deposit(transfer_hash: str, bridge: BridgeCore = Depends(get_bridge)):
    record = bridge.get_deposit(_parse_hash(transfer_hash))
    if record is None:
        raise HTTPException(status_code=404, detail="Deposit not found")
    return DepositResponse.from_record(record)


# ===================
# Withdrawals
# ===================

@router.get("/withdraws", response_model=list[WithdrawSummary])
async def list_withdraws(
    status: Optional[WithdrawStatus] = Query(None),
    bridge: BridgeCore = Depends(get_bridge),
):
    summaries = []
    for transfer_hash in bridge.get_pending_withdraw_hashes():
        current = bridge.get_withdraw_status(transfer_hash)
        if status is not None and current != status:
            continue
        summaries.append(WithdrawSummary(transfer_hash="0x" + transfer_hash.hex(), status=current))
    return summaries


@router.get("/withdraws/{transfer_hash}", response_model=WithdrawResponse)
async def get_withdraw(transfer_hash: str, bridge: BridgeCore = Depends(get_bridge)):
    parsed = _parse_hash(transfer_hash)
    pending = bridge.get_pending_withdraw(parsed)
    if pending is None:
        raise WithdrawNotFound(parsed)
    return WithdrawResponse.from_pending(
        pending,
        bridge.get_withdraw_status(parsed),
        bridge.get_cancel_window(),
    )


# ===================
# Configuration
# ===================

@router.get("/config/cancel-window", response_model=CancelWindowResponse)
async def get_cancel_window(bridge: BridgeCore = Depends(get_bridge)):
    return CancelWindowResponse(cancel_window_seconds=bridge.get_cancel_window())


@router.get("/config/fees", response_model=FeeConfigResponse)
async def get_fee_config(bridge: BridgeCore = Depends(get_bridge)):
    config = bridge.get_fee_config()
    return FeeConfigResponse(
        fee_recipient=config.fee_recipient,
        standard_fee_bps=config.standard_fee_bps,
        discounted_fee_bps=config.discounted_fee_bps,
        cl8y_threshold=str(config.cl8y_threshold),
        discount_token=config.discount_token,
    )


@router.get("/fees/{account}", response_model=AccountFeeResponse)
async def get_account_fee(
    account: str,
    amount: Optional[int] = Query(None, ge=0),
    bridge: BridgeCore = Depends(get_bridge),
):
    try:
        fee_type = bridge.get_fee_type(account)
        fee_bps = bridge.get_effective_fee_bps(account)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    response = AccountFeeResponse(account=account, fee_type=fee_type.value, fee_bps=fee_bps)
    if amount is not None:
        fee = bridge.calculate_fee(account, amount)
        response.amount = str(amount)
        response.fee = str(fee)
        response.net_amount = str(amount - fee)
    return response


# ===================
# Hashing
# ===================

@router.post("/hash/transfer", response_model=TransferHashResponse)
async def compute_hash(body: TransferHashRequest):
    try:
        transfer_hash = compute_transfer_hash(
            hex_to_bytes4(body.src_chain),
            hex_to_bytes4(body.dest_chain),
            hex_to_bytes32(body.src_account),
            hex_to_bytes32(body.dest_account),
            hex_to_bytes32(body.token),
            int(body.amount),
            body.nonce,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return TransferHashResponse(transfer_hash="0x" + transfer_hash.hex())


def create_api_app(bridge: BridgeCore) -> FastAPI:
    """Create the FastAPI application serving one bridge."""
    _log = get_logger("api")

    app = FastAPI(
        title="CL8Y Bridge API",
        description="Read-only REST API over a CL8Y bridge deployment",
        version="1.0.0",
    )
    app.state.bridge = bridge

    # Logs request duration and adds an X-Response-Time header
    @app.middleware("http")
    async def timing_middleware(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Response-Time"] = f"{elapsed_ms:.1f}ms"
        _log.info(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round(elapsed_ms, 1),
        )
        return response

    @app.exception_handler(BridgeError)
    async def bridge_error_handler(request: Request, exc: BridgeError):
        status_code = 404 if isinstance(exc, WithdrawNotFound) else 400
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": exc.message},
        )

    app.include_router(router)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "service": "cl8y-bridge-api"}

    return app
