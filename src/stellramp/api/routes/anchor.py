"""Anchor ramp endpoints: deposits (fiat -> XLM) and withdrawals (XLM -> fiat)."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from stellramp.anchor.results import (
    DepositResult,
    ErrorKind,
    WithdrawalResult,
)
from stellramp.anchor.service import RampService, get_ramp_service
from stellramp.anchor.settlement import strategy_for
from stellramp.api.contracts import (
    CancelResponse,
    ConfirmRequest,
    DepositEstimateResponse,
    DepositRequest,
    DepositResponse,
    DepositView,
    HistoryResponse,
    RatesResponse,
    RateView,
    TransfersResponse,
    TransferView,
    WithdrawalEstimateResponse,
    WithdrawalResponse,
    WithdrawalView,
    WithdrawRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/anchor", tags=["Anchor"])

MISSING_CALLER = "userId or chatId is required"


# ======================
# Deposits
# ======================
@router.post("/deposit", response_model=DepositResponse)
async def deposit(
    request: DepositRequest,
    service: RampService = Depends(get_ramp_service),
) -> DepositResponse:
    """Create and settle a deposit in one call."""
    if request.caller_id is None:
        result = DepositResult.failure("N/A", MISSING_CALLER, ErrorKind.VALIDATION_FAILURE)
    else:
        result = await service.quick_deposit(
            request.caller_id, request.amount, request.currency, request.wallet_address
        )
    return DepositResponse.from_result(result)


@router.post("/deposit/create", response_model=DepositResponse)
async def create_deposit(
    request: DepositRequest,
    service: RampService = Depends(get_ramp_service),
) -> DepositResponse:
    """Quote and store a deposit without settling it."""
    if request.caller_id is None:
        result = DepositResult.failure("N/A", MISSING_CALLER, ErrorKind.VALIDATION_FAILURE)
    else:
        result = await service.create_deposit(
            request.caller_id, request.amount, request.currency, request.wallet_address
        )
    return DepositResponse.from_result(result)


@router.get("/deposit/estimate", response_model=DepositEstimateResponse)
async def estimate_deposit(
    amount: str = Query(...),
    currency: str = Query("USD"),
    service: RampService = Depends(get_ramp_service),
) -> DepositEstimateResponse:
    """Quote a deposit at the current rate. Bad input is answered with 400."""
    return DepositEstimateResponse.from_quote(service.estimate_deposit(amount, currency))


@router.get("/deposit/{deposit_id}", response_model=DepositView)
async def get_deposit(
    deposit_id: str,
    service: RampService = Depends(get_ramp_service),
) -> DepositView:
    """Look up a deposit by ID."""
    record = await service.get_deposit(deposit_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Deposit not found")
    return DepositView.from_record(record)


@router.post("/deposit/{deposit_id}/confirm", response_model=DepositResponse)
async def confirm_deposit(
    deposit_id: str,
    request: Optional[ConfirmRequest] = None,
    service: RampService = Depends(get_ramp_service),
) -> DepositResponse:
    """Settle a created deposit."""
    address = request.wallet_address if request else None
    result = await service.confirm_deposit(deposit_id, address)
    return DepositResponse.from_result(result)


@router.post("/deposit/{deposit_id}/cancel", response_model=CancelResponse)
async def cancel_deposit(
    deposit_id: str,
    service: RampService = Depends(get_ramp_service),
) -> CancelResponse:
    """Expire a deposit that has not completed."""
    cancelled = await service.cancel_deposit(deposit_id)
    return CancelResponse(
        success=cancelled,
        id=deposit_id,
        message="Deposit expired" if cancelled else "Deposit cannot be cancelled",
    )


# ======================
# Withdrawals
# ======================
@router.post("/withdraw", response_model=WithdrawalResponse)
async def withdraw(
    request: WithdrawRequest,
    x_source_secret: Optional[str] = Header(None, alias="X-Source-Secret"),
    service: RampService = Depends(get_ramp_service),
) -> WithdrawalResponse:
    """Create and settle a withdrawal in one call.

    Pass the source account's secret seed in X-Source-Secret to sign the
    debit; without it the debit is simulated.
    """
    if request.caller_id is None:
        result = WithdrawalResult.failure("N/A", MISSING_CALLER, ErrorKind.VALIDATION_FAILURE)
    else:
        result = await service.quick_withdrawal(
            request.caller_id,
            request.requested_value,
            request.currency,
            request.wallet_address,
            strategy=strategy_for(x_source_secret),
        )
    return WithdrawalResponse.from_result(result)


@router.post("/withdraw/create", response_model=WithdrawalResponse)
async def create_withdrawal(
    request: WithdrawRequest,
    service: RampService = Depends(get_ramp_service),
) -> WithdrawalResponse:
    """Quote and store a withdrawal without settling it."""
    if request.caller_id is None:
        result = WithdrawalResult.failure("N/A", MISSING_CALLER, ErrorKind.VALIDATION_FAILURE)
    else:
        result = await service.create_withdrawal(
            request.caller_id, request.requested_value, request.currency, request.wallet_address
        )
    return WithdrawalResponse.from_result(result)


@router.get("/withdraw/estimate", response_model=WithdrawalEstimateResponse)
async def estimate_withdrawal(
    requested_value: str = Query(..., alias="requestedValue"),
    currency: str = Query("USD"),
    service: RampService = Depends(get_ramp_service),
) -> WithdrawalEstimateResponse:
    """Quote a withdrawal payout at the current rate."""
    return WithdrawalEstimateResponse.from_quote(
        service.estimate_withdrawal(requested_value, currency)
    )


@router.get("/withdraw/{withdrawal_id}", response_model=WithdrawalView)
async def get_withdrawal(
    withdrawal_id: str,
    service: RampService = Depends(get_ramp_service),
) -> WithdrawalView:
    """Look up a withdrawal by ID."""
    record = await service.get_withdrawal(withdrawal_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Withdrawal not found")
    return WithdrawalView.from_record(record)


@router.post("/withdraw/{withdrawal_id}/confirm", response_model=WithdrawalResponse)
async def confirm_withdrawal(
    withdrawal_id: str,
    request: Optional[ConfirmRequest] = None,
    x_source_secret: Optional[str] = Header(None, alias="X-Source-Secret"),
    service: RampService = Depends(get_ramp_service),
) -> WithdrawalResponse:
    """Settle a created withdrawal."""
    address = request.wallet_address if request else None
    result = await service.confirm_withdrawal(
        withdrawal_id, address, strategy=strategy_for(x_source_secret)
    )
    return WithdrawalResponse.from_result(result)


@router.post("/withdraw/{withdrawal_id}/cancel", response_model=CancelResponse)
async def cancel_withdrawal(
    withdrawal_id: str,
    service: RampService = Depends(get_ramp_service),
) -> CancelResponse:
    """Cancel a withdrawal that has not started processing."""
    cancelled = await service.cancel_withdrawal(withdrawal_id)
    return CancelResponse(
        success=cancelled,
        id=withdrawal_id,
        message="Withdrawal cancelled" if cancelled else "Withdrawal cannot be cancelled",
    )


# ======================
# Queries
# ======================
@router.get("/rates", response_model=RatesResponse)
async def get_rates(service: RampService = Depends(get_ramp_service)) -> RatesResponse:
    """Current demo rates for every supported currency."""
    return RatesResponse(rates=[RateView.from_quote(q) for q in service.rates()])


@router.get("/history/{user_id}", response_model=HistoryResponse)
async def get_history(
    user_id: str,
    service: RampService = Depends(get_ramp_service),
) -> HistoryResponse:
    """Deposits and withdrawals for a user in creation order."""
    deposits, withdrawals = await service.history(user_id)
    return HistoryResponse(
        user_id=user_id,
        deposits=[DepositView.from_record(d) for d in deposits],
        withdrawals=[WithdrawalView.from_record(w) for w in withdrawals],
    )


@router.get("/transfers", response_model=TransfersResponse)
async def get_transfers(
    address: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=200),
    service: RampService = Depends(get_ramp_service),
) -> TransfersResponse:
    """Recent ledger transfers, optionally filtered by address."""
    entries = service.transfer_log(address, limit)
    return TransfersResponse(
        network=service.network_name,
        transfers=[TransferView.from_entry(e) for e in entries],
    )
