"""Trading API routes."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from pairpilot.api.deps import get_session
from pairpilot.api.schemas import (
    BalanceOut,
    BalancesResponse,
    ExecuteRequest,
    ExecutionResponse,
    FundingRateResponse,
    InitializeResponse,
    LeverageRequest,
    MarginTypeRequest,
    ModeRequest,
    OrderOut,
    OrdersResponse,
    PositionOut,
    PositionsResponse,
)
from pairpilot.exchange.base import ExchangeError
from pairpilot.execution.policy import PolicyValidationError
from pairpilot.models import ExecutionResult, OrderRecord

router = APIRouter()


def order_out(order: OrderRecord) -> OrderOut:
    return OrderOut(
        order_id=order.order_id,
        symbol=order.symbol,
        side=order.side.value,
        order_type=order.order_type,
        quantity=order.quantity,
        status=order.status,
        timestamp=order.timestamp.isoformat(),
        price=order.price,
        stop_price=order.stop_price,
        executed_quantity=order.executed_quantity,
        executed_price=order.executed_price,
        position_side=order.position_side.value if order.position_side else None,
        reduce_only=order.reduce_only,
    )


def execution_out(result: ExecutionResult) -> ExecutionResponse:
    return ExecutionResponse(
        success=result.success,
        order_id=result.order_id,
        order=order_out(result.order) if result.order else None,
        error_message=result.error_message,
        protected=result.protected,
        warnings=list(result.warnings),
        protective_orders=[order_out(o) for o in result.protective_orders],
    )


def _policy_json(session) -> dict[str, Any]:
    data = session.policy.model_dump(mode="json")
    data["allowed_symbols"] = sorted(data["allowed_symbols"])
    return data


def _upstream(exc: ExchangeError) -> HTTPException:
    return HTTPException(status_code=502, detail=f"Exchange error: {exc}")


@router.post("/initialize")
async def initialize(session=Depends(get_session)) -> InitializeResponse:
    """Connect to the exchange for the current mode and capture the initial balance."""
    try:
        await session.initialize()
    except ExchangeError as exc:
        raise _upstream(exc) from exc
    return InitializeResponse(
        initialized=session.initialized,
        mode=session.policy.mode,
        initial_balance=session.risk_gate.initial_balance,
    )


@router.post("/execute")
async def execute(body: ExecuteRequest, session=Depends(get_session)) -> ExecutionResponse:
    """Run a decision through the execution gate. Rejections are 200 with success=false."""
    result = await session.execute(body.symbol, body.decision, body.confidence)
    return execution_out(result)


@router.get("/config")
async def get_config(session=Depends(get_session)) -> dict[str, Any]:
    return _policy_json(session)


@router.put("/config")
async def update_config(
    body: dict[str, Any] = Body(...),
    session=Depends(get_session),
) -> dict[str, Any]:
    """Deep-merge a partial policy into the current one."""
    try:
        session.update_policy(body)
    except PolicyValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _policy_json(session)


@router.post("/mode")
async def switch_mode(body: ModeRequest, session=Depends(get_session)) -> dict[str, Any]:
    try:
        session.switch_mode(body.mode)
    except PolicyValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _policy_json(session)


@router.get("/balances")
async def get_balances(session=Depends(get_session)) -> BalancesResponse:
    try:
        balances = await session.balances()
    except ExchangeError as exc:
        raise _upstream(exc) from exc
    return BalancesResponse(
        data=[
            BalanceOut(asset=b.asset, free=b.free, locked=b.locked, total=b.total)
            for b in balances
        ]
    )


@router.get("/positions")
async def get_positions(session=Depends(get_session)) -> PositionsResponse:
    try:
        positions = await session.positions()
    except PolicyValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ExchangeError as exc:
        raise _upstream(exc) from exc
    return PositionsResponse(
        data=[
            PositionOut(
                symbol=p.symbol,
                amount=p.amount,
                entry_price=p.entry_price,
                unrealized_pnl=p.unrealized_pnl,
                leverage=p.leverage,
                position_side=p.position_side.value,
            )
            for p in positions
        ]
    )


@router.get("/orders")
async def get_orders(
    symbol: str | None = Query(None),
    session=Depends(get_session),
) -> OrdersResponse:
    try:
        orders = await session.open_orders(symbol)
    except ExchangeError as exc:
        raise _upstream(exc) from exc
    return OrdersResponse(data=[order_out(o) for o in orders])


@router.delete("/orders")
async def cancel_orders(
    symbol: str = Query(...),
    session=Depends(get_session),
):
    """Cancel every open order on *symbol*."""
    try:
        await session.cancel_all_orders(symbol)
    except ExchangeError as exc:
        raise _upstream(exc) from exc
    return {"ok": True, "symbol": symbol.upper()}


@router.post("/leverage")
async def change_leverage(body: LeverageRequest, session=Depends(get_session)):
    try:
        leverage = await session.change_leverage(body.symbol, body.leverage)
    except PolicyValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ExchangeError as exc:
        raise _upstream(exc) from exc
    return {"symbol": body.symbol.upper(), "leverage": leverage}


@router.post("/margin-type")
async def change_margin_type(body: MarginTypeRequest, session=Depends(get_session)):
    try:
        await session.change_margin_type(body.symbol, body.margin_type)
    except PolicyValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ExchangeError as exc:
        raise _upstream(exc) from exc
    return {"symbol": body.symbol.upper(), "margin_type": body.margin_type}


@router.get("/funding-rate")
async def get_funding_rate(
    symbol: str = Query(...),
    session=Depends(get_session),
) -> FundingRateResponse:
    try:
        rate = await session.funding_rate(symbol)
    except ExchangeError as exc:
        raise _upstream(exc) from exc
    return FundingRateResponse(
        symbol=rate.symbol,
        funding_rate=rate.funding_rate,
        mark_price=rate.mark_price,
        index_price=rate.index_price,
        next_funding_time=rate.next_funding_time.isoformat() if rate.next_funding_time else None,
    )
