"""Settlements router: gateway confirmations and counter collection."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user, get_write_scope
from app.auth.rbac import FEE_MANAGER_ROLES, ensure_self_or_fee_manager, require_fee_manager
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.core.notifications import NotificationDispatcher, get_notifier
from app.core.session_scope import Scope
from app.db.session import get_db

from . import service
from .schemas import (
    BatchSettleRequest,
    ChargeSettleRequest,
    GatewaySettleRequest,
    ManualDueSettleRequest,
    SettlementResult,
)

router = APIRouter(prefix="/api/v1/settlements", tags=["settlements"])


@router.post("/gateway", response_model=SettlementResult)
async def settle_by_gateway(
    payload: GatewaySettleRequest,
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_write_scope),
    current_user: CurrentUser = Depends(get_current_user),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> SettlementResult:
    if payload.student_id is not None:
        ensure_self_or_fee_manager(current_user, payload.student_id)
    # Students pay only for themselves, also when the target is given by due_id or charge_id.
    payer_id = None if current_user.role in FEE_MANAGER_ROLES else current_user.id
    try:
        return await service.settle_by_gateway(db, scope, payload, notifier, payer_id=payer_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/manual",
    response_model=SettlementResult,
    dependencies=[Depends(require_fee_manager)],
)
async def settle_due_manually(
    payload: ManualDueSettleRequest,
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_write_scope),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> SettlementResult:
    try:
        return await service.settle_due_manually(db, scope, payload, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/batch",
    response_model=SettlementResult,
    dependencies=[Depends(require_fee_manager)],
)
async def settle_batch_for_student(
    payload: BatchSettleRequest,
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_write_scope),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> SettlementResult:
    try:
        return await service.settle_batch_for_student(db, scope, payload, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/charges/{charge_id}",
    response_model=SettlementResult,
    dependencies=[Depends(require_fee_manager)],
)
async def settle_charge(
    charge_id: UUID,
    payload: ChargeSettleRequest,
    db: AsyncSession = Depends(get_db),
    scope: Scope = Depends(get_write_scope),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> SettlementResult:
    try:
        return await service.settle_charge(db, scope, charge_id, payload, notifier)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
