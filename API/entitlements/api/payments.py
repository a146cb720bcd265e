from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from entitlements.core.identity import resolve_student_id
from entitlements.schemas.usage import (
    RecordSubscriptionRequest,
    RecordSubscriptionResponse,
    SubscriptionInfo,
    SubscriptionStatusResponse,
)
from entitlements.services import subscriptions
from entitlements.services.subscriptions import SubscriptionPeriod
from entitlements.storage.database import get_db

router = APIRouter(prefix="/api/payments", tags=["payments"])


def _info(period: SubscriptionPeriod) -> SubscriptionInfo:
    return SubscriptionInfo(
        subscription_id=period.subscription_id,
        learning_path_id=period.learning_path_id,
        plan_type=period.plan_type,
        plan_amount=period.plan_amount,
        daily_chat_limit=period.daily_chat_limit,
        monthly_mcq_limit=period.monthly_mcq_limit,
        valid_from=period.valid_from,
        valid_until=period.valid_until,
    )


@router.get("/subscription-status", response_model=SubscriptionStatusResponse)
async def subscription_status(
    request: Request,
    learning_path_id: str | None = Query(default=None, alias="learningPathId"),
    student_id: str | None = Query(default=None, alias="studentId"),
    db: AsyncSession = Depends(get_db),
):
    """Active subscription for the path. Without learningPathId only global subscriptions are considered."""
    student_id = resolve_student_id(request, student_id)
    active = await subscriptions.resolve(db, student_id, learning_path_id)
    return SubscriptionStatusResponse(
        has_subscription=active is not None,
        subscription=_info(active) if active else None,
    )


@router.post("/subscriptions", response_model=RecordSubscriptionResponse)
async def record_subscription(payload: RecordSubscriptionRequest, db: AsyncSession = Depends(get_db)):
    """Store the subscription granted by a verified payment."""
    period = await subscriptions.record_subscription(
        db,
        student_id=payload.student_id,
        learning_path_id=payload.learning_path_id,
        plan_amount=payload.plan_amount,
        valid_from=payload.valid_from,
        duration_days=payload.duration_days,
    )
    return RecordSubscriptionResponse(subscription=_info(period))
