from datetime import datetime

from entitlements.schemas.common import CamelModel


class ResourceUsage(CamelModel):
    used: int
    limit: int
    remaining: int


class UsageStatus(CamelModel):
    has_subscription: bool
    plan_type: str | None = None
    chat_usage: ResourceUsage
    mcq_usage: ResourceUsage


class ChapterStatusResponse(CamelModel):
    success: bool = True
    chapter_id: str
    usage: UsageStatus


class SubscriptionInfo(CamelModel):
    subscription_id: str
    learning_path_id: str | None = None
    plan_type: str
    plan_amount: int
    daily_chat_limit: int
    monthly_mcq_limit: int
    valid_from: datetime
    valid_until: datetime


class SubscriptionStatusResponse(CamelModel):
    success: bool = True
    has_subscription: bool
    subscription: SubscriptionInfo | None = None


class RecordSubscriptionRequest(CamelModel):
    student_id: str
    learning_path_id: str | None = None
    plan_amount: int
    valid_from: datetime | None = None
    duration_days: int | None = None


class RecordSubscriptionResponse(CamelModel):
    success: bool = True
    subscription: SubscriptionInfo
