"""Plan catalog: the paid amount alone decides plan type and limits."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Plan:
    plan_type: str
    plan_amount: int
    daily_chat_limit: int
    monthly_mcq_limit: int


BASIC = Plan(plan_type="basic", plan_amount=99, daily_chat_limit=3, monthly_mcq_limit=3)
PREMIUM = Plan(plan_type="premium", plan_amount=199, daily_chat_limit=5, monthly_mcq_limit=5)

PLANS = {plan.plan_type: plan for plan in (BASIC, PREMIUM)}


def plan_for_amount(amount: int | None) -> Plan:
    # Anything that is not exactly the premium price is treated as basic.
    if amount == PREMIUM.plan_amount:
        return PREMIUM
    return BASIC
