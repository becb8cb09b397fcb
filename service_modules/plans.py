"""
Subscription plans shared by signup requests and renewals.
"""
from typing import NamedTuple, Optional


class Plan(NamedTuple):
    key: str
    days: int
    label: str
    amount: float


PLANS = {
    "1month": Plan("1month", 30, "1 Month Plan", 200),
    "2months": Plan("2months", 60, "2 Months Plan", 399),
    "3months": Plan("3months", 90, "3 Months Plan", 599),
    "12months": Plan("12months", 365, "Yearly (12 Months)", 2300),
}


def get_plan(key: Optional[str]) -> Optional[Plan]:
    if not key:
        return None
    return PLANS.get(key)


def plan_choices() -> str:
    return ", ".join(PLANS)


def list_plans() -> list:
    return [
        {"id": plan.key, "duration": plan.label, "days": plan.days, "price": plan.amount}
        for plan in PLANS.values()
    ]
