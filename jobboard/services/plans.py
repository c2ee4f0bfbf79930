"""
Subscription tiers and premium gating.

Prices are per month; a tier is billed for ``billed_months`` months and stays
valid for ``valid_months``. Quotas of None mean unlimited.
"""
import calendar
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from jobboard.db.documents import (
    PaymentStatus,
    Plan,
    PlanTier,
    User,
    UserType,
    get_profile,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tier:
    monthly_price: int
    billed_months: int
    valid_months: int
    # recruiters: job postings, applicants: active applications
    quota: Optional[int]

    @property
    def amount(self) -> int:
        return self.monthly_price * self.billed_months


TIERS = {
    UserType.RECRUITER: {
        PlanTier.FREE: Tier(0, 0, 0, 1),
        PlanTier.MONTHLY: Tier(199, 1, 1, 5),
        PlanTier.QUARTERLY: Tier(299, 4, 3, 15),
        PlanTier.YEARLY: Tier(399, 12, 12, None),
    },
    UserType.APPLICANT: {
        PlanTier.FREE: Tier(0, 0, 0, 10),
        PlanTier.MONTHLY: Tier(99, 1, 1, 20),
        PlanTier.QUARTERLY: Tier(88, 4, 3, 40),
        PlanTier.YEARLY: Tier(84, 12, 12, None),
    },
}


def tier_for(user_type: UserType, plan: PlanTier) -> Tier:
    return TIERS[UserType(user_type)][PlanTier(plan)]


def add_months(dt: datetime, months: int) -> datetime:
    """Calendar month arithmetic; the day is clamped to the target month's length."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def compute_expiry(user_type: UserType, plan: PlanTier, now: Optional[datetime] = None) -> Optional[datetime]:
    tier = tier_for(user_type, plan)
    if not tier.valid_months:
        return None
    return add_months(now or datetime.utcnow(), tier.valid_months)


def is_expired(plan: Plan, now: Optional[datetime] = None) -> bool:
    return plan.expireon is not None and (now or datetime.utcnow()) > plan.expireon


async def set_premium(user_id, user_type: UserType, premium: bool) -> bool:
    """Flip the premium flag on the user's profile. Returns False when no profile exists."""
    profile = await get_profile(user_id, user_type)
    if profile is None:
        return False
    if profile.premium != premium:
        profile.premium = premium
        await profile.save()
    return True


async def expire_if_due(plan: Plan, now: Optional[datetime] = None) -> bool:
    """Mark a lapsed plan Expired and drop premium. Returns True if the plan is expired."""
    if not is_expired(plan, now):
        return False
    if plan.payment_status != PaymentStatus.EXPIRED:
        plan.payment_status = PaymentStatus.EXPIRED
        plan.updated_at = datetime.utcnow()
        await plan.save()
        await set_premium(plan.user_id, plan.user_type, False)
        logger.info("Plan of user %s expired on %s", plan.user_id, plan.expireon)
    return True


async def active_tier(user: User) -> PlanTier:
    """Tier currently in force for the user: a paid, unexpired plan, else Free."""
    plan = await Plan.find_one({"user_id": user.id})
    if plan is None or plan.payment_status != PaymentStatus.PAID:
        return PlanTier.FREE
    if await expire_if_due(plan):
        return PlanTier.FREE
    return plan.plan


async def quota_for(user: User) -> Optional[int]:
    return tier_for(user.type, await active_tier(user)).quota


async def activate(plan: Plan, payment_id: str, now: Optional[datetime] = None) -> Optional[Plan]:
    """
    Record a successful payment: Paid status, expiry from the tier, premium on.

    Only a Pending order is activated. Returns None when the plan was already
    settled, so a verified payment cannot be applied twice.
    """
    now = now or datetime.utcnow()
    expireon = compute_expiry(plan.user_type, plan.plan, now)
    result = await Plan.get_motor_collection().update_one(
        {"_id": plan.id, "order_id": plan.order_id, "payment_status": PaymentStatus.PENDING.value},
        {"$set": {
            "payment_status": PaymentStatus.PAID.value,
            "payment_id": payment_id,
            "expireon": expireon,
            "updated_at": now,
        }},
    )
    if result.modified_count != 1:
        logger.warning("Order %s of user %s is no longer pending; not activating", plan.order_id, plan.user_id)
        return None
    plan.payment_status = PaymentStatus.PAID
    plan.payment_id = payment_id
    plan.expireon = expireon
    plan.updated_at = now
    await set_premium(plan.user_id, plan.user_type, True)
    logger.info("Activated %s plan for user %s until %s", plan.plan.value, plan.user_id, plan.expireon)
    return plan
