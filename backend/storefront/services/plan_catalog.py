"""Plan catalog lookups and the self-healing ``ensure_plan`` operation."""
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import settings
from storefront.models.plan import Plan
from storefront.schemas.events import PlanType

logger = logging.getLogger(__name__)


@dataclass
class PlanSpec:
    """Attributes of a plan to create when the catalog does not know it yet."""

    name: str
    category: str
    tier: str
    price_monthly: float
    price_yearly: float
    features: list[str] = field(default_factory=lambda: list(settings.DEFAULT_PLAN_FEATURES))
    included_bots: list[str] = field(default_factory=list)
    is_active: bool = True


def parse_category_tier(plan_name: str) -> tuple[str, str]:
    """Legacy fallback: read "<category> - <tier>" out of a plan name.

    Only used when payment metadata carries no explicit category/tier.
    """
    parts = plan_name.split(settings.PLAN_NAME_SEPARATOR)
    category = parts[0].strip() if parts else ""
    tier = parts[1].strip() if len(parts) > 1 else ""
    return category or settings.DEFAULT_PLAN_CATEGORY, tier or settings.DEFAULT_PLAN_TIER


def plan_spec_from_payment(
    plan_name: str,
    plan_type: PlanType,
    amount: float,
    category: Optional[str] = None,
    tier: Optional[str] = None,
) -> PlanSpec:
    """Describe a plan first seen in a payment of ``amount``.

    The paid amount prices the purchased period; the other period is derived
    from it (yearly = 12 x monthly).
    """
    if not category or not tier:
        parsed_category, parsed_tier = parse_category_tier(plan_name)
        logger.warning(
            f"Plan '{plan_name}' has no category/tier in payment metadata, "
            f"falling back to name parsing ({parsed_category} / {parsed_tier})"
        )
        category = category or parsed_category
        tier = tier or parsed_tier

    if plan_type is PlanType.YEARLY:
        price_monthly, price_yearly = round(amount / 12, 2), amount
    else:
        price_monthly, price_yearly = amount, round(amount * 12, 2)

    return PlanSpec(
        name=plan_name,
        category=category,
        tier=tier,
        price_monthly=price_monthly,
        price_yearly=price_yearly,
    )


async def find_plan_by_name(db: AsyncSession, name: str) -> Optional[Plan]:
    result = await db.execute(select(Plan).where(Plan.name == name))
    return result.scalar_one_or_none()


async def ensure_plan(db: AsyncSession, new_plan: PlanSpec) -> Plan:
    """
    Return the plan named ``new_plan.name``, creating it from ``new_plan`` if needed.

    - Idempotent: an existing plan is returned untouched
    - The unique constraint on plan name settles concurrent creation: the
      loser of the race rolls back and re-reads the winner's row, so call
      this before any other pending writes in the session
    - Flushes but does not commit
    """
    plan = await find_plan_by_name(db, new_plan.name)
    if plan:
        return plan

    plan = Plan(
        name=new_plan.name,
        category=new_plan.category,
        tier=new_plan.tier,
        price_monthly=new_plan.price_monthly,
        price_yearly=new_plan.price_yearly,
        features=list(new_plan.features),
        included_bots=list(new_plan.included_bots),
        is_active=new_plan.is_active,
    )
    db.add(plan)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        existing = await find_plan_by_name(db, new_plan.name)
        if existing is None:
            raise
        return existing

    logger.info(f"Auto-created plan '{plan.name}' ({plan.category} / {plan.tier})")
    return plan
