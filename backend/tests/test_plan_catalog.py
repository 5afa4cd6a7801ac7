"""Tests for plan lookup and the self-healing catalog."""
import pytest
from sqlalchemy import select, func

from storefront.models.plan import Plan
from storefront.schemas.events import PlanType
from storefront.services.plan_catalog import (
    PlanSpec,
    ensure_plan,
    find_plan_by_name,
    parse_category_tier,
    plan_spec_from_payment,
)


def test_parse_category_tier_from_name():
    assert parse_category_tier("Smart Timer DCA - Pro") == ("Smart Timer DCA", "Pro")


def test_parse_category_tier_defaults():
    assert parse_category_tier("Trading Bot") == ("Trading Bot", "Starter")
    assert parse_category_tier(" - ") == ("Bot", "Starter")


def test_spec_from_monthly_payment():
    new_plan = plan_spec_from_payment("MVRV Smart DCA - Pro", PlanType.MONTHLY, 49.0)

    assert new_plan.category == "MVRV Smart DCA"
    assert new_plan.tier == "Pro"
    assert new_plan.price_monthly == 49.0
    assert new_plan.price_yearly == 588.0
    assert new_plan.features == ["Automated Trading"]
    assert new_plan.included_bots == []
    assert new_plan.is_active is True


def test_spec_from_yearly_payment():
    new_plan = plan_spec_from_payment("MVRV Smart DCA - Pro", PlanType.YEARLY, 588.0)

    assert new_plan.price_yearly == 588.0
    assert new_plan.price_monthly == 49.0


def test_spec_prefers_explicit_category_and_tier():
    new_plan = plan_spec_from_payment(
        "Ultimate-DCA-Max", PlanType.MONTHLY, 99.0, category="Ultimate DCA", tier="Expert"
    )
    assert new_plan.category == "Ultimate DCA"
    assert new_plan.tier == "Expert"


@pytest.mark.asyncio
async def test_ensure_plan_creates_missing_plan(test_db):
    new_plan = plan_spec_from_payment("Smart Timer DCA - Pro", PlanType.MONTHLY, 39.0)

    plan = await ensure_plan(test_db, new_plan)
    await test_db.commit()

    found = await find_plan_by_name(test_db, "Smart Timer DCA - Pro")
    assert found is not None
    assert found.uuid == plan.uuid
    assert found.category == "Smart Timer DCA"
    assert found.price_monthly == 39.0
    assert found.bot_names == ["Smart Timer DCA - Pro"]


@pytest.mark.asyncio
async def test_ensure_plan_is_idempotent(test_db, pro_bundle):
    new_plan = PlanSpec(
        name="Pro Bundle",
        category="Other",
        tier="Other",
        price_monthly=1.0,
        price_yearly=12.0,
    )

    plan = await ensure_plan(test_db, new_plan)

    assert plan.uuid == pro_bundle.uuid
    # Existing plan is returned untouched
    assert plan.category == "Bundles"
    assert plan.price_monthly == 79.0

    count = await test_db.execute(select(func.count(Plan.uuid)).where(Plan.name == "Pro Bundle"))
    assert count.scalar() == 1


@pytest.mark.asyncio
async def test_find_plan_by_name_missing(test_db):
    assert await find_plan_by_name(test_db, "Nope") is None


def test_bundle_bot_names():
    bundle = Plan(name="Pro Bundle", included_bots=["A", "B", "C"])
    single = Plan(name="Solo", included_bots=[])

    assert bundle.bot_names == ["A", "B", "C"]
    assert bundle.is_bundle is True
    assert single.bot_names == ["Solo"]
    assert single.is_bundle is False
