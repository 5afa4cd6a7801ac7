"""Tests for checkout session creation."""
from datetime import datetime
from unittest.mock import MagicMock, patch

import pytest
import stripe
from fastapi import HTTPException

from storefront.models.coupon import Coupon
from storefront.schemas.events import PlanType, decode_event
from storefront.services.checkout import create_checkout
from storefront.services.reconciliation import handle_checkout_completed


def fake_session(session_id="cs_test_1"):
    return MagicMock(id=session_id, url=f"https://checkout.stripe.test/{session_id}")


@pytest.mark.asyncio
async def test_checkout_monthly(test_db, test_user, pro_bundle):
    with patch("stripe.checkout.Session.create", return_value=fake_session()) as mock_create:
        session = await create_checkout(test_db, test_user, pro_bundle, PlanType.MONTHLY)

    assert session.id == "cs_test_1"
    params = mock_create.call_args.kwargs
    assert params["mode"] == "subscription"
    assert params["customer_email"] == "test@example.com"
    assert "customer" not in params
    assert "discounts" not in params

    price = params["line_items"][0]["price_data"]
    assert price["unit_amount"] == 7900
    assert price["recurring"] == {"interval": "month"}

    assert params["metadata"] == {
        "userId": "user-1",
        "planId": pro_bundle.uuid,
        "planName": "Pro Bundle",
        "planType": "monthly",
        "isTrial": "false",
        "category": "Bundles",
        "tier": "Pro",
        "couponCode": "",
    }
    assert "couponCode" not in params["subscription_data"]["metadata"]
    assert "trial_period_days" not in params["subscription_data"]


@pytest.mark.asyncio
async def test_checkout_yearly_uses_yearly_price(test_db, test_user, pro_bundle):
    test_user.stripe_customer_id = "cus_42"
    await test_db.commit()

    with patch("stripe.checkout.Session.create", return_value=fake_session()) as mock_create:
        await create_checkout(test_db, test_user, pro_bundle, PlanType.YEARLY)

    params = mock_create.call_args.kwargs
    price = params["line_items"][0]["price_data"]
    assert price["unit_amount"] == 79000
    assert price["recurring"] == {"interval": "year"}
    assert params["customer"] == "cus_42"
    assert "customer_email" not in params


@pytest.mark.asyncio
async def test_checkout_metadata_drives_reconciliation(test_db, test_user, pro_bundle):
    """What checkout stamps on the session is what the webhook reads back."""
    with patch("stripe.checkout.Session.create", return_value=fake_session("cs_round")) as mock_create:
        await create_checkout(test_db, test_user, pro_bundle, PlanType.YEARLY)

    params = mock_create.call_args.kwargs
    event = decode_event({
        "id": "evt_round",
        "type": "checkout.session.completed",
        "data": {"object": {
            "id": "cs_round",
            "amount_total": 79000,
            "payment_method_types": params["payment_method_types"],
            "subscription": "sub_round",
            "metadata": params["metadata"],
        }},
    })

    now = datetime(2024, 3, 1)
    result = await handle_checkout_completed(test_db, event, now=now)

    assert result.status == "processed"
    assert result.end_date == datetime(2025, 3, 1)
    assert sorted(result.provisioned_bots) == ["MVRV-Pro", "TimerDCA-Pro"]


@pytest.mark.asyncio
async def test_checkout_trial(test_db, test_user, pro_bundle):
    with patch("stripe.checkout.Session.create", return_value=fake_session()) as mock_create:
        await create_checkout(test_db, test_user, pro_bundle, PlanType.MONTHLY, is_trial=True)

    params = mock_create.call_args.kwargs
    assert params["metadata"]["isTrial"] == "true"
    assert params["subscription_data"]["trial_period_days"] == 7
    assert "Free Trial" in params["line_items"][0]["price_data"]["product_data"]["name"]


@pytest.mark.asyncio
async def test_second_trial_is_refused(test_db, test_user, pro_bundle):
    test_user.trial_used_categories = ["Bollinger Band DCA"]
    await test_db.commit()

    with patch("stripe.checkout.Session.create") as mock_create:
        with pytest.raises(HTTPException) as exc_info:
            await create_checkout(test_db, test_user, pro_bundle, PlanType.MONTHLY, is_trial=True)

    assert exc_info.value.status_code == 400
    mock_create.assert_not_called()


@pytest.mark.asyncio
async def test_inactive_plan_is_refused(test_db, test_user, pro_bundle):
    pro_bundle.is_active = False
    await test_db.commit()

    with pytest.raises(HTTPException) as exc_info:
        await create_checkout(test_db, test_user, pro_bundle, PlanType.MONTHLY)

    assert exc_info.value.status_code == 403


@pytest.mark.asyncio
async def test_checkout_applies_stripe_coupon(test_db, test_user, pro_bundle):
    test_db.add(Coupon(code="LAUNCH20", discount_value=20.0, stripe_coupon_id="co_launch"))
    await test_db.commit()

    with patch("stripe.checkout.Session.create", return_value=fake_session()) as mock_create:
        await create_checkout(test_db, test_user, pro_bundle, PlanType.MONTHLY, coupon_code=" launch20 ")

    params = mock_create.call_args.kwargs
    assert params["discounts"] == [{"coupon": "co_launch"}]
    assert params["metadata"]["couponCode"] == "LAUNCH20"


@pytest.mark.asyncio
async def test_checkout_rejects_unknown_coupon(test_db, test_user, pro_bundle):
    with patch("stripe.checkout.Session.create") as mock_create:
        with pytest.raises(HTTPException) as exc_info:
            await create_checkout(test_db, test_user, pro_bundle, PlanType.MONTHLY, coupon_code="NOPE")

    assert exc_info.value.status_code == 404
    mock_create.assert_not_called()


@pytest.mark.asyncio
async def test_checkout_stripe_failure(test_db, test_user, pro_bundle):
    with patch("stripe.checkout.Session.create", side_effect=stripe.APIConnectionError("network down")):
        with pytest.raises(HTTPException) as exc_info:
            await create_checkout(test_db, test_user, pro_bundle, PlanType.MONTHLY)

    assert exc_info.value.status_code == 400
