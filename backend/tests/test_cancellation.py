"""Tests for user-initiated cancellation."""
from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
import stripe
from fastapi import HTTPException

from storefront.models.subscription import Subscription, SubscriptionStatus
from storefront.models.user import User
from storefront.services.cancellation import cancel_at_period_end, resolve_gateway_subscription_id


@pytest.fixture
async def active_subscription(test_db, test_user, pro_bundle):
    sub = Subscription(
        user_id=test_user.uuid,
        plan_id=pro_bundle.uuid,
        status=SubscriptionStatus.ACTIVE.value,
        start_date=datetime.utcnow() - timedelta(days=5),
        end_date=datetime.utcnow() + timedelta(days=25),
        stripe_session_id="cs_test_abc",
        stripe_subscription_id="sub_123",
    )
    test_db.add(sub)
    await test_db.commit()
    await test_db.refresh(sub)
    return sub


@pytest.mark.asyncio
async def test_cancel_keeps_access_until_end_date(test_db, test_user, active_subscription):
    end_date = active_subscription.end_date

    with patch("stripe.Subscription.modify") as mock_modify:
        cancelled = await cancel_at_period_end(test_db, test_user, active_subscription.uuid)

    mock_modify.assert_called_once_with("sub_123", cancel_at_period_end=True)
    assert cancelled.status == SubscriptionStatus.CANCELLED.value
    assert cancelled.end_date == end_date

    await test_db.refresh(active_subscription)
    assert active_subscription.status == SubscriptionStatus.CANCELLED.value


@pytest.mark.asyncio
async def test_cancel_resolves_subscription_through_checkout_session(test_db, test_user, active_subscription):
    active_subscription.stripe_subscription_id = None
    await test_db.commit()

    with patch("stripe.checkout.Session.retrieve") as mock_retrieve, \
            patch("stripe.Subscription.modify") as mock_modify:
        mock_retrieve.return_value = {"id": "cs_test_abc", "subscription": "sub_from_session"}
        cancelled = await cancel_at_period_end(test_db, test_user, active_subscription.uuid)

    mock_retrieve.assert_called_once_with("cs_test_abc")
    mock_modify.assert_called_once_with("sub_from_session", cancel_at_period_end=True)
    assert cancelled.stripe_subscription_id == "sub_from_session"


def test_resolve_subscription_id_stored_in_session_column():
    sub = Subscription(stripe_session_id="sub_legacy")
    assert resolve_gateway_subscription_id(sub) == "sub_legacy"


def test_resolve_subscription_id_unknown():
    sub = Subscription(stripe_session_id="manual-grant")
    assert resolve_gateway_subscription_id(sub) is None


@pytest.mark.asyncio
async def test_cancel_unresolvable_subscription(test_db, test_user, active_subscription):
    active_subscription.stripe_subscription_id = None
    active_subscription.stripe_session_id = "manual-grant"
    await test_db.commit()

    with patch("stripe.Subscription.modify") as mock_modify:
        with pytest.raises(HTTPException) as exc_info:
            await cancel_at_period_end(test_db, test_user, active_subscription.uuid)

    assert exc_info.value.status_code == 500
    mock_modify.assert_not_called()


@pytest.mark.asyncio
async def test_cancel_other_users_subscription(test_db, active_subscription):
    other = User(uuid="user-2", name="Other", email="other@example.com")
    test_db.add(other)
    await test_db.commit()

    with pytest.raises(HTTPException) as exc_info:
        await cancel_at_period_end(test_db, other, active_subscription.uuid)

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_cancel_missing_subscription(test_db, test_user):
    with pytest.raises(HTTPException) as exc_info:
        await cancel_at_period_end(test_db, test_user, "does-not-exist")

    assert exc_info.value.status_code == 404


@pytest.mark.asyncio
async def test_cancel_inactive_subscription(test_db, test_user, active_subscription):
    active_subscription.status = SubscriptionStatus.EXPIRED.value
    await test_db.commit()

    with pytest.raises(HTTPException) as exc_info:
        await cancel_at_period_end(test_db, test_user, active_subscription.uuid)

    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_cancel_stripe_failure(test_db, test_user, active_subscription):
    with patch("stripe.Subscription.modify", side_effect=stripe.InvalidRequestError("No such subscription", "id")):
        with pytest.raises(HTTPException) as exc_info:
            await cancel_at_period_end(test_db, test_user, active_subscription.uuid)

    assert exc_info.value.status_code == 400
    await test_db.refresh(active_subscription)
    assert active_subscription.status == SubscriptionStatus.ACTIVE.value
