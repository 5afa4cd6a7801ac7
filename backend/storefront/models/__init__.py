"""Database models for the storefront billing backend."""
from storefront.models.user import User
from storefront.models.plan import Plan
from storefront.models.subscription import Subscription, SubscriptionStatus
from storefront.models.bot import Bot, BotStatus
from storefront.models.order import Order, OrderStatus
from storefront.models.coupon import Coupon, CouponUsage, DiscountType

__all__ = [
    "User",
    "Plan",
    "Subscription",
    "SubscriptionStatus",
    "Bot",
    "BotStatus",
    "Order",
    "OrderStatus",
    "Coupon",
    "CouponUsage",
    "DiscountType",
]
