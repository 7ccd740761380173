"""Subscription intake and admin reads.

There is exactly one way to create a subscription. Identity is
(shop, lowercased email, variant id); subscribing twice returns the
existing record instead of creating a duplicate.
"""

import re
from typing import Any

import structlog

from restock_service.exceptions import NotFoundError, ValidationError
from restock_service.infrastructure.database.models import Subscription
from restock_service.infrastructure.database.repository import (
    StatusFilter,
    SubscriptionRepository,
)
from restock_service.services.webhook_ingress import normalize_id

logger = structlog.get_logger()

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class SubscriptionService:
    """Creates subscriptions and answers admin queries about them."""

    def __init__(self, repository: SubscriptionRepository):
        self.repository = repository

    async def subscribe(
        self,
        *,
        shop: str | None,
        email: str | None,
        variant_id: str | int | None,
        product_title: str | None = None,
        variant_title: str | None = None,
        product_handle: str | None = None,
        product_id: str | int | None = None,
        inventory_item_id: str | int | None = None,
        current_price: float | None = None,
    ) -> tuple[Subscription, bool]:
        """
        Register interest in a variant.

        Returns:
            (subscription, created): created is False when the customer was
            already subscribed to this variant.

        Raises:
            ValidationError: missing shop/email/variant or malformed email
        """
        missing = [
            name
            for name, value in (("shop", shop), ("email", email), ("variant_id", variant_id))
            if value is None or not str(value).strip()
        ]
        if missing:
            raise ValidationError("Missing required fields", fields=missing)

        normalized_email = str(email).strip().lower()
        if not EMAIL_PATTERN.match(normalized_email):
            raise ValidationError("Invalid email format")

        subscription, created = await self.repository.create(
            shop=str(shop).strip().lower(),
            email=normalized_email,
            variant_id=normalize_id(variant_id),
            product_title=product_title,
            variant_title=variant_title,
            product_handle=product_handle,
            product_id=normalize_id(product_id) if product_id is not None else None,
            inventory_item_id=(
                normalize_id(inventory_item_id) if inventory_item_id is not None else None
            ),
            subscribed_price=current_price,
        )

        if created:
            logger.info(
                "Subscription created",
                subscription_id=subscription.id,
                shop=subscription.shop,
                variant_id=subscription.variant_id,
            )
        else:
            logger.info(
                "Already subscribed",
                subscription_id=subscription.id,
                shop=subscription.shop,
                variant_id=subscription.variant_id,
            )
        return subscription, created

    async def get(self, subscription_id: int) -> Subscription:
        subscription = await self.repository.get(subscription_id)
        if subscription is None:
            raise NotFoundError("Subscription not found", subscription_id=subscription_id)
        return subscription

    async def list_subscriptions(
        self,
        shop: str,
        status: StatusFilter = "all",
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Subscription]:
        return await self.repository.list_subscriptions(
            shop.strip().lower(), status=status, search=search, limit=limit, offset=offset
        )

    async def funnel(self, shop: str) -> dict[str, Any]:
        """Funnel counts plus rates relative to all subscription requests."""
        counts = await self.repository.funnel_stats(shop.strip().lower())
        total = counts["total"]

        def pct(value: int) -> float:
            return round(value / total * 100, 1) if total else 0.0

        return {
            **counts,
            "delivery_rate": pct(counts["notified"]),
            "open_rate": pct(counts["opened"]),
            "click_rate": pct(counts["clicked"]),
            "conversion_rate": pct(counts["purchased"]),
        }
