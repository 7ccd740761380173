"""Inventory item -> variant resolution for inventory-level restock signals."""

from typing import Protocol

import structlog

from restock_service.infrastructure.database.repository import SubscriptionRepository
from restock_service.services.events import ProductContext

logger = structlog.get_logger()


class VariantResolver(Protocol):
    async def resolve(self, shop: str, inventory_item_id: str) -> ProductContext | None: ...


class StoredVariantResolver:
    """Resolves inventory items from the ids captured at subscribe time.

    An inventory item nobody subscribed through cannot have pending
    subscribers, so a miss here means there is nothing to dispatch.
    """

    def __init__(self, repository: SubscriptionRepository):
        self.repository = repository

    async def resolve(self, shop: str, inventory_item_id: str) -> ProductContext | None:
        subscription = await self.repository.find_by_inventory_item(shop, inventory_item_id)
        if subscription is None:
            logger.debug(
                "No subscription for inventory item",
                shop=shop,
                inventory_item_id=inventory_item_id,
            )
            return None

        return ProductContext(
            shop=shop,
            variant_id=subscription.variant_id,
            product_title=subscription.product_title,
            variant_title=subscription.variant_title,
            product_handle=subscription.product_handle,
        )
