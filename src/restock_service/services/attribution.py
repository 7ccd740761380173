"""Purchase attribution for back-in-stock notifications."""

from dataclasses import dataclass, field
from typing import Any

import structlog

from restock_service.infrastructure.database.repository import SubscriptionRepository
from restock_service.services.events import OrderEvent

logger = structlog.get_logger()


@dataclass
class AttributionReport:
    """Result of attributing one order."""

    shop: str
    order_id: str | None
    line_items: int = 0
    attributed_subscription_ids: list[int] = field(default_factory=list)
    errors: int = 0

    @property
    def attributed(self) -> int:
        return len(self.attributed_subscription_ids)

    def to_dict(self) -> dict[str, Any]:
        return {
            "shop": self.shop,
            "order_id": self.order_id,
            "line_items": self.line_items,
            "attributed": self.attributed,
            "errors": self.errors,
        }


class PurchaseAttributor:
    """Links completed orders back to notified subscriptions.

    A purchase is the strongest engagement signal, so attribution also
    backfills opened and clicked even when no beacon fired. Re-delivering the
    same order finds nothing left to attribute and is a no-op.
    """

    def __init__(self, repository: SubscriptionRepository):
        self.repository = repository

    async def attribute(self, order: OrderEvent) -> AttributionReport:
        """
        Mark matching subscriptions purchased.

        Each match is written as its own conditional update, so duplicate
        line items or a concurrent redelivery can only attribute a
        subscription once.

        Args:
            order: Normalized order-created event

        Returns:
            AttributionReport: which subscriptions were newly attributed
        """
        report = AttributionReport(
            shop=order.shop,
            order_id=order.order_id,
            line_items=len(order.line_items),
        )

        for variant_id in dict.fromkeys(order.line_items):
            try:
                matches = await self.repository.find_attributable(
                    order.shop, variant_id, order.order_email
                )
            except Exception as e:
                logger.error(
                    "Attribution lookup failed",
                    shop=order.shop,
                    variant_id=variant_id,
                    error=str(e),
                )
                report.errors += 1
                continue

            for subscription in matches:
                try:
                    newly_attributed = await self.repository.mark_purchased(subscription.id)
                except Exception as e:
                    logger.error(
                        "Attribution write failed",
                        subscription_id=subscription.id,
                        error=str(e),
                    )
                    report.errors += 1
                    continue

                if newly_attributed:
                    report.attributed_subscription_ids.append(subscription.id)
                    logger.info(
                        "Purchase attributed",
                        subscription_id=subscription.id,
                        variant_id=variant_id,
                        order_id=order.order_id,
                    )

        return report
