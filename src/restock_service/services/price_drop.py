"""Price drop alerts driven by product update webhooks.

Each subscription carries a reference price. A product update moves the
reference up when the price rises, and mails the subscriber when the price
falls by at least the configured threshold. The reference price doubles as
the claim: it is swapped to the new price *before* sending, so a redelivered
webhook sees no drop and sends nothing. A failed send swaps it back.

Price drop emails carry no tracking beacons and never touch funnel flags.
"""

from dataclasses import dataclass
from typing import Any

import structlog

from restock_service.infrastructure.database.models import Subscription
from restock_service.infrastructure.database.repository import SubscriptionRepository
from restock_service.infrastructure.email.base import EmailSender
from restock_service.services.events import RestockCandidate
from restock_service.services.templates import render_price_drop

logger = structlog.get_logger()


@dataclass
class PriceDropReport:
    shop: str
    variants_checked: int = 0
    reference_prices_set: int = 0
    alerts_sent: int = 0
    alerts_failed: int = 0
    below_threshold: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "shop": self.shop,
            "variants_checked": self.variants_checked,
            "reference_prices_set": self.reference_prices_set,
            "alerts_sent": self.alerts_sent,
            "alerts_failed": self.alerts_failed,
            "below_threshold": self.below_threshold,
            "errors": self.errors,
        }


def percentage_off(reference: float, current: float) -> int:
    return round((reference - current) / reference * 100)


class PriceDropNotifier:
    """Compares variant prices against each subscriber's reference price."""

    def __init__(
        self,
        repository: SubscriptionRepository,
        sender: EmailSender,
        threshold_percent: float = 5.0,
    ):
        self.repository = repository
        self.sender = sender
        self.threshold_percent = threshold_percent

    async def process(self, shop: str, candidates: list[RestockCandidate]) -> PriceDropReport:
        report = PriceDropReport(shop=shop)

        for candidate in candidates:
            if candidate.price is None or candidate.price <= 0:
                continue
            report.variants_checked += 1

            try:
                watchers = await self.repository.find_price_watchers(shop, candidate.variant_id)
            except Exception as e:
                logger.error(
                    "Price watcher lookup failed",
                    shop=shop,
                    variant_id=candidate.variant_id,
                    error=str(e),
                )
                report.errors += 1
                continue

            for subscription in watchers:
                try:
                    await self._evaluate(subscription, candidate, report)
                except Exception as e:
                    logger.error(
                        "Price drop evaluation failed",
                        subscription_id=subscription.id,
                        error=str(e),
                    )
                    report.errors += 1

        if report.variants_checked:
            logger.info("Price drop check complete", **report.to_dict())
        return report

    async def _evaluate(
        self,
        subscription: Subscription,
        candidate: RestockCandidate,
        report: PriceDropReport,
    ) -> None:
        current = candidate.price
        reference = subscription.subscribed_price

        if reference is None or reference <= 0:
            if await self.repository.compare_and_set_price(subscription.id, reference, current):
                report.reference_prices_set += 1
            return

        if current > reference:
            await self.repository.compare_and_set_price(subscription.id, reference, current)
            logger.debug(
                "Reference price raised",
                subscription_id=subscription.id,
                old_price=reference,
                new_price=current,
            )
            return

        if current == reference:
            return

        off = percentage_off(reference, current)
        if off < self.threshold_percent:
            report.below_threshold += 1
            return

        if not await self.repository.compare_and_set_price(subscription.id, reference, current):
            # Another delivery of this webhook already claimed the drop
            return

        message = render_price_drop(
            shop=candidate.shop,
            product_title=candidate.product_title or subscription.product_title,
            variant_title=candidate.variant_title or subscription.variant_title,
            old_price=reference,
            new_price=current,
            percentage_off=off,
            product_url=candidate.to_context().product_url,
        )

        try:
            result = await self.sender.send(
                to=subscription.email,
                subject=message.subject,
                html_body=message.html_body,
                text_body=message.text_body,
            )
            delivered = result.success
        except Exception as e:
            logger.warning(
                "Price drop email failed",
                subscription_id=subscription.id,
                error=str(e),
            )
            delivered = False

        if delivered:
            report.alerts_sent += 1
            logger.info(
                "Price drop alert sent",
                subscription_id=subscription.id,
                old_price=reference,
                new_price=current,
                percentage_off=off,
            )
            return

        report.alerts_failed += 1
        await self.repository.compare_and_set_price(subscription.id, current, reference)
