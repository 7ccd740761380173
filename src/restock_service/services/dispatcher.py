"""Back-in-stock notification dispatch.

Dispatch is claim-then-send:

1. Atomically flip every pending subscription of the variant to notified.
   Only the rows this call flipped are returned, so two concurrent restock
   events for the same variant split the cohort instead of both mailing it.
2. Send each claimed subscriber their email independently.
3. When a send fails, release that subscriber's claim so the next restock
   event for the variant retries it.

No dedup ledger is kept between calls; the notified flag is the ledger.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import structlog

from restock_service.infrastructure.database.models import Subscription
from restock_service.infrastructure.database.repository import SubscriptionRepository
from restock_service.infrastructure.email.base import EmailMessage, EmailSender
from restock_service.services.events import ProductContext
from restock_service.services.templates import render_back_in_stock, tracking_urls

logger = structlog.get_logger()


@dataclass
class DispatchReport:
    """Outcome of one dispatch. ``failed > 0`` is a partial batch failure."""

    shop: str
    variant_id: str
    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    failed_subscription_ids: list[int] = field(default_factory=list)

    @property
    def partial_failure(self) -> bool:
        return self.failed > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "shop": self.shop,
            "variant_id": self.variant_id,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
        }


class NotificationDispatcher:
    """Sends back-in-stock emails to the pending cohort of a variant."""

    def __init__(
        self,
        repository: SubscriptionRepository,
        sender: EmailSender,
        app_url: str,
        concurrency: int = 10,
        send_timeout: float = 15.0,
    ):
        self.repository = repository
        self.sender = sender
        self.app_url = app_url.rstrip("/")
        self.concurrency = max(1, concurrency)
        self.send_timeout = send_timeout

    async def dispatch(
        self,
        shop: str,
        variant_id: str,
        context: ProductContext | None = None,
    ) -> DispatchReport:
        """
        Notify every pending subscriber of ``(shop, variant_id)``.

        Individual send failures are contained and counted in the report;
        this method only raises if the claim itself fails.

        Args:
            shop: Shop domain
            variant_id: Restocked variant
            context: Product details from the restock event

        Returns:
            DispatchReport: attempted / succeeded / failed counts
        """
        context = context or ProductContext(shop=shop, variant_id=variant_id)
        report = DispatchReport(shop=shop, variant_id=variant_id)

        claimed = await self.repository.claim_pending(shop, variant_id)
        report.attempted = len(claimed)
        if not claimed:
            logger.info("No pending subscribers", shop=shop, variant_id=variant_id)
            return report

        logger.info(
            "Dispatching back in stock notifications",
            shop=shop,
            variant_id=variant_id,
            cohort=len(claimed),
        )

        semaphore = asyncio.Semaphore(self.concurrency)
        settled: set[int] = set()

        async def notify_one(subscription: Subscription) -> tuple[int, bool]:
            async with semaphore:
                delivered = await self._notify(subscription, context)
                settled.add(subscription.id)
                return subscription.id, delivered

        try:
            outcomes = await asyncio.gather(*(notify_one(sub) for sub in claimed))
        except asyncio.CancelledError:
            unsent = [sub for sub in claimed if sub.id not in settled]
            logger.warning(
                "Dispatch cancelled, releasing unsent claims",
                shop=shop,
                variant_id=variant_id,
                unsent=len(unsent),
            )
            await asyncio.shield(self._release_all(unsent))
            raise

        for subscription_id, delivered in outcomes:
            if delivered:
                report.succeeded += 1
            else:
                report.failed += 1
                report.failed_subscription_ids.append(subscription_id)

        if report.partial_failure:
            logger.warning("Partial batch failure", **report.to_dict())
        else:
            logger.info("Dispatch complete", **report.to_dict())
        return report

    async def _notify(self, subscription: Subscription, context: ProductContext) -> bool:
        """Send one email. On any failure, release the claim and return False."""
        try:
            message = self._render(subscription, context)
            result = await asyncio.wait_for(
                self.sender.send(
                    to=subscription.email,
                    subject=message.subject,
                    html_body=message.html_body,
                    text_body=message.text_body,
                ),
                timeout=self.send_timeout,
            )
        except Exception as e:
            logger.warning(
                "Email send failed",
                subscription_id=subscription.id,
                error_type=type(e).__name__,
                error=str(e),
            )
            await self._release(subscription)
            return False

        if not result.success:
            logger.warning(
                "Email send rejected",
                subscription_id=subscription.id,
                error=result.error,
            )
            await self._release(subscription)
            return False

        logger.info(
            "Subscriber notified",
            subscription_id=subscription.id,
            message_id=result.message_id,
        )
        return True

    def _render(self, subscription: Subscription, context: ProductContext) -> EmailMessage:
        open_url, click_url = tracking_urls(self.app_url, subscription.id, context.product_url)
        return render_back_in_stock(
            shop=context.shop,
            product_title=context.product_title or subscription.product_title,
            variant_title=context.variant_title or subscription.variant_title,
            open_url=open_url,
            click_url=click_url,
        )

    async def _release(self, subscription: Subscription) -> None:
        try:
            released = await self.repository.release_claim(subscription.id)
        except Exception as e:
            # Row stays notified and is not retried on later restocks.
            logger.error(
                "Failed to release claim",
                subscription_id=subscription.id,
                error=str(e),
            )
            return

        if not released:
            logger.info(
                "Claim kept, engagement already recorded",
                subscription_id=subscription.id,
            )

    async def _release_all(self, subscriptions: list[Subscription]) -> None:
        for subscription in subscriptions:
            await self._release(subscription)
