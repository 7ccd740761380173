"""Back in stock notification tasks."""

import asyncio
from typing import Any

import structlog
from celery import shared_task

from restock_service.config import get_settings
from restock_service.infrastructure.database.connection import (
    create_session_factory,
    get_async_engine,
)
from restock_service.infrastructure.database.repository import SubscriptionRepository
from restock_service.infrastructure.email import build_email_sender
from restock_service.services.dispatcher import DispatchReport, NotificationDispatcher
from restock_service.services.events import ProductContext

logger = structlog.get_logger()


async def run_dispatch(shop: str, variant_id: str, context: ProductContext) -> DispatchReport:
    """Dispatch one restock on a private engine.

    Each task runs in its own event loop, so it cannot share the API's
    pooled connections.
    """
    settings = get_settings()
    engine = get_async_engine(settings)
    sender = build_email_sender(settings)
    try:
        dispatcher = NotificationDispatcher(
            SubscriptionRepository(create_session_factory(engine)),
            sender,
            app_url=settings.app_url,
            concurrency=settings.dispatch_concurrency,
            send_timeout=settings.email_send_timeout_seconds,
        )
        return await dispatcher.dispatch(shop, variant_id, context)
    finally:
        aclose = getattr(sender, "aclose", None)
        if aclose is not None:
            await aclose()
        await engine.dispose()


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def notify_back_in_stock(
    self,
    shop: str,
    variant_id: str,
    product_context: dict[str, Any] | None = None,
) -> dict:
    """
    Notify every pending subscriber that a variant is back in stock.

    Queued by the product update and inventory level webhooks when
    ``dispatch_via_worker`` is enabled.

    Only a failed claim is retried. Individual send failures have already
    been released back to pending by the dispatcher and wait for the next
    restock event.

    Args:
        shop: Shop domain
        variant_id: The variant that's back in stock
        product_context: Serialized ProductContext from the webhook

    Returns:
        dict: Summary of notifications sent
    """
    logger.info(
        "Processing back in stock notification",
        shop=shop,
        variant_id=variant_id,
        attempt=self.request.retries + 1,
    )

    fields = {
        key: value
        for key, value in (product_context or {}).items()
        if key not in ("shop", "variant_id")
    }
    context = ProductContext(shop=shop, variant_id=variant_id, **fields)

    try:
        report = asyncio.run(run_dispatch(shop, variant_id, context))
    except Exception as exc:
        logger.error(
            "Back in stock dispatch failed",
            shop=shop,
            variant_id=variant_id,
            error=str(exc),
        )
        raise self.retry(exc=exc)

    return report.to_dict()
