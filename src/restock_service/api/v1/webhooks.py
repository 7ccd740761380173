"""Shopify webhook endpoints.

Each handler verifies the HMAC over the raw body before parsing anything.
Once a webhook is authenticated the response is always 200: dispatch and
attribution failures are contained and reported in the body, so Shopify
does not redeliver an event that was already partially applied.
"""

from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Header, Request

from restock_service.api.deps import (
    SettingsDep,
    get_attributor,
    get_dispatcher,
    get_ingress,
    get_price_drop_notifier,
    get_variant_resolver,
)
from restock_service.config import Settings
from restock_service.services import (
    NotificationDispatcher,
    PriceDropNotifier,
    PurchaseAttributor,
    VariantResolver,
    WebhookIngress,
)
from restock_service.services.events import ProductContext
from shared.constants import (
    EMAIL_QUEUE,
    NOTIFY_BACK_IN_STOCK_TASK,
    SHOPIFY_HMAC_HEADER,
    SHOPIFY_SHOP_HEADER,
)

logger = structlog.get_logger()

router = APIRouter()

IngressDep = Annotated[WebhookIngress, Depends(get_ingress)]
DispatcherDep = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
HmacHeader = Annotated[str | None, Header(alias=SHOPIFY_HMAC_HEADER)]
ShopHeader = Annotated[str | None, Header(alias=SHOPIFY_SHOP_HEADER)]


def enqueue_dispatch(context: ProductContext) -> str:
    """Hand a restock to the email worker. Returns the Celery task id."""
    from email_worker.main import app as celery_app

    result = celery_app.send_task(
        NOTIFY_BACK_IN_STOCK_TASK,
        args=[context.shop, context.variant_id, context.to_dict()],
        queue=EMAIL_QUEUE,
    )
    return result.id


async def _dispatch_restock(
    context: ProductContext,
    dispatcher: NotificationDispatcher,
    settings: Settings,
) -> dict[str, Any]:
    if settings.dispatch_via_worker:
        try:
            task_id = enqueue_dispatch(context)
        except Exception as e:
            logger.error(
                "Restock enqueue failed",
                shop=context.shop,
                variant_id=context.variant_id,
                error=str(e),
            )
            return {"variant_id": context.variant_id, "queued": False, "error": "enqueue_failed"}
        logger.info(
            "Restock dispatch queued",
            shop=context.shop,
            variant_id=context.variant_id,
            task_id=task_id,
        )
        return {"variant_id": context.variant_id, "queued": True, "task_id": task_id}

    try:
        report = await dispatcher.dispatch(context.shop, context.variant_id, context)
    except Exception as e:
        logger.error(
            "Restock dispatch failed",
            shop=context.shop,
            variant_id=context.variant_id,
            error=str(e),
        )
        return {"variant_id": context.variant_id, "queued": False, "error": "claim_failed"}
    return {**report.to_dict(), "queued": False}


@router.post("/products/update")
async def product_update(
    request: Request,
    ingress: IngressDep,
    dispatcher: DispatcherDep,
    price_drops: Annotated[PriceDropNotifier, Depends(get_price_drop_notifier)],
    settings: SettingsDep,
    x_shopify_hmac_sha256: HmacHeader = None,
    x_shopify_shop_domain: ShopHeader = None,
) -> dict[str, Any]:
    """
    Product update webhook.

    Every variant with positive inventory is a restock event for its pending
    cohort. Variant prices also feed price drop alerts.
    """
    body = await request.body()
    ingress.authenticate(body, x_shopify_hmac_sha256)
    update = ingress.parse_product_update(x_shopify_shop_domain, body)

    restocks = [
        await _dispatch_restock(candidate.to_context(), dispatcher, settings)
        for candidate in update.restocks
    ]

    price_report = None
    if settings.price_drop_alerts_enabled:
        price_report = (await price_drops.process(update.shop, update.candidates)).to_dict()

    return {
        "shop": update.shop,
        "variants": len(update.candidates),
        "restocks": restocks,
        "price_drops": price_report,
    }


@router.post("/orders/create")
async def order_created(
    request: Request,
    ingress: IngressDep,
    attributor: Annotated[PurchaseAttributor, Depends(get_attributor)],
    x_shopify_hmac_sha256: HmacHeader = None,
    x_shopify_shop_domain: ShopHeader = None,
) -> dict[str, Any]:
    """Order created webhook. Attributes purchases to notified subscriptions."""
    body = await request.body()
    ingress.authenticate(body, x_shopify_hmac_sha256)
    order = ingress.parse_order(x_shopify_shop_domain, body)

    report = await attributor.attribute(order)
    return report.to_dict()


@router.post("/inventory_levels/update")
async def inventory_level_update(
    request: Request,
    ingress: IngressDep,
    dispatcher: DispatcherDep,
    resolver: Annotated[VariantResolver, Depends(get_variant_resolver)],
    settings: SettingsDep,
    x_shopify_hmac_sha256: HmacHeader = None,
    x_shopify_shop_domain: ShopHeader = None,
) -> dict[str, Any]:
    """Inventory level webhook. Resolves the inventory item to a variant first."""
    body = await request.body()
    ingress.authenticate(body, x_shopify_hmac_sha256)
    event = ingress.parse_inventory_level(x_shopify_shop_domain, body)

    if not event.is_restock:
        return {"shop": event.shop, "inventory_item_id": event.inventory_item_id, "restock": None}

    try:
        context = await resolver.resolve(event.shop, event.inventory_item_id)
    except Exception as e:
        logger.error(
            "Variant resolution failed",
            shop=event.shop,
            inventory_item_id=event.inventory_item_id,
            error=str(e),
        )
        context = None

    if context is None:
        return {"shop": event.shop, "inventory_item_id": event.inventory_item_id, "restock": None}

    restock = await _dispatch_restock(context, dispatcher, settings)
    return {"shop": event.shop, "inventory_item_id": event.inventory_item_id, "restock": restock}
