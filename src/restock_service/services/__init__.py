"""Business logic services."""

from restock_service.services.attribution import AttributionReport, PurchaseAttributor
from restock_service.services.dispatcher import DispatchReport, NotificationDispatcher
from restock_service.services.price_drop import PriceDropNotifier, PriceDropReport
from restock_service.services.subscriptions import SubscriptionService
from restock_service.services.tracking import TrackingBeacon
from restock_service.services.variant_resolver import StoredVariantResolver, VariantResolver
from restock_service.services.webhook_ingress import ProductUpdate, WebhookIngress

__all__ = [
    "AttributionReport",
    "DispatchReport",
    "NotificationDispatcher",
    "PriceDropNotifier",
    "PriceDropReport",
    "ProductUpdate",
    "PurchaseAttributor",
    "StoredVariantResolver",
    "SubscriptionService",
    "TrackingBeacon",
    "VariantResolver",
    "WebhookIngress",
]
