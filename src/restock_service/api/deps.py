"""FastAPI dependency providers.

Every capability a route needs is resolved here so tests can swap any of
them through ``app.dependency_overrides``.
"""

import hmac
from typing import Annotated

from fastapi import Depends, Request

from restock_service.config import Settings, get_settings
from restock_service.exceptions import AuthError
from restock_service.infrastructure.database.connection import get_session_factory
from restock_service.infrastructure.database.repository import SubscriptionRepository
from restock_service.infrastructure.email import EmailSender, get_email_sender
from restock_service.services import (
    NotificationDispatcher,
    PriceDropNotifier,
    PurchaseAttributor,
    StoredVariantResolver,
    SubscriptionService,
    TrackingBeacon,
    VariantResolver,
    WebhookIngress,
)

SettingsDep = Annotated[Settings, Depends(get_settings)]


def get_repository() -> SubscriptionRepository:
    return SubscriptionRepository(get_session_factory())


RepositoryDep = Annotated[SubscriptionRepository, Depends(get_repository)]
SenderDep = Annotated[EmailSender, Depends(get_email_sender)]


def get_ingress(settings: SettingsDep) -> WebhookIngress:
    return WebhookIngress(settings.shopify_api_secret)


def get_dispatcher(
    repository: RepositoryDep,
    sender: SenderDep,
    settings: SettingsDep,
) -> NotificationDispatcher:
    return NotificationDispatcher(
        repository,
        sender,
        app_url=settings.app_url,
        concurrency=settings.dispatch_concurrency,
        send_timeout=settings.email_send_timeout_seconds,
    )


def get_price_drop_notifier(
    repository: RepositoryDep,
    sender: SenderDep,
    settings: SettingsDep,
) -> PriceDropNotifier:
    return PriceDropNotifier(
        repository,
        sender,
        threshold_percent=settings.price_drop_threshold_percent,
    )


def get_beacon(repository: RepositoryDep) -> TrackingBeacon:
    return TrackingBeacon(repository)


def get_attributor(repository: RepositoryDep) -> PurchaseAttributor:
    return PurchaseAttributor(repository)


def get_variant_resolver(repository: RepositoryDep) -> VariantResolver:
    return StoredVariantResolver(repository)


def get_subscription_service(repository: RepositoryDep) -> SubscriptionService:
    return SubscriptionService(repository)


def require_api_key(request: Request, settings: SettingsDep) -> None:
    """Guard admin reads with the shared API key header.

    An unset key disables the admin endpoints entirely.
    """
    provided = request.headers.get(settings.api_key_header, "")
    if not settings.admin_api_key or not hmac.compare_digest(
        provided.encode("utf-8"), settings.admin_api_key.encode("utf-8")
    ):
        raise AuthError("Invalid or missing API key")
