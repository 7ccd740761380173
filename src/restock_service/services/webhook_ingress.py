"""Webhook ingress: authenticate and normalize inbound Shopify payloads.

Security contract:
- HMAC comparison is constant-time (hmac.compare_digest)
- Missing secret -> verification always fails (fail-closed)
- Verification failure -> AuthError before any payload parsing
"""

import base64
import hashlib
import hmac
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TypeVar

import orjson
import pydantic
import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator

from restock_service.exceptions import AuthError, ValidationError
from restock_service.services.events import (
    InventoryLevelEvent,
    OrderEvent,
    RestockCandidate,
)

logger = structlog.get_logger()

GID_PREFIXES = (
    "gid://shopify/ProductVariant/",
    "gid://shopify/InventoryItem/",
    "gid://shopify/Product/",
    "gid://shopify/Order/",
)


def normalize_id(value: int | str) -> str:
    """Turn numeric ids and Shopify GIDs into a bare id string."""
    text = str(value).strip()
    for prefix in GID_PREFIXES:
        if text.startswith(prefix):
            return text[len(prefix):]
    return text


# =============================================================================
# Signature verification
# =============================================================================


def verify_shopify_hmac(body: bytes, hmac_header: str | None, secret: str) -> bool:
    """Verify the X-Shopify-Hmac-Sha256 header against the raw request body.

    Args:
        body: Raw request body bytes
        hmac_header: Base64-encoded HMAC-SHA256 sent by Shopify
        secret: App API secret

    Returns:
        True if the signature is valid
    """
    if not secret:
        logger.warning("SHOPIFY_API_SECRET not configured, rejecting webhook")
        return False
    if not hmac_header:
        return False

    computed = base64.b64encode(
        hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    ).decode("utf-8")
    return hmac.compare_digest(computed, hmac_header)


def verify_app_proxy_signature(params: Iterable[tuple[str, str]], secret: str) -> bool:
    """Verify the ``signature`` query parameter Shopify adds to app proxy calls.

    Shopify signs the remaining query parameters sorted by key, each rendered
    as ``key=value`` (repeated keys joined with commas) and concatenated with
    no separator, using a hex HMAC-SHA256.
    """
    if not secret:
        logger.warning("SHOPIFY_API_SECRET not configured, rejecting app proxy call")
        return False

    grouped: dict[str, list[str]] = {}
    signature = None
    for key, value in params:
        if key == "signature":
            signature = value
            continue
        grouped.setdefault(key, []).append(value)

    if not signature:
        return False

    message = "".join(f"{key}={','.join(values)}" for key, values in sorted(grouped.items()))
    computed = hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()
    return hmac.compare_digest(computed, signature)


# =============================================================================
# Payload models
# =============================================================================


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


PayloadT = TypeVar("PayloadT", bound=_Payload)


class VariantPayload(_Payload):
    id: int | str
    title: str | None = None
    inventory_quantity: int | None = None
    price: float | None = None

    @field_validator("id")
    @classmethod
    def coerce_id(cls, v: int | str) -> str:
        return normalize_id(v)


class ProductUpdatePayload(_Payload):
    title: str
    handle: str | None = None
    variants: list[VariantPayload] = Field(default_factory=list)


class LineItemPayload(_Payload):
    variant_id: int | str | None = None
    quantity: int = 1


class OrderCreatedPayload(_Payload):
    id: int | str | None = None
    email: str = Field(..., min_length=3)
    line_items: list[LineItemPayload] = Field(default_factory=list)


class InventoryLevelPayload(_Payload):
    inventory_item_id: int | str
    available: int | None = None


@dataclass(frozen=True)
class ProductUpdate:
    """A normalized product update: every variant as a restock candidate."""

    shop: str
    product_title: str
    product_handle: str | None
    candidates: list[RestockCandidate] = field(default_factory=list)

    @property
    def restocks(self) -> list[RestockCandidate]:
        """Variants with positive quantity. Depletions never produce events."""
        return [c for c in self.candidates if c.is_restock]


# =============================================================================
# Ingress
# =============================================================================


class WebhookIngress:
    """Authenticates raw webhook bodies and turns them into internal events."""

    def __init__(self, api_secret: str):
        self.api_secret = api_secret

    def authenticate(self, body: bytes, hmac_header: str | None) -> None:
        if not verify_shopify_hmac(body, hmac_header, self.api_secret):
            logger.warning("Webhook HMAC verification failed")
            raise AuthError("Invalid webhook signature")

    def parse_product_update(self, shop: str | None, body: bytes) -> ProductUpdate:
        shop = self._require_shop(shop)
        payload = self._parse(ProductUpdatePayload, body)

        candidates = [
            RestockCandidate(
                shop=shop,
                variant_id=variant.id,
                quantity=variant.inventory_quantity or 0,
                product_title=payload.title,
                product_handle=payload.handle,
                variant_title=variant.title,
                price=variant.price,
            )
            for variant in payload.variants
        ]
        update = ProductUpdate(
            shop=shop,
            product_title=payload.title,
            product_handle=payload.handle,
            candidates=candidates,
        )
        logger.info(
            "Product update received",
            shop=shop,
            product=payload.title,
            variants=len(candidates),
            restocked=len(update.restocks),
        )
        return update

    def parse_order(self, shop: str | None, body: bytes) -> OrderEvent:
        shop = self._require_shop(shop)
        payload = self._parse(OrderCreatedPayload, body)

        variant_ids = [
            normalize_id(item.variant_id)
            for item in payload.line_items
            if item.variant_id is not None
        ]
        return OrderEvent(
            shop=shop,
            order_email=payload.email.strip().lower(),
            line_items=variant_ids,
            order_id=normalize_id(payload.id) if payload.id is not None else None,
        )

    def parse_inventory_level(self, shop: str | None, body: bytes) -> InventoryLevelEvent:
        shop = self._require_shop(shop)
        payload = self._parse(InventoryLevelPayload, body)
        return InventoryLevelEvent(
            shop=shop,
            inventory_item_id=normalize_id(payload.inventory_item_id),
            available=payload.available or 0,
        )

    @staticmethod
    def _require_shop(shop: str | None) -> str:
        if not shop or not shop.strip():
            raise ValidationError("Missing X-Shopify-Shop-Domain header")
        return shop.strip().lower()

    @staticmethod
    def _parse(model: type[PayloadT], body: bytes) -> PayloadT:
        try:
            data = orjson.loads(body)
        except orjson.JSONDecodeError as e:
            raise ValidationError("Invalid JSON payload", error=str(e)) from e

        if not isinstance(data, dict):
            raise ValidationError("Payload must be a JSON object")

        try:
            return model.model_validate(data)
        except pydantic.ValidationError as e:
            raise ValidationError(
                "Payload failed validation",
                errors=e.errors(include_url=False, include_context=False),
            ) from e
