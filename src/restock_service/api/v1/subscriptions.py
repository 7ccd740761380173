"""Subscription intake (storefront app proxy) and admin listing endpoints."""

from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from restock_service.api.deps import (
    SettingsDep,
    get_subscription_service,
    require_api_key,
)
from restock_service.exceptions import AuthError
from restock_service.infrastructure.database.repository import StatusFilter
from restock_service.services import SubscriptionService
from restock_service.services.webhook_ingress import verify_app_proxy_signature
from shared.constants import DEFAULT_LIST_LIMIT, MAX_LIST_LIMIT

router = APIRouter()
proxy_router = APIRouter()

ServiceDep = Annotated[SubscriptionService, Depends(get_subscription_service)]


# =============================================================================
# Models
# =============================================================================


class SubscribeRequest(BaseModel):
    """Payload posted by the storefront "notify me" form."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    email: str | None = None
    variant_id: str | int | None = Field(None, alias="variantId")
    shop: str | None = None
    product_title: str | None = Field(None, alias="productName")
    variant_title: str | None = Field(None, alias="variantTitle")
    product_handle: str | None = Field(None, alias="productHandle")
    product_id: str | int | None = Field(None, alias="productId")
    inventory_item_id: str | int | None = Field(None, alias="inventoryItemId")
    current_price: float | None = Field(None, alias="currentPrice")


class SubscriptionResponse(BaseModel):
    """A subscription as shown to admins."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    shop: str
    email: str
    variant_id: str
    product_title: str | None
    variant_title: str | None
    subscribed_price: float | None
    notified: bool
    opened: bool
    clicked: bool
    purchased: bool
    created_at: datetime | None


class SubscribeResponse(BaseModel):
    success: bool
    created: bool
    subscription_id: int


class SubscriptionListResponse(BaseModel):
    shop: str
    status: str
    count: int
    subscriptions: list[SubscriptionResponse]


# =============================================================================
# Endpoints
# =============================================================================


@proxy_router.post("/subscribe", response_model=SubscribeResponse)
async def subscribe(
    request: Request,
    payload: SubscribeRequest,
    service: ServiceDep,
    settings: SettingsDep,
) -> SubscribeResponse:
    """
    Register a back-in-stock subscription.

    Reached through the Shopify app proxy, which signs the query string.
    Subscribing twice to the same variant is not an error.
    """
    if not verify_app_proxy_signature(request.query_params.multi_items(), settings.shopify_api_secret):
        raise AuthError("Invalid app proxy signature")

    subscription, created = await service.subscribe(
        # The signed query names the shop; the body is only a fallback
        shop=request.query_params.get("shop") or payload.shop,
        email=payload.email,
        variant_id=payload.variant_id,
        product_title=payload.product_title,
        variant_title=payload.variant_title,
        product_handle=payload.product_handle,
        product_id=payload.product_id,
        inventory_item_id=payload.inventory_item_id,
        current_price=payload.current_price,
    )
    return SubscribeResponse(success=True, created=created, subscription_id=subscription.id)


@router.get(
    "",
    response_model=SubscriptionListResponse,
    dependencies=[Depends(require_api_key)],
)
async def list_subscriptions(
    service: ServiceDep,
    shop: str = Query(..., description="Shop domain"),
    status: StatusFilter = Query("all", description="Funnel status filter"),
    search: str | None = Query(None, description="Match email, product or variant title"),
    limit: int = Query(DEFAULT_LIST_LIMIT, ge=1, le=MAX_LIST_LIMIT),
    offset: int = Query(0, ge=0),
) -> SubscriptionListResponse:
    """List a shop's subscriptions for the admin view."""
    subscriptions = await service.list_subscriptions(
        shop, status=status, search=search, limit=limit, offset=offset
    )
    return SubscriptionListResponse(
        shop=shop,
        status=status,
        count=len(subscriptions),
        subscriptions=[SubscriptionResponse.model_validate(s) for s in subscriptions],
    )


@router.get(
    "/{subscription_id}",
    response_model=SubscriptionResponse,
    dependencies=[Depends(require_api_key)],
)
async def get_subscription(subscription_id: int, service: ServiceDep) -> SubscriptionResponse:
    subscription = await service.get(subscription_id)
    return SubscriptionResponse.model_validate(subscription)
