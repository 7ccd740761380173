"""Notification funnel analytics endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from restock_service.api.deps import get_subscription_service, require_api_key
from restock_service.services import SubscriptionService

router = APIRouter(dependencies=[Depends(require_api_key)])


class FunnelResponse(BaseModel):
    """Funnel counts for one shop. Rates are percentages of ``total``."""

    shop: str
    total: int
    pending: int
    notified: int
    opened: int
    clicked: int
    purchased: int
    delivery_rate: float
    open_rate: float
    click_rate: float
    conversion_rate: float


@router.get("/funnel", response_model=FunnelResponse)
async def funnel(
    service: Annotated[SubscriptionService, Depends(get_subscription_service)],
    shop: str = Query(..., description="Shop domain"),
) -> FunnelResponse:
    """
    Back-in-stock funnel for a shop.

    Counts subscriptions at each stage: requested, notified, opened,
    clicked and purchased.
    """
    stats = await service.funnel(shop)
    return FunnelResponse(shop=shop, **stats)
