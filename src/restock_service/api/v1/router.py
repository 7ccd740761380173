"""API v1 router that aggregates all endpoint routers.

Shopify-facing surfaces (webhooks, app proxy) are mounted at the root by
``main.create_app`` because their paths are registered with Shopify.
"""

from fastapi import APIRouter

from restock_service.api.v1 import (
    analytics,
    health,
    subscriptions,
    tracking,
    webhooks,
)

api_router = APIRouter()

# Include all routers
api_router.include_router(
    health.router,
    tags=["Health"],
)

api_router.include_router(
    tracking.router,
    prefix="/track",
    tags=["Tracking"],
)

api_router.include_router(
    subscriptions.router,
    prefix="/subscriptions",
    tags=["Subscriptions"],
)

api_router.include_router(
    analytics.router,
    prefix="/analytics",
    tags=["Analytics"],
)

webhook_router = webhooks.router
proxy_router = subscriptions.proxy_router
