"""Unit tests for open / click beacon endpoints."""

import asyncio

from fastapi.testclient import TestClient

from restock_service.infrastructure.database.repository import SubscriptionRepository
from restock_service.services.tracking import TRANSPARENT_PIXEL


def _subscription(repository: SubscriptionRepository, shop: str) -> int:
    subscription, _ = asyncio.run(repository.create(shop=shop, email="a@b.com", variant_id="123"))
    asyncio.run(repository.claim_pending(shop, "123"))
    return subscription.id


def test_open_serves_uncached_pixel(
    client: TestClient, repository: SubscriptionRepository, shop: str
) -> None:
    subscription_id = _subscription(repository, shop)

    response = client.get("/api/v1/track/open", params={"id": subscription_id})

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/gif"
    assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
    assert response.content == TRANSPARENT_PIXEL
    assert asyncio.run(repository.get(subscription_id)).opened is True


def test_open_with_unknown_or_missing_id_still_serves_pixel(client: TestClient) -> None:
    for params in ({"id": "999999"}, {"id": "garbage"}, {}):
        response = client.get("/api/v1/track/open", params=params)
        assert response.status_code == 200
        assert response.content == TRANSPARENT_PIXEL


def test_click_redirects_and_records(
    client: TestClient, repository: SubscriptionRepository, shop: str
) -> None:
    subscription_id = _subscription(repository, shop)
    target = "https://test-shop.myshopify.com/products/linen-shirt?variant=123"

    response = client.get(
        "/api/v1/track/click",
        params={"id": subscription_id, "url": target},
        follow_redirects=False,
    )

    assert response.status_code == 302
    assert response.headers["location"] == target
    subscription = asyncio.run(repository.get(subscription_id))
    assert subscription.opened is True
    assert subscription.clicked is True


def test_click_with_unknown_id_still_redirects(client: TestClient) -> None:
    response = client.get(
        "/api/v1/track/click",
        params={"id": "999999", "url": "https://example.com/p"},
        follow_redirects=False,
    )

    assert response.status_code == 302
    assert response.headers["location"] == "https://example.com/p"


def test_click_rejects_non_http_targets(client: TestClient) -> None:
    for url in ("javascript:alert(1)", "/relative/path", ""):
        response = client.get(
            "/api/v1/track/click",
            params={"id": "1", "url": url},
            follow_redirects=False,
        )
        assert response.status_code == 400
