"""Unit tests for Shopify webhook endpoints."""

import asyncio
from collections.abc import Callable

import orjson
import pytest
from fastapi.testclient import TestClient

from restock_service.api.v1 import webhooks
from restock_service.config import Settings
from restock_service.infrastructure.database.repository import SubscriptionRepository


@pytest.fixture
def post_webhook(client: TestClient, sign_webhook: Callable[[bytes], str], shop: str) -> Callable:
    def post(path: str, payload: object, signature: str | None = None, shop_domain: str | None = shop):
        body = payload if isinstance(payload, bytes) else orjson.dumps(payload)
        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Hmac-Sha256": signature or sign_webhook(body),
        }
        if shop_domain:
            headers["X-Shopify-Shop-Domain"] = shop_domain
        return client.post(path, content=body, headers=headers)

    return post


def _subscribe(repository: SubscriptionRepository, shop: str, email: str, **fields: object) -> int:
    subscription, _ = asyncio.run(
        repository.create(shop=shop, email=email, variant_id=fields.pop("variant_id", "123"), **fields)
    )
    return subscription.id


def _product_payload(quantity: int | None, price: str | None = None) -> dict:
    variant = {"id": 123, "title": "Large", "inventory_quantity": quantity}
    if price is not None:
        variant["price"] = price
    return {"title": "Linen Shirt", "handle": "linen-shirt", "variants": [variant]}


class TestWebhookAuth:
    def test_invalid_signature_is_rejected(self, post_webhook: Callable) -> None:
        response = post_webhook("/webhooks/products/update", _product_payload(5), signature="bm9wZQ==")

        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_malformed_payload_is_rejected(self, post_webhook: Callable) -> None:
        response = post_webhook("/webhooks/products/update", b"{not json")
        assert response.status_code == 400

    def test_missing_shop_domain_is_rejected(self, post_webhook: Callable) -> None:
        response = post_webhook("/webhooks/orders/create", {"email": "a@b.com"}, shop_domain=None)
        assert response.status_code == 400

    def test_missing_secret_rejects_everything(
        self, post_webhook: Callable, test_settings: Settings
    ) -> None:
        test_settings.shopify_api_secret = ""
        response = post_webhook("/webhooks/products/update", _product_payload(5))
        assert response.status_code == 401


class TestProductUpdate:
    def test_restock_notifies_pending_subscribers(
        self,
        post_webhook: Callable,
        repository: SubscriptionRepository,
        email_sender: object,
        shop: str,
    ) -> None:
        subscription_id = _subscribe(repository, shop, "a@b.com")

        response = post_webhook("/webhooks/products/update", _product_payload(5))

        assert response.status_code == 200
        restock = response.json()["restocks"][0]
        assert restock["variant_id"] == "123"
        assert restock["succeeded"] == 1
        assert email_sender.recipients == ["a@b.com"]
        assert asyncio.run(repository.get(subscription_id)).notified is True

    def test_redelivered_restock_does_not_resend(
        self, post_webhook: Callable, repository: SubscriptionRepository, email_sender: object, shop: str
    ) -> None:
        _subscribe(repository, shop, "a@b.com")

        post_webhook("/webhooks/products/update", _product_payload(5))
        response = post_webhook("/webhooks/products/update", _product_payload(5))

        assert response.json()["restocks"][0]["attempted"] == 0
        assert email_sender.recipients == ["a@b.com"]

    @pytest.mark.parametrize("quantity", [0, None])
    def test_out_of_stock_changes_nothing(
        self,
        post_webhook: Callable,
        repository: SubscriptionRepository,
        email_sender: object,
        shop: str,
        quantity: int | None,
    ) -> None:
        subscription_id = _subscribe(repository, shop, "a@b.com")

        response = post_webhook("/webhooks/products/update", _product_payload(quantity))

        assert response.status_code == 200
        assert response.json()["restocks"] == []
        assert email_sender.attempts == []
        subscription = asyncio.run(repository.get(subscription_id))
        assert subscription.funnel.is_pending

    def test_price_drop_alert(
        self, post_webhook: Callable, repository: SubscriptionRepository, email_sender: object, shop: str
    ) -> None:
        _subscribe(repository, shop, "a@b.com", subscribed_price=50.0)

        response = post_webhook("/webhooks/products/update", _product_payload(0, price="40.00"))

        assert response.json()["price_drops"]["alerts_sent"] == 1
        assert email_sender.sent[0]["subject"].startswith("Price Drop:")

    def test_price_drop_alerts_can_be_disabled(
        self, post_webhook: Callable, repository: SubscriptionRepository, test_settings: Settings, shop: str
    ) -> None:
        test_settings.price_drop_alerts_enabled = False
        _subscribe(repository, shop, "a@b.com", subscribed_price=50.0)

        response = post_webhook("/webhooks/products/update", _product_payload(0, price="40.00"))

        assert response.json()["price_drops"] is None

    def test_dispatch_via_worker_enqueues(
        self,
        post_webhook: Callable,
        test_settings: Settings,
        email_sender: object,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        queued = []
        monkeypatch.setattr(webhooks, "enqueue_dispatch", lambda context: queued.append(context) or "task-1")
        test_settings.dispatch_via_worker = True

        response = post_webhook("/webhooks/products/update", _product_payload(5))

        restock = response.json()["restocks"][0]
        assert restock == {"variant_id": "123", "queued": True, "task_id": "task-1"}
        assert queued[0].product_handle == "linen-shirt"
        assert email_sender.attempts == []

    def test_broker_outage_is_contained(
        self,
        post_webhook: Callable,
        repository: SubscriptionRepository,
        test_settings: Settings,
        email_sender: object,
        monkeypatch: pytest.MonkeyPatch,
        shop: str,
    ) -> None:
        def enqueue(context: object) -> str:
            if context.variant_id == "123":
                raise ConnectionError("broker unreachable")
            return "task-2"

        monkeypatch.setattr(webhooks, "enqueue_dispatch", enqueue)
        test_settings.dispatch_via_worker = True
        _subscribe(repository, shop, "a@b.com", variant_id="456", subscribed_price=50.0)
        payload = _product_payload(5)
        payload["variants"].append(
            {"id": 456, "title": "Small", "inventory_quantity": 3, "price": "40.00"}
        )

        response = post_webhook("/webhooks/products/update", payload)

        assert response.status_code == 200
        data = response.json()
        assert data["restocks"] == [
            {"variant_id": "123", "queued": False, "error": "enqueue_failed"},
            {"variant_id": "456", "queued": True, "task_id": "task-2"},
        ]
        assert data["price_drops"]["alerts_sent"] == 1


class TestOrderCreated:
    def test_order_attributes_purchase(
        self, post_webhook: Callable, repository: SubscriptionRepository, shop: str
    ) -> None:
        subscription_id = _subscribe(repository, shop, "a@b.com")
        asyncio.run(repository.claim_pending(shop, "123"))
        order = {"id": 1001, "email": "A@B.com", "line_items": [{"variant_id": 123}]}

        first = post_webhook("/webhooks/orders/create", order)
        second = post_webhook("/webhooks/orders/create", order)

        assert first.status_code == 200
        assert first.json()["attributed"] == 1
        assert second.status_code == 200
        assert second.json()["attributed"] == 0
        subscription = asyncio.run(repository.get(subscription_id))
        assert subscription.funnel.to_dict() == {
            "notified": True,
            "opened": True,
            "clicked": True,
            "purchased": True,
        }

    def test_order_without_email_is_rejected(self, post_webhook: Callable) -> None:
        response = post_webhook("/webhooks/orders/create", {"id": 1, "line_items": []})
        assert response.status_code == 400


class TestInventoryLevelUpdate:
    def test_resolves_inventory_item_and_dispatches(
        self, post_webhook: Callable, repository: SubscriptionRepository, email_sender: object, shop: str
    ) -> None:
        _subscribe(repository, shop, "a@b.com", inventory_item_id="777", product_handle="linen-shirt")

        response = post_webhook(
            "/webhooks/inventory_levels/update", {"inventory_item_id": 777, "available": 4}
        )

        assert response.status_code == 200
        assert response.json()["restock"]["succeeded"] == 1
        assert email_sender.recipients == ["a@b.com"]

    def test_depletion_is_ignored(
        self, post_webhook: Callable, repository: SubscriptionRepository, email_sender: object, shop: str
    ) -> None:
        _subscribe(repository, shop, "a@b.com", inventory_item_id="777")

        response = post_webhook(
            "/webhooks/inventory_levels/update", {"inventory_item_id": 777, "available": 0}
        )

        assert response.json()["restock"] is None
        assert email_sender.attempts == []

    def test_unknown_inventory_item(self, post_webhook: Callable) -> None:
        response = post_webhook(
            "/webhooks/inventory_levels/update", {"inventory_item_id": 1, "available": 4}
        )

        assert response.status_code == 200
        assert response.json()["restock"] is None
