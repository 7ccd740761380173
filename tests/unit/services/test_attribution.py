"""Unit tests for purchase attribution."""

import pytest

from restock_service.infrastructure.database.repository import SubscriptionRepository
from restock_service.services.attribution import PurchaseAttributor
from restock_service.services.events import OrderEvent


async def _notified_subscription(
    repository: SubscriptionRepository, shop: str, email: str, variant_id: str = "123"
) -> int:
    subscription, _ = await repository.create(shop=shop, email=email, variant_id=variant_id)
    await repository.claim_pending(shop, variant_id)
    return subscription.id


class TestAttribute:
    @pytest.mark.asyncio
    async def test_order_marks_subscription_purchased_opened_clicked(
        self, repository: SubscriptionRepository, shop: str
    ) -> None:
        subscription_id = await _notified_subscription(repository, shop, "a@b.com")
        order = OrderEvent(shop=shop, order_email="a@b.com", line_items=["123"], order_id="1001")

        report = await PurchaseAttributor(repository).attribute(order)

        assert report.attributed_subscription_ids == [subscription_id]
        subscription = await repository.get(subscription_id)
        assert subscription.purchased is True
        assert subscription.opened is True
        assert subscription.clicked is True

    @pytest.mark.asyncio
    async def test_identical_order_twice_is_a_no_op(
        self, repository: SubscriptionRepository, shop: str
    ) -> None:
        subscription_id = await _notified_subscription(repository, shop, "a@b.com")
        order = OrderEvent(shop=shop, order_email="a@b.com", line_items=["123"])
        attributor = PurchaseAttributor(repository)

        first = await attributor.attribute(order)
        state_after_first = (await repository.get(subscription_id)).funnel
        second = await attributor.attribute(order)

        assert first.attributed == 1
        assert second.attributed == 0
        assert second.errors == 0
        assert (await repository.get(subscription_id)).funnel == state_after_first

    @pytest.mark.asyncio
    async def test_email_matches_case_insensitively(
        self, repository: SubscriptionRepository, shop: str
    ) -> None:
        subscription_id = await _notified_subscription(repository, shop, "a@b.com")
        order = OrderEvent(shop=shop, order_email="A@B.com", line_items=["123"])

        report = await PurchaseAttributor(repository).attribute(order)

        assert report.attributed_subscription_ids == [subscription_id]

    @pytest.mark.asyncio
    async def test_pending_subscription_is_not_attributed(
        self, repository: SubscriptionRepository, shop: str
    ) -> None:
        subscription, _ = await repository.create(shop=shop, email="a@b.com", variant_id="123")
        order = OrderEvent(shop=shop, order_email="a@b.com", line_items=["123"])

        report = await PurchaseAttributor(repository).attribute(order)

        assert report.attributed == 0
        refreshed = await repository.get(subscription.id)
        assert refreshed.funnel.is_pending
        assert not refreshed.funnel.is_engaged

    @pytest.mark.asyncio
    async def test_other_customers_and_variants_are_untouched(
        self, repository: SubscriptionRepository, shop: str
    ) -> None:
        buyer = await _notified_subscription(repository, shop, "a@b.com", "123")
        other_customer = await _notified_subscription(repository, shop, "z@b.com", "123")
        other_variant = await _notified_subscription(repository, shop, "a@b.com", "456")
        order = OrderEvent(shop=shop, order_email="a@b.com", line_items=["123"])

        report = await PurchaseAttributor(repository).attribute(order)

        assert report.attributed_subscription_ids == [buyer]
        assert (await repository.get(other_customer)).purchased is False
        assert (await repository.get(other_variant)).purchased is False

    @pytest.mark.asyncio
    async def test_duplicate_line_items_attribute_once(
        self, repository: SubscriptionRepository, shop: str
    ) -> None:
        first = await _notified_subscription(repository, shop, "a@b.com", "123")
        second = await _notified_subscription(repository, shop, "a@b.com", "456")
        order = OrderEvent(shop=shop, order_email="a@b.com", line_items=["123", "456", "123"])

        report = await PurchaseAttributor(repository).attribute(order)

        assert report.line_items == 3
        assert sorted(report.attributed_subscription_ids) == sorted([first, second])

    @pytest.mark.asyncio
    async def test_lookup_failure_is_contained(self, shop: str) -> None:
        class BrokenRepository:
            async def find_attributable(self, *args: object) -> list:
                raise RuntimeError("connection refused")

        order = OrderEvent(shop=shop, order_email="a@b.com", line_items=["123", "456"])

        report = await PurchaseAttributor(BrokenRepository()).attribute(order)

        assert report.errors == 2
        assert report.attributed == 0
