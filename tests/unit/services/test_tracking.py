"""Unit tests for open / click beacons."""

import pytest

from restock_service.infrastructure.database.repository import SubscriptionRepository
from restock_service.services.tracking import (
    TRANSPARENT_PIXEL,
    TrackingBeacon,
    parse_subscription_id,
)


class BrokenRepository:
    """Repository whose writes always fail."""

    async def mark_opened(self, subscription_id: int) -> bool:
        raise RuntimeError("database is down")

    async def mark_clicked(self, subscription_id: int) -> bool:
        raise RuntimeError("database is down")


class TestParseSubscriptionId:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("42", 42), (" 7 ", 7), (13, 13), (None, None), ("", None), ("abc", None), ("-1", None), ("0", None)],
    )
    def test_parse(self, raw: object, expected: int | None) -> None:
        assert parse_subscription_id(raw) == expected


def test_pixel_is_a_gif() -> None:
    assert TRANSPARENT_PIXEL.startswith(b"GIF89a")
    assert len(TRANSPARENT_PIXEL) == 42


class TestRecordOpen:
    @pytest.mark.asyncio
    async def test_sets_opened(self, repository: SubscriptionRepository, shop: str) -> None:
        subscription, _ = await repository.create(shop=shop, email="a@b.com", variant_id="123")
        await repository.claim_pending(shop, "123")

        await TrackingBeacon(repository).record_open(str(subscription.id))

        refreshed = await repository.get(subscription.id)
        assert refreshed.opened is True
        assert refreshed.clicked is False

    @pytest.mark.asyncio
    async def test_unknown_and_invalid_ids_are_ignored(self, repository: SubscriptionRepository) -> None:
        beacon = TrackingBeacon(repository)
        await beacon.record_open("999999")
        await beacon.record_open("not-a-number")
        await beacon.record_open(None)

    @pytest.mark.asyncio
    async def test_storage_failure_is_swallowed(self) -> None:
        await TrackingBeacon(BrokenRepository()).record_open("1")


class TestRecordClick:
    @pytest.mark.asyncio
    async def test_click_on_untouched_row_implies_open(
        self, repository: SubscriptionRepository, shop: str
    ) -> None:
        subscription, _ = await repository.create(shop=shop, email="a@b.com", variant_id="123")

        target = await TrackingBeacon(repository).record_click(
            subscription.id, "https://test-shop.myshopify.com/products/shirt"
        )

        assert target == "https://test-shop.myshopify.com/products/shirt"
        refreshed = await repository.get(subscription.id)
        assert refreshed.opened is True
        assert refreshed.clicked is True
        assert refreshed.funnel.is_consistent

    @pytest.mark.asyncio
    async def test_repeated_clicks_are_idempotent(
        self, repository: SubscriptionRepository, shop: str
    ) -> None:
        subscription, _ = await repository.create(shop=shop, email="a@b.com", variant_id="123")
        beacon = TrackingBeacon(repository)

        await beacon.record_click(subscription.id, "https://example.com")
        await beacon.record_click(subscription.id, "https://example.com")

        assert (await repository.get(subscription.id)).funnel.to_dict() == {
            "notified": True,
            "opened": True,
            "clicked": True,
            "purchased": False,
        }

    @pytest.mark.asyncio
    async def test_redirect_target_survives_storage_failure(self) -> None:
        target = await TrackingBeacon(BrokenRepository()).record_click("1", "https://example.com/p")
        assert target == "https://example.com/p"

    @pytest.mark.asyncio
    async def test_invalid_id_still_returns_target(self, repository: SubscriptionRepository) -> None:
        target = await TrackingBeacon(repository).record_click("oops", "https://example.com/p")
        assert target == "https://example.com/p"
