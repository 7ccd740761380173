"""Email open / click beacons.

Tracking is best-effort. The customer is looking at the pixel or waiting on
the redirect, so neither entry point ever raises: bad ids and storage
failures are logged and dropped.
"""

import structlog

from restock_service.infrastructure.database.repository import SubscriptionRepository

logger = structlog.get_logger()

# 1x1 transparent GIF
TRANSPARENT_PIXEL = (
    b"GIF89a\x01\x00\x01\x00\x80\x00\x00\x00\x00\x00\xff\xff\xff!\xf9\x04\x01"
    b"\x00\x00\x00\x00,\x00\x00\x00\x00\x01\x00\x01\x00\x00\x02\x01D\x00;"
)


def parse_subscription_id(raw: str | int | None) -> int | None:
    """Parse a beacon's id parameter. Returns None for anything unusable."""
    if raw is None:
        return None
    try:
        value = int(str(raw).strip())
    except ValueError:
        return None
    return value if value > 0 else None


class TrackingBeacon:
    """Applies open/click signals as monotonic funnel updates."""

    def __init__(self, repository: SubscriptionRepository):
        self.repository = repository

    async def record_open(self, subscription_id: str | int | None) -> None:
        parsed = parse_subscription_id(subscription_id)
        if parsed is None:
            logger.debug("Ignoring open beacon with invalid id", raw_id=subscription_id)
            return

        try:
            found = await self.repository.mark_opened(parsed)
        except Exception as e:
            logger.warning("Open tracking failed", subscription_id=parsed, error=str(e))
            return

        if found:
            logger.info("Email opened", subscription_id=parsed)
        else:
            logger.debug("Open beacon for unknown subscription", subscription_id=parsed)

    async def record_click(self, subscription_id: str | int | None, target_url: str) -> str:
        """Record a click (which implies an open) and return the redirect target."""
        parsed = parse_subscription_id(subscription_id)
        if parsed is None:
            logger.debug("Ignoring click beacon with invalid id", raw_id=subscription_id)
            return target_url

        try:
            found = await self.repository.mark_clicked(parsed)
        except Exception as e:
            logger.warning("Click tracking failed", subscription_id=parsed, error=str(e))
            return target_url

        if found:
            logger.info("Email link clicked", subscription_id=parsed)
        else:
            logger.debug("Click beacon for unknown subscription", subscription_id=parsed)
        return target_url
