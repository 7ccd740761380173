"""Email open / click beacon endpoints.

Unauthenticated by nature: they are hit from mail clients. A bad or unknown
subscription id still gets the pixel or the redirect.
"""

from typing import Annotated
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse, Response

from restock_service.api.deps import get_beacon
from restock_service.exceptions import ValidationError
from restock_service.services import TrackingBeacon
from restock_service.services.tracking import TRANSPARENT_PIXEL

router = APIRouter()

BeaconDep = Annotated[TrackingBeacon, Depends(get_beacon)]

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _require_redirect_target(url: str | None) -> str:
    """Only absolute http(s) targets are redirected to."""
    if not url:
        raise ValidationError("Missing url parameter")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("Invalid redirect url", url=url)
    return url


@router.get("/open")
async def track_open(
    beacon: BeaconDep,
    subscription_id: Annotated[str | None, Query(alias="id")] = None,
) -> Response:
    """Record an email open and serve a 1x1 transparent GIF."""
    await beacon.record_open(subscription_id)
    return Response(
        content=TRANSPARENT_PIXEL,
        media_type="image/gif",
        headers=NO_CACHE_HEADERS,
    )


@router.get("/click")
async def track_click(
    beacon: BeaconDep,
    subscription_id: Annotated[str | None, Query(alias="id")] = None,
    url: str | None = None,
) -> RedirectResponse:
    """Record a link click and redirect to the product page."""
    target = _require_redirect_target(url)
    target = await beacon.record_click(subscription_id, target)
    return RedirectResponse(url=target, status_code=302)
