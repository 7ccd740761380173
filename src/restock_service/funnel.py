"""Engagement funnel lifecycle.

A subscription moves through notified -> opened -> clicked -> purchased.
Each stage is a monotonic flag: once set it stays set, and reaching a stage
implies every stage before it. The flags are stored as independent boolean
columns so that concurrent writers can OR them in without coordination.
"""

from dataclasses import dataclass, replace
from enum import Enum


class FunnelStage(str, Enum):
    """Stages of the engagement funnel, in order."""

    NOTIFIED = "notified"
    OPENED = "opened"
    CLICKED = "clicked"
    PURCHASED = "purchased"

    @property
    def rank(self) -> int:
        return _STAGE_ORDER.index(self)

    def implied_flags(self) -> dict[str, bool]:
        """Column values to set when this stage is reached.

        Only ever contains True values: transitions never unset a flag.
        """
        return {stage.value: True for stage in _STAGE_ORDER[: self.rank + 1]}


_STAGE_ORDER = (
    FunnelStage.NOTIFIED,
    FunnelStage.OPENED,
    FunnelStage.CLICKED,
    FunnelStage.PURCHASED,
)


@dataclass(frozen=True)
class FunnelState:
    """Immutable snapshot of a subscription's funnel flags."""

    notified: bool = False
    opened: bool = False
    clicked: bool = False
    purchased: bool = False

    def advance(self, stage: FunnelStage) -> "FunnelState":
        """Return a new state with ``stage`` and all earlier stages set."""
        return replace(self, **stage.implied_flags())

    def mark_notified(self) -> "FunnelState":
        return self.advance(FunnelStage.NOTIFIED)

    def mark_opened(self) -> "FunnelState":
        return self.advance(FunnelStage.OPENED)

    def mark_clicked(self) -> "FunnelState":
        return self.advance(FunnelStage.CLICKED)

    def mark_purchased(self) -> "FunnelState":
        return self.advance(FunnelStage.PURCHASED)

    @property
    def is_pending(self) -> bool:
        return not self.notified

    @property
    def is_engaged(self) -> bool:
        """True once any signal beyond the send itself has been recorded."""
        return self.opened or self.clicked or self.purchased

    @property
    def is_consistent(self) -> bool:
        """A pending subscription carries no engagement flags."""
        return self.notified or not self.is_engaged

    @property
    def stage(self) -> FunnelStage | None:
        """Furthest stage reached, or None while pending."""
        reached = [s for s in _STAGE_ORDER if getattr(self, s.value)]
        return reached[-1] if reached else None

    def to_dict(self) -> dict[str, bool]:
        return {
            "notified": self.notified,
            "opened": self.opened,
            "clicked": self.clicked,
            "purchased": self.purchased,
        }
