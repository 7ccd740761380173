"""SQLAlchemy models for back-in-stock subscriptions."""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    UniqueConstraint,
    false,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from restock_service.funnel import FunnelState


class Base(DeclarativeBase):
    """Base class for all models."""


# =============================================================================
# Subscriptions
# =============================================================================


class Subscription(Base):
    """A customer's request to be told when a variant is back in stock.

    Funnel flags are only ever written through SubscriptionRepository, which
    applies them as conditional UPDATEs so concurrent writers cannot regress
    a flag that another writer has set.
    """

    __tablename__ = "back_in_stock_subscriptions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Identity
    shop: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    variant_id: Mapped[str] = mapped_column(String(64), nullable=False)

    # Product context captured at subscribe time
    inventory_item_id: Mapped[Optional[str]] = mapped_column(String(64))
    product_id: Mapped[Optional[str]] = mapped_column(String(64))
    product_title: Mapped[Optional[str]] = mapped_column(String(500))
    variant_title: Mapped[Optional[str]] = mapped_column(String(255))
    product_handle: Mapped[Optional[str]] = mapped_column(String(255))
    subscribed_price: Mapped[Optional[float]] = mapped_column(Float)

    # Funnel flags
    notified: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    opened: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    clicked: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    purchased: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("shop", "email", "variant_id", name="uq_subscription_identity"),
        Index("ix_subscriptions_cohort", "shop", "variant_id", "notified"),
        Index("ix_subscriptions_inventory_item", "shop", "inventory_item_id"),
    )

    @property
    def funnel(self) -> FunnelState:
        return FunnelState(
            notified=self.notified,
            opened=self.opened,
            clicked=self.clicked,
            purchased=self.purchased,
        )

    def __repr__(self) -> str:
        return (
            f"<Subscription id={self.id} shop={self.shop} "
            f"variant_id={self.variant_id} stage={self.funnel.stage}>"
        )
