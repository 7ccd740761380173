"""Subscription persistence.

Every funnel write is a single conditional UPDATE in its own transaction.
Conditions guard the transition itself (``notified = false`` for a claim,
``purchased = false`` for attribution), so two writers racing on the same row
cannot both win and a flag that is already true is never rewritten to false.
"""

from typing import Any, Literal

import structlog
from sqlalchemy import case, func, or_, select, text, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from restock_service.funnel import FunnelStage
from restock_service.infrastructure.database.models import Subscription

logger = structlog.get_logger()

StatusFilter = Literal["all", "pending", "notified", "purchased"]


class SubscriptionRepository:
    """Repository over back-in-stock subscriptions."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def ping(self) -> None:
        """Round-trip the database. Raises if it is unreachable."""
        async with self._session_factory() as session:
            await session.execute(text("SELECT 1"))

    async def get(self, subscription_id: int) -> Subscription | None:
        async with self._session_factory() as session:
            return await session.get(Subscription, subscription_id)

    async def find_by_identity(
        self, shop: str, email: str, variant_id: str
    ) -> Subscription | None:
        query = select(Subscription).where(
            Subscription.shop == shop,
            Subscription.email == email,
            Subscription.variant_id == variant_id,
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def find_attributable(
        self, shop: str, variant_id: str, email: str
    ) -> list[Subscription]:
        """Notified, not-yet-purchased subscriptions for an order line."""
        query = select(Subscription).where(
            Subscription.shop == shop,
            Subscription.variant_id == variant_id,
            Subscription.notified.is_(True),
            Subscription.purchased.is_(False),
            func.lower(Subscription.email) == email.strip().lower(),
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def find_price_watchers(self, shop: str, variant_id: str) -> list[Subscription]:
        """Subscriptions that still care about the price of a variant."""
        query = (
            select(Subscription)
            .where(
                Subscription.shop == shop,
                Subscription.variant_id == variant_id,
                Subscription.purchased.is_(False),
            )
            .order_by(Subscription.id)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def find_by_inventory_item(
        self, shop: str, inventory_item_id: str
    ) -> Subscription | None:
        """Most recent subscription carrying ``inventory_item_id``."""
        query = (
            select(Subscription)
            .where(
                Subscription.shop == shop,
                Subscription.inventory_item_id == inventory_item_id,
            )
            .order_by(Subscription.id.desc())
            .limit(1)
        )
        async with self._session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def list_subscriptions(
        self,
        shop: str,
        status: StatusFilter = "all",
        search: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Subscription]:
        query = select(Subscription).where(Subscription.shop == shop)

        if status == "pending":
            query = query.where(Subscription.notified.is_(False))
        elif status == "notified":
            query = query.where(Subscription.notified.is_(True))
        elif status == "purchased":
            query = query.where(Subscription.purchased.is_(True))

        if search:
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    Subscription.email.ilike(pattern),
                    Subscription.product_title.ilike(pattern),
                    Subscription.variant_title.ilike(pattern),
                )
            )

        query = query.order_by(Subscription.created_at.desc(), Subscription.id.desc())
        query = query.limit(limit).offset(offset)

        async with self._session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def funnel_stats(self, shop: str) -> dict[str, int]:
        """Count subscriptions at each funnel stage for a shop."""

        def count_where(column: Any) -> Any:
            return func.coalesce(func.sum(case((column.is_(True), 1), else_=0)), 0)

        query = select(
            func.count(Subscription.id).label("total"),
            count_where(Subscription.notified).label("notified"),
            count_where(Subscription.opened).label("opened"),
            count_where(Subscription.clicked).label("clicked"),
            count_where(Subscription.purchased).label("purchased"),
        ).where(Subscription.shop == shop)

        async with self._session_factory() as session:
            row = (await session.execute(query)).one()

        total = int(row.total or 0)
        notified = int(row.notified)
        return {
            "total": total,
            "pending": total - notified,
            "notified": notified,
            "opened": int(row.opened),
            "clicked": int(row.clicked),
            "purchased": int(row.purchased),
        }

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create(self, **fields: Any) -> tuple[Subscription, bool]:
        """Insert a subscription, returning ``(subscription, created)``.

        The unique (shop, email, variant_id) constraint decides races: the
        loser of a concurrent insert gets the winner's row back.
        """
        async with self._session_factory() as session:
            subscription = Subscription(**fields)
            session.add(subscription)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                existing = await self.find_by_identity(
                    fields["shop"], fields["email"], fields["variant_id"]
                )
                if existing is None:
                    raise
                return existing, False
            await session.refresh(subscription)
            return subscription, True

    async def claim_pending(self, shop: str, variant_id: str) -> list[Subscription]:
        """Atomically flip every pending subscription of a variant to notified.

        Returns only the rows this call flipped. A row flipped by a
        concurrent claim no longer matches ``notified = false`` and is
        therefore never returned twice.
        """
        statement = (
            update(Subscription)
            .where(
                Subscription.shop == shop,
                Subscription.variant_id == variant_id,
                Subscription.notified.is_(False),
            )
            .values(**FunnelStage.NOTIFIED.implied_flags())
            .returning(Subscription)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(statement)
                claimed = list(result.scalars().all())

        logger.debug(
            "Claimed cohort",
            shop=shop,
            variant_id=variant_id,
            claimed=len(claimed),
        )
        return claimed

    async def release_claim(self, subscription_id: int) -> bool:
        """Return a claimed subscription to the pending pool.

        Only applies while no engagement has been recorded, so a beacon that
        proved delivery keeps the row notified.
        """
        statement = (
            update(Subscription)
            .where(
                Subscription.id == subscription_id,
                Subscription.notified.is_(True),
                Subscription.opened.is_(False),
                Subscription.clicked.is_(False),
                Subscription.purchased.is_(False),
            )
            .values(notified=False)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_write(statement)

    async def advance(self, subscription_id: int, stage: FunnelStage) -> bool:
        """OR the flags implied by ``stage`` into a row.

        Returns False when the row does not exist.
        """
        statement = (
            update(Subscription)
            .where(Subscription.id == subscription_id)
            .values(**stage.implied_flags())
            .execution_options(synchronize_session=False)
        )
        return await self._execute_write(statement)

    async def mark_opened(self, subscription_id: int) -> bool:
        return await self.advance(subscription_id, FunnelStage.OPENED)

    async def mark_clicked(self, subscription_id: int) -> bool:
        return await self.advance(subscription_id, FunnelStage.CLICKED)

    async def mark_purchased(self, subscription_id: int) -> bool:
        """Attribute a purchase. Returns True only for the first attribution."""
        statement = (
            update(Subscription)
            .where(
                Subscription.id == subscription_id,
                Subscription.notified.is_(True),
                Subscription.purchased.is_(False),
            )
            .values(**FunnelStage.PURCHASED.implied_flags())
            .execution_options(synchronize_session=False)
        )
        return await self._execute_write(statement)

    async def compare_and_set_price(
        self, subscription_id: int, expected: float | None, new_price: float
    ) -> bool:
        """Set the reference price only if it still equals ``expected``."""
        if expected is None:
            current = Subscription.subscribed_price.is_(None)
        else:
            current = Subscription.subscribed_price == expected
        statement = (
            update(Subscription)
            .where(Subscription.id == subscription_id, current)
            .values(subscribed_price=new_price)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_write(statement)

    async def _execute_write(self, statement: Any) -> bool:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(statement)
                changed = result.rowcount > 0
        return changed
