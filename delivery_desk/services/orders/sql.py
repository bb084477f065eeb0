"""
SQL Order Store

Production order store on PostgreSQL through the SQLAlchemy async engine.
Used when ENV_MODE=production or ENV_MODE=staging.

Every SQLAlchemy failure is wrapped in PersistenceError so the delivery
manager only ever deals with its own error taxonomy.

The orders table is shared with other writers such as dine-in clients and
second API workers. While watching, the store polls a cheap snapshot of
(id, status, updated_at) and tells its subscribers when someone else
changed it.
"""

import asyncio
import time
import logging
from contextlib import suppress
from typing import Optional

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from delivery_desk.core.exceptions import OrderNotFoundError, PersistenceError
from delivery_desk.models import MenuItemRecord, OrderRecord
from delivery_desk.schemas import MenuItem, Order, OrderItem, OrderStatus, Platform
from delivery_desk.services.orders.base import BaseOrderStore, ChangeKind, OrderChange

logger = logging.getLogger(__name__)


def order_to_record(order: Order) -> OrderRecord:
    return OrderRecord(
        id=order.id,
        table_tag=order.display_tag,
        source=order.platform.value if order.platform else None,
        label=order.label,
        items=[item.model_dump(mode="json") for item in order.items],
        status=order.status,
        customer_name=order.customer_name,
        customer_phone=order.customer_phone,
        customer_address=order.customer_address,
        delivery_time=order.delivery_time,
        delivery_notes=order.delivery_notes,
        notes=order.notes,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


def record_to_order(record: OrderRecord) -> Order:
    return Order(
        id=record.id,
        display_tag=record.table_tag,
        items=[OrderItem.model_validate(item) for item in (record.items or [])],
        status=record.status,
        created_at=record.created_at,
        updated_at=record.updated_at,
        platform=_parse_platform(record.source),
        label=record.label,
        customer_name=record.customer_name,
        customer_phone=record.customer_phone,
        customer_address=record.customer_address,
        delivery_time=record.delivery_time,
        delivery_notes=record.delivery_notes,
        notes=record.notes,
    )


def _parse_platform(source: Optional[str]) -> Optional[Platform]:
    # Dine-in orders carry sources such as "table" that are not delivery platforms
    if not source:
        return None
    try:
        return Platform(source)
    except ValueError:
        return None


class SqlOrderStore(BaseOrderStore):
    """
    Order store backed by the ``orders`` and ``menu_items`` tables.

    Example:
        >>> store = SqlOrderStore(get_session_maker())
        >>> orders = await store.get_orders()
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        poll_interval: Optional[float] = None,
    ):
        super().__init__()
        self._session_maker = session_maker
        self._poll_interval = poll_interval
        self._snapshot: Optional[frozenset] = None
        self._watch_task: Optional[asyncio.Task] = None
        logger.info("SqlOrderStore initialized")

    @property
    def provider_name(self) -> str:
        return "sql"

    # =========================================================================
    # EXTERNAL CHANGES
    # =========================================================================

    async def _order_snapshot(self) -> frozenset:
        async with self._session_maker() as session:
            result = await session.execute(
                select(OrderRecord.id, OrderRecord.status, OrderRecord.updated_at)
            )
            return frozenset(tuple(row) for row in result.all())

    async def poll_changes(self) -> bool:
        """
        Compare the orders table with the last snapshot.

        Subscribers get an ORDERS_CHANGED event when it differs. The first
        poll only records the baseline.

        Returns:
            bool: True if a change was reported
        """
        try:
            snapshot = await self._order_snapshot()
        except SQLAlchemyError as e:
            logger.warning(f"Order change poll failed: {e}")
            return False

        previous, self._snapshot = self._snapshot, snapshot
        if previous is None or previous == snapshot:
            return False

        logger.info("Orders table changed, notifying subscribers")
        await self._emit(OrderChange(ChangeKind.ORDERS_CHANGED))
        return True

    async def start_watching(self) -> None:
        await self.poll_changes()
        if self._poll_interval and self._watch_task is None:
            self._watch_task = asyncio.create_task(self._watch())
            logger.info(f"Watching orders table every {self._poll_interval}s")

    async def stop_watching(self) -> None:
        if self._watch_task is None:
            return
        self._watch_task.cancel()
        with suppress(asyncio.CancelledError):
            await self._watch_task
        self._watch_task = None

    async def _watch(self) -> None:
        while True:
            await asyncio.sleep(self._poll_interval)
            try:
                await self.poll_changes()
            except Exception as e:
                logger.exception(f"Order change poll crashed: {e}")

    async def get_orders(self) -> list[Order]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(OrderRecord).order_by(OrderRecord.created_at.desc())
                )
                return [record_to_order(record) for record in result.scalars().all()]
        except SQLAlchemyError as e:
            logger.error(f"Failed to load orders: {e}")
            raise PersistenceError(f"Failed to load orders: {e}") from e

    async def add_order(self, order: Order) -> Order:
        try:
            async with self._session_maker() as session:
                session.add(order_to_record(order))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to store order {order.id}: {e}")
            raise PersistenceError(f"Failed to store order {order.id}: {e}") from e

        logger.info(f"Order {order.id} stored ({order.display_tag})")
        await self._emit(OrderChange(ChangeKind.ORDER_ADDED, order.id))
        return order

    async def update_order_status(self, order_id: str, status: OrderStatus) -> Order:
        try:
            async with self._session_maker() as session:
                record = await session.get(OrderRecord, order_id)
                if record is None:
                    raise OrderNotFoundError(order_id)
                previous = record.status
                record.status = status
                record.updated_at = int(time.time() * 1000)
                updated = record_to_order(record)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to update order {order_id}: {e}")
            raise PersistenceError(f"Failed to update order {order_id}: {e}") from e

        logger.info(f"Order {order_id}: {previous.value} -> {status.value}")
        await self._emit(OrderChange(ChangeKind.ORDER_UPDATED, order_id))
        return updated

    async def delete_order(self, order_id: str) -> None:
        try:
            async with self._session_maker() as session:
                record = await session.get(OrderRecord, order_id)
                if record is None:
                    raise OrderNotFoundError(order_id)
                await session.delete(record)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete order {order_id}: {e}")
            raise PersistenceError(f"Failed to delete order {order_id}: {e}") from e

        logger.info(f"Order {order_id} deleted")
        await self._emit(OrderChange(ChangeKind.ORDER_DELETED, order_id))

    async def get_menu_items(self) -> list[MenuItem]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(select(MenuItemRecord).order_by(MenuItemRecord.name))
                return [
                    MenuItem(
                        id=record.id,
                        name=record.name,
                        price=record.price,
                        category=record.category,
                        description=record.description,
                    )
                    for record in result.scalars().all()
                ]
        except SQLAlchemyError as e:
            logger.error(f"Failed to load menu: {e}")
            raise PersistenceError(f"Failed to load menu: {e}") from e

    async def add_menu_item(self, item: MenuItem) -> MenuItem:
        try:
            async with self._session_maker() as session:
                await session.merge(MenuItemRecord(**item.model_dump()))
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to store menu item {item.id}: {e}") from e

        await self._emit(OrderChange(ChangeKind.MENU_UPDATED))
        return item

    async def health_check(self) -> bool:
        try:
            async with self._session_maker() as session:
                await session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Order store health check failed: {e}")
            return False
