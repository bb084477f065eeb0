"""
Delivery Order Lifecycle Manager

Owns the delivery board: a cached list of active delivery/takeaway orders,
the menu catalog and the staging cart. Every command (create, scan, advance,
remove) returns a CommandResult and reports failures through the
notification sink; nothing raises into the caller.

The cache is updated straight from each command's result, and additionally
refreshed whenever the order store reports a change. A store shared with
other processes watches for their writes once the manager is started.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

from delivery_desk.core.exceptions import (
    ConfirmationRequiredError,
    DeliveryError,
    EmptyCartError,
    ExtractionError,
    OrderNotFoundError,
    PersistenceError,
)
from delivery_desk.delivery.cart import Cart
from delivery_desk.delivery.classification import (
    display_reference,
    fulfillment_kind,
    is_delivery_order,
    order_from_extraction,
)
from delivery_desk.delivery.lifecycle import ACTION_LABELS, ensure_transition, is_terminal, next_status
from delivery_desk.delivery.projection import (
    ALL_PLATFORMS,
    PlatformFilter,
    active_delivery_orders,
    list_platform,
    platform_columns,
    project,
)
from delivery_desk.delivery.urgency import classify_urgency
from delivery_desk.schemas import (
    ExtractedOrder,
    MenuItem,
    Order,
    OrderStatus,
    OrderView,
    Platform,
    SortMode,
    UrgencyResponse,
)
from delivery_desk.services.extraction.base import BaseExtractionService
from delivery_desk.services.notifications.base import BaseNotificationSink
from delivery_desk.services.orders.base import BaseOrderStore, ChangeKind, OrderChange

logger = logging.getLogger(__name__)

Archiver = Callable[[Order], Awaitable[None]]


@dataclass
class CommandResult:
    """
    Outcome of a delivery command.

    Attributes:
        success: Whether the command took effect
        order: The order created or updated, when there is one
        extraction: Data read off a scanned receipt
        error_message: Human-readable failure description
        error_code: Machine-readable failure code
    """
    success: bool
    order: Optional[Order] = None
    extraction: Optional[ExtractedOrder] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def failure(cls, error: DeliveryError) -> "CommandResult":
        return cls(success=False, error_message=error.message, error_code=error.code)


def build_order_view(order: Order, now: datetime) -> OrderView:
    """Attach the derived fields a board card needs."""
    platform = list_platform(order)
    urgency = classify_urgency(order, now)
    return OrderView(
        order=order,
        platform=platform,
        fulfillment=fulfillment_kind(platform),
        order_number=order.order_number,
        total=order.total,
        urgency=UrgencyResponse(
            level=urgency.level,
            minutes_until_due=urgency.minutes_until_due,
            label=urgency.label,
            due_time=urgency.due_time,
        ) if urgency else None,
        next_status=next_status(order.status),
        action_label=ACTION_LABELS.get(order.status),
    )


class DeliveryManager:
    """
    Create, classify, advance and remove delivery orders.

    Example:
        >>> manager = DeliveryManager(store, extraction, notifier)
        >>> await manager.start()
        >>> manager.cart.add_item(menu_item)
        >>> result = await manager.create_order()
        >>> await manager.advance(result.order.id, OrderStatus.IN_PREPARATION)
    """

    def __init__(
        self,
        store: BaseOrderStore,
        extraction_service: BaseExtractionService,
        notifier: BaseNotificationSink,
        archiver: Optional[Archiver] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.extraction_service = extraction_service
        self.notifier = notifier
        self.archiver = archiver
        self.clock = clock

        self.cart = Cart()
        self.is_creating = False
        self.is_scanning = False
        self._orders: list[Order] = []
        self._menu: list[MenuItem] = []
        self._subscribed = False

    # =========================================================================
    # CACHE
    # =========================================================================

    @property
    def orders(self) -> list[Order]:
        """Active delivery orders, most recent first."""
        return list(self._orders)

    @property
    def menu(self) -> list[MenuItem]:
        return list(self._menu)

    def get_order(self, order_id: str) -> Optional[Order]:
        for order in self._orders:
            if order.id == order_id:
                return order
        return None

    async def start(self) -> None:
        """Load orders and menu, then follow store changes."""
        if not self._subscribed:
            self.store.subscribe(self._on_change)
            self._subscribed = True
        await self.refresh_menu()
        await self.refresh()
        await self.store.start_watching()

    async def stop(self) -> None:
        await self.store.stop_watching()
        if self._subscribed:
            self.store.unsubscribe(self._on_change)
            self._subscribed = False

    async def _on_change(self, change: OrderChange) -> None:
        logger.debug(f"Store change: {change.kind.value} {change.order_id or ''}")
        if change.kind == ChangeKind.MENU_UPDATED:
            await self.refresh_menu()
        else:
            await self.refresh()

    async def refresh(self) -> list[Order]:
        """Re-fetch every order; the previous cache survives a failed fetch."""
        try:
            orders = await self.store.get_orders()
        except Exception as e:
            error = _as_delivery_error(e)
            logger.error(f"Failed to refresh orders: {error.message}")
            await self.notifier.error(f"Error: {error.message}")
            return self.orders

        self._orders = active_delivery_orders(orders)
        return self.orders

    async def refresh_menu(self) -> list[MenuItem]:
        try:
            self._menu = await self.store.get_menu_items()
        except Exception as e:
            error = _as_delivery_error(e)
            logger.error(f"Failed to refresh menu: {error.message}")
            await self.notifier.error(f"Error: {error.message}")
        return self.menu

    def _apply(self, order: Order) -> None:
        """Upsert an order into the cache, dropping it if it left the board."""
        self._discard(order.id)
        if not is_terminal(order.status) and is_delivery_order(order):
            self._orders.append(order)
            self._orders.sort(key=lambda o: o.created_at, reverse=True)

    def _discard(self, order_id: str) -> None:
        self._orders = [o for o in self._orders if o.id != order_id]

    # =========================================================================
    # CREATE
    # =========================================================================

    async def create_order(self, cart: Optional[Cart] = None) -> CommandResult:
        """
        Persist the staging cart as a new order.

        On success the cart is cleared; on any failure it is left untouched
        so the order can be retried.
        """
        cart = cart if cart is not None else self.cart

        if self.is_creating:
            return CommandResult.failure(DeliveryError("An order is already being created", code="busy"))

        now = self.clock()
        try:
            order = cart.to_order(now)
        except EmptyCartError as e:
            await self.notifier.error(e.message)
            return CommandResult.failure(e)

        self.is_creating = True
        try:
            stored = await self.store.add_order(order)
        except Exception as e:
            error = _as_delivery_error(e)
            logger.error(f"Order creation failed: {error.message}")
            await self.notifier.error(f"Error: {error.message}")
            return CommandResult.failure(error)
        finally:
            self.is_creating = False

        reference = display_reference(cart.external_reference, now)
        cart.clear()
        self._apply(stored)
        await self.notifier.success(f"Order {cart.platform.label} #{reference} created")
        return CommandResult(success=True, order=stored)

    async def scan_receipt(self, image: bytes, mime_type: str = "image/jpeg") -> CommandResult:
        """Read a receipt photo; nothing is persisted until create_order_from_scan."""
        if self.is_scanning:
            return CommandResult.failure(DeliveryError("A receipt is already being scanned", code="busy"))

        self.is_scanning = True
        await self.notifier.info("Scanning receipt...")
        try:
            extraction = await self.extraction_service.extract(image, mime_type)
        except Exception as e:
            error = e if isinstance(e, ExtractionError) else ExtractionError(f"Scan failed: {e}")
            logger.error(f"Receipt scan failed: {error.message}")
            await self.notifier.error(error.message)
            return CommandResult.failure(error)
        finally:
            self.is_scanning = False

        await self.notifier.success(f"Found {len(extraction.items)} item(s)")
        return CommandResult(success=True, extraction=extraction)

    async def create_order_from_scan(self, extraction: ExtractedOrder, platform: Platform) -> CommandResult:
        """Persist a scanned receipt as a new order, matching lines against the menu."""
        now = self.clock()
        try:
            order = order_from_extraction(extraction, platform, self._menu, now)
        except EmptyCartError as e:
            await self.notifier.error(e.message)
            return CommandResult.failure(e)

        try:
            stored = await self.store.add_order(order)
        except Exception as e:
            error = _as_delivery_error(e)
            logger.error(f"Scanned order creation failed: {error.message}")
            await self.notifier.error(f"Error: {error.message}")
            return CommandResult.failure(error)

        self._apply(stored)
        await self.notifier.success(f"Order {platform.label} #{stored.order_number} created from receipt scan")
        return CommandResult(success=True, order=stored, extraction=extraction)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def advance(self, order_id: str, status: OrderStatus) -> CommandResult:
        """
        Move an order to the next status in its lifecycle.

        The requested status must be the immediate successor of the current
        one. Delivered orders leave the board and are handed to the archiver.
        """
        order = self.get_order(order_id)
        if order is None:
            await self.refresh()
            order = self.get_order(order_id)
        if order is None:
            error = OrderNotFoundError(order_id)
            await self.notifier.error(error.message)
            return CommandResult.failure(error)

        try:
            ensure_transition(order.status, status)
        except DeliveryError as e:
            await self.notifier.error(e.message)
            return CommandResult.failure(e)

        try:
            updated = await self.store.update_order_status(order_id, status)
        except Exception as e:
            error = _as_delivery_error(e)
            logger.error(f"Status update failed for {order_id}: {error.message}")
            await self.notifier.error(f"Error: {error.message}")
            return CommandResult.failure(error)

        self._apply(updated)
        if updated.status == OrderStatus.DELIVERED:
            await self._archive(updated)
        return CommandResult(success=True, order=updated)

    async def _archive(self, order: Order) -> None:
        if self.archiver is None:
            return
        try:
            await self.archiver(order)
        except Exception as e:
            # The order is already delivered in the store; the archive can be rebuilt
            logger.exception(f"Failed to archive order {order.id}: {e}")

    async def remove(self, order_id: str, confirmed: bool = False) -> CommandResult:
        """Delete an order for good. Nothing happens unless ``confirmed``."""
        if not confirmed:
            error = ConfirmationRequiredError(order_id)
            await self.notifier.error(error.message)
            return CommandResult.failure(error)

        try:
            await self.store.delete_order(order_id)
        except Exception as e:
            error = _as_delivery_error(e)
            logger.error(f"Delete failed for {order_id}: {error.message}")
            await self.notifier.error(f"Error: {error.message}")
            return CommandResult.failure(error)

        self._discard(order_id)
        return CommandResult(success=True)

    # =========================================================================
    # PROJECTIONS
    # =========================================================================

    def columns(self, now: Optional[datetime] = None) -> dict[Platform, list[OrderView]]:
        now = now or self.clock()
        return {
            platform: [build_order_view(order, now) for order in orders]
            for platform, orders in platform_columns(self._orders).items()
        }

    def list_view(
        self,
        platform_filter: Optional[PlatformFilter] = ALL_PLATFORMS,
        sort_mode: SortMode = SortMode.URGENCY,
        now: Optional[datetime] = None,
    ) -> list[OrderView]:
        now = now or self.clock()
        return [build_order_view(order, now) for order in project(self._orders, platform_filter, sort_mode, now)]


def _as_delivery_error(error: Exception) -> DeliveryError:
    if isinstance(error, DeliveryError):
        return error
    logger.exception(f"Unexpected store error: {error}")
    return PersistenceError(str(error) or error.__class__.__name__)
