"""
Filtering & Sorting Projections

Two read-only views over the active delivery orders: one column per
platform, and a flat list filtered by platform and sorted by urgency or
platform. Python's sort is stable, so orders that compare equal keep the
store's most-recent-first order.
"""

from datetime import datetime
from typing import Iterable, Optional, Union

from delivery_desk.delivery.classification import is_delivery_order, order_platform
from delivery_desk.delivery.urgency import urgency_sort_key
from delivery_desk.schemas import Order, OrderStatus, Platform, SortMode

ALL_PLATFORMS = "ALL"

PlatformFilter = Union[Platform, str]


def active_delivery_orders(orders: Iterable[Order]) -> list[Order]:
    """Undelivered delivery/takeaway orders, most recent first."""
    active = [
        order for order in orders
        if order.status != OrderStatus.DELIVERED and is_delivery_order(order)
    ]
    active.sort(key=lambda order: order.created_at, reverse=True)
    return active


def list_platform(order: Order) -> Platform:
    """Platform used by the list view; unknown platforms count as phone orders."""
    return order_platform(order) or Platform.PHONE


def platform_columns(orders: Iterable[Order]) -> dict[Platform, list[Order]]:
    """Bucket orders by platform; orders with no recognizable platform are left out."""
    columns: dict[Platform, list[Order]] = {platform: [] for platform in Platform}
    for order in orders:
        platform = order_platform(order)
        if platform is not None:
            columns[platform].append(order)
    return columns


def filter_by_platform(orders: Iterable[Order], platform: Optional[PlatformFilter]) -> list[Order]:
    if platform is None or platform == ALL_PLATFORMS:
        return list(orders)
    wanted = Platform(platform)
    return [order for order in orders if list_platform(order) == wanted]


def sort_orders(orders: Iterable[Order], mode: SortMode, now: datetime) -> list[Order]:
    if mode == SortMode.URGENCY:
        return sorted(orders, key=lambda order: urgency_sort_key(order, now))
    return sorted(orders, key=lambda order: list_platform(order).value)


def project(
    orders: Iterable[Order],
    platform_filter: Optional[PlatformFilter] = ALL_PLATFORMS,
    sort_mode: SortMode = SortMode.URGENCY,
    now: Optional[datetime] = None,
) -> list[Order]:
    """Filter then sort, as the flat list view shows them."""
    now = now or datetime.now()
    return sort_orders(filter_by_platform(orders, platform_filter), SortMode(sort_mode), now)
