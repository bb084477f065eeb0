"""
Order Classification & Identifier Synthesis

Turns a fulfillment selection (platform, optional external reference,
customer details, items) into a persistable Order:

    - Fulfillment kind: takeaway and phone orders are collected in person
      (``ASP`` prefix), everything else goes out with a courier (``DEL``).
    - Display tag: ``{prefix}_{PLATFORM}_{reference}``, e.g. ``DEL_JUST-EAT_4821``.
      The reference is the platform's order number, or the current time of
      day as ``HHMM``. Tags are a display aid and may collide.
    - Order id: ``{namespace}_{epochMillis}_{suffix}``, the store's primary key.

The same synthesis serves orders built by hand in a cart and orders read
off a scanned receipt.
"""

import random
import re
import string
from datetime import datetime
from typing import Iterable, Optional

from delivery_desk.core.exceptions import EmptyCartError
from delivery_desk.schemas import (
    Category,
    ExtractedOrder,
    FulfillmentKind,
    MenuItem,
    Order,
    OrderItem,
    OrderStatus,
    Platform,
)

DELIVERY_PREFIX = "DEL"
PICKUP_PREFIX = "ASP"
TAG_PREFIXES = (f"{DELIVERY_PREFIX}_", f"{PICKUP_PREFIX}_")

MANUAL_NAMESPACE = "delivery"
SCAN_NAMESPACE = "scan"

PICKUP_PLATFORMS = frozenset({Platform.TAKEAWAY, Platform.PHONE})
PLACEHOLDER_CATEGORY = Category.FIRST_COURSES

_BASE36 = string.digits + string.ascii_lowercase
# Anything the dine-in till writes as a table number counts as numeric.
# That includes exponents, signed Infinity and 0x/0o/0b literals.
_NUMERIC_TAG = re.compile(
    r"^\s*(?:"
    r"[-+]?(?:(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?|Infinity)"
    r"|0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+"
    r")\s*$"
)


# Longest tokens first so JUST-EAT never loses to a shorter token
_PLATFORM_TOKENS = sorted(
    ((token, platform) for platform in Platform for token in platform.tokens),
    key=lambda pair: len(pair[0]),
    reverse=True,
)


def epoch_millis(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def random_suffix(length: int = 6) -> str:
    """Short base-36 token used to keep ids generated in the same millisecond apart."""
    return "".join(random.choices(_BASE36, k=length))


def fulfillment_kind(platform: Platform) -> FulfillmentKind:
    if platform in PICKUP_PLATFORMS:
        return FulfillmentKind.PICKUP
    return FulfillmentKind.DELIVERY


def tag_prefix(platform: Platform) -> str:
    if fulfillment_kind(platform) is FulfillmentKind.PICKUP:
        return PICKUP_PREFIX
    return DELIVERY_PREFIX


def display_reference(reference: Optional[str], now: datetime) -> str:
    """External order number if given, else the time of day as HHMM."""
    if reference and reference.strip():
        return reference.strip()
    return now.strftime("%H%M")


def build_display_tag(platform: Platform, reference: Optional[str], now: datetime) -> str:
    return f"{tag_prefix(platform)}_{platform.value.upper()}_{display_reference(reference, now)}"


def generate_order_id(namespace: str, now: datetime) -> str:
    return f"{namespace}_{epoch_millis(now)}_{random_suffix()}"


def derive_platform(tag: Optional[str]) -> Optional[Platform]:
    """
    Recover the platform from a display tag by exact token match.

    The fulfillment prefix is stripped first; the platform token must then
    be the whole remainder or be followed by ``_``. Both the hyphenated and
    the underscored spelling are accepted since both exist in stored tags.
    """
    if not tag:
        return None
    remainder = tag.strip().upper()
    for prefix in TAG_PREFIXES:
        if remainder.startswith(prefix):
            remainder = remainder[len(prefix):]
            break
    for token, platform in _PLATFORM_TOKENS:
        if remainder == token or remainder.startswith(f"{token}_"):
            return platform
    return None


def order_platform(order: Order) -> Optional[Platform]:
    """Explicit platform marker first, then whatever the tag says."""
    if order.platform is not None:
        return order.platform
    return derive_platform(order.display_tag)


def _is_numeric_tag(tag: Optional[str]) -> bool:
    # Empty tags count as numeric: they belong to dine-in tables
    if tag is None or not tag.strip():
        return True
    return bool(_NUMERIC_TAG.match(tag))


def is_delivery_order(order: Order) -> bool:
    """
    Tell delivery/takeaway orders apart from dine-in table orders that share
    the same store.
    """
    tag = order.display_tag or ""
    if tag.startswith(TAG_PREFIXES):
        return True
    if order.platform is not None:
        return True
    return not _is_numeric_tag(tag)


# =============================================================================
# CATALOG MATCHING
# =============================================================================

def match_menu_item(name: str, catalog: Iterable[MenuItem]) -> Optional[MenuItem]:
    """First catalog item whose name contains, or is contained in, ``name``."""
    needle = name.lower()
    for item in catalog:
        candidate = item.name.lower()
        if needle in candidate or candidate in needle:
            return item
    return None


def placeholder_menu_item(name: str, price: Optional[float], now: datetime) -> MenuItem:
    """Transient menu item for a scanned line that matches nothing in the catalog."""
    return MenuItem(
        id=f"{SCAN_NAMESPACE}_{epoch_millis(now)}_{random_suffix(9)}",
        name=name,
        price=price or 0.0,
        category=PLACEHOLDER_CATEGORY,
    )


# =============================================================================
# ORDER SYNTHESIS
# =============================================================================

def legacy_notes(
    customer_name: Optional[str],
    customer_phone: Optional[str],
    customer_address: Optional[str],
    notes: Optional[str],
    delivery_time: Optional[str],
) -> str:
    """Free-text summary understood by readers that predate the structured fields."""
    return (
        f"Cliente: {customer_name or 'N/A'}, "
        f"Tel: {customer_phone or 'N/A'}, "
        f"Indirizzo: {customer_address or 'N/A'}, "
        f"Note: {notes or ''}, "
        f"Orario: {delivery_time or 'ASAP'}"
    )


def build_order(
    *,
    namespace: str,
    platform: Platform,
    items: list[OrderItem],
    now: datetime,
    reference: Optional[str] = None,
    label: Optional[str] = None,
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
    customer_address: Optional[str] = None,
    delivery_time: Optional[str] = None,
    delivery_notes: Optional[str] = None,
) -> Order:
    """
    Assemble a pending Order.

    Raises:
        EmptyCartError: If ``items`` is empty
    """
    if not items:
        raise EmptyCartError()

    millis = epoch_millis(now)
    return Order(
        id=generate_order_id(namespace, now),
        display_tag=build_display_tag(platform, reference, now),
        items=items,
        status=OrderStatus.PENDING,
        created_at=millis,
        updated_at=millis,
        platform=platform,
        label=label,
        customer_name=customer_name,
        customer_phone=customer_phone,
        customer_address=customer_address,
        delivery_time=delivery_time,
        delivery_notes=delivery_notes,
        notes=legacy_notes(customer_name, customer_phone, customer_address, delivery_notes, delivery_time),
    )


def order_from_extraction(
    extraction: ExtractedOrder,
    platform: Platform,
    catalog: Iterable[MenuItem],
    now: datetime,
) -> Order:
    """Build an order from receipt lines, matching each against the catalog."""
    catalog = list(catalog)
    items = []
    for line in extraction.items:
        menu_item = match_menu_item(line.name, catalog) or placeholder_menu_item(line.name, line.price, now)
        items.append(OrderItem(menu_item=menu_item, quantity=line.quantity))

    return build_order(
        namespace=SCAN_NAMESPACE,
        platform=platform,
        items=items,
        now=now,
        reference=extraction.reference_id,
        label=f"AI Scan - {platform.label}",
        customer_name=extraction.customer_name,
        customer_address=extraction.customer_address,
        delivery_time=extraction.requested_time,
        delivery_notes=extraction.notes,
    )
