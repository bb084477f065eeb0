"""
Urgency Computation

How close an order is to the time the customer asked for it. Pure and
recomputed on every read; nothing here is stored.

Requested time resolution is two-step: the structured ``delivery_time``
field, then the ``Orario: HH:MM`` marker that older orders carry only in
their free-text notes.

The due instant is today's date at the requested time, pushed to tomorrow
by a deliberately rough late-night rollover. The board cards and the list
sort use different rollover windows; both are kept as they are.
"""

import math
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from delivery_desk.schemas import Order, TIME_OF_DAY_PATTERN, UrgencyLevel

# Case-sensitive: only the legacy summary writes it, and "time: 20:00" in a
# customer note must not set urgency
LEGACY_TIME_MARKER = re.compile(r"Orario:\s*(\d{2}:\d{2})")

URGENT_MINUTES = 15
WARNING_MINUTES = 30
OVERDUE_CUTOFF_MINUTES = -60


@dataclass(frozen=True)
class Rollover:
    """After ``late_hour`` o'clock, times before ``early_hour`` mean tomorrow."""
    late_hour: int
    early_hour: int


CARD_ROLLOVER = Rollover(late_hour=22, early_hour=3)
# TODO: confirm with the kitchen whether the list sort should share CARD_ROLLOVER
SORT_ROLLOVER = Rollover(late_hour=20, early_hour=5)


@dataclass(frozen=True)
class Urgency:
    level: UrgencyLevel
    minutes_until_due: int
    label: str
    due_time: str


def parse_time_of_day(value: Optional[str]) -> Optional[tuple[int, int]]:
    if not value:
        return None
    match = TIME_OF_DAY_PATTERN.match(value.strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return hours, minutes


def resolve_requested_time(order: Order) -> Optional[tuple[int, int]]:
    """Structured field first, legacy notes marker second."""
    if order.delivery_time:
        return parse_time_of_day(order.delivery_time)
    if order.notes:
        match = LEGACY_TIME_MARKER.search(order.notes)
        if match:
            return parse_time_of_day(match.group(1))
    return None


def due_instant(hours: int, minutes: int, now: datetime, rollover: Rollover) -> datetime:
    due = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    if now.hour > rollover.late_hour and hours < rollover.early_hour:
        due += timedelta(days=1)
    return due


def minutes_until(due: datetime, now: datetime) -> int:
    return math.ceil((due - now).total_seconds() / 60)


def classify_minutes(minutes: int) -> UrgencyLevel:
    if OVERDUE_CUTOFF_MINUTES < minutes <= URGENT_MINUTES:
        return UrgencyLevel.URGENT
    if minutes <= WARNING_MINUTES:
        return UrgencyLevel.WARNING
    return UrgencyLevel.NORMAL


def _label(level: UrgencyLevel, minutes: int) -> str:
    if level is UrgencyLevel.URGENT:
        return f"URGENT ({minutes}m)"
    if level is UrgencyLevel.WARNING:
        return f"WARNING ({minutes}m)"
    return f"In {minutes}m"


def classify_urgency(order: Order, now: Optional[datetime] = None) -> Optional[Urgency]:
    """
    Classify how urgent an order is at ``now``.

    Returns:
        Urgency, or None when the order has no resolvable requested time
    """
    requested = resolve_requested_time(order)
    if requested is None:
        return None

    now = now or datetime.now()
    hours, minutes = requested
    diff = minutes_until(due_instant(hours, minutes, now, CARD_ROLLOVER), now)
    level = classify_minutes(diff)
    return Urgency(
        level=level,
        minutes_until_due=diff,
        label=_label(level, diff),
        due_time=f"{hours:02d}:{minutes:02d}",
    )


def urgency_sort_key(order: Order, now: datetime) -> float:
    """Milliseconds until due; orders without a time sort last."""
    requested = resolve_requested_time(order)
    if requested is None:
        return math.inf
    hours, minutes = requested
    due = due_instant(hours, minutes, now, SORT_ROLLOVER)
    return (due - now).total_seconds() * 1000
