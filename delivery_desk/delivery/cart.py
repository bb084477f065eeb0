"""
Staging Cart

The mutable order-in-progress. Lines and header fields can be edited
freely until the cart is turned into a persisted Order, after which the
manager clears it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from delivery_desk.delivery.classification import MANUAL_NAMESPACE, build_order
from delivery_desk.schemas import MenuItem, Order, OrderItem, Platform


@dataclass
class CartLine:
    menu_item: MenuItem
    quantity: int = 1
    notes: str = ""


@dataclass
class Cart:
    """Items and header fields of an order not yet created."""
    platform: Platform = Platform.JUST_EAT
    external_reference: str = ""
    customer_name: str = ""
    customer_phone: str = ""
    customer_address: str = ""
    requested_time: str = ""
    notes: str = ""
    lines: list[CartLine] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def total(self) -> float:
        return round(sum(line.menu_item.price * line.quantity for line in self.lines), 2)

    def add_item(self, menu_item: MenuItem, quantity: int = 1) -> CartLine:
        """Add a dish, bumping the quantity if it is already in the cart."""
        for line in self.lines:
            if line.menu_item.id == menu_item.id:
                line.quantity += quantity
                return line
        line = CartLine(menu_item=menu_item, quantity=quantity)
        self.lines.append(line)
        return line

    def remove_line(self, index: int) -> None:
        del self.lines[index]

    def update_quantity(self, index: int, delta: int) -> None:
        """Change a line's quantity; lines that drop to zero are removed."""
        line = self.lines[index]
        line.quantity += delta
        if line.quantity <= 0:
            self.remove_line(index)

    def set_note(self, index: int, note: str) -> None:
        self.lines[index].notes = note

    def clear(self) -> None:
        """Drop lines and header fields; the selected platform stays."""
        self.lines.clear()
        self.external_reference = ""
        self.customer_name = ""
        self.customer_phone = ""
        self.customer_address = ""
        self.requested_time = ""
        self.notes = ""

    def to_order(self, now: datetime) -> Order:
        """
        Convert the cart into a pending Order without touching the cart.

        Raises:
            EmptyCartError: If the cart has no lines
        """
        items = [
            OrderItem(menu_item=line.menu_item, quantity=line.quantity, notes=line.notes)
            for line in self.lines
        ]
        label = self.platform.label
        if self.customer_name:
            label = f"{label} - {self.customer_name}"

        return build_order(
            namespace=MANUAL_NAMESPACE,
            platform=self.platform,
            items=items,
            now=now,
            reference=self.external_reference,
            label=label,
            customer_name=_blank_to_none(self.customer_name),
            customer_phone=_blank_to_none(self.customer_phone),
            customer_address=_blank_to_none(self.customer_address),
            delivery_time=_blank_to_none(self.requested_time),
            delivery_notes=_blank_to_none(self.notes),
        )


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()
