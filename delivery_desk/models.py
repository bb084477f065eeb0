"""
SQLAlchemy Database Models

Tables backing the SQL order store:
- orders: delivery, takeaway and dine-in orders sharing one table
- menu_items: the menu catalog
"""

from sqlalchemy import Column, BigInteger, String, Float, Text, Enum, JSON

from delivery_desk.database import Base
from delivery_desk.schemas import Category, OrderStatus


class OrderRecord(Base):
    """
    Main Order table.

    Dine-in orders live in the same table; delivery orders are told apart by
    their display tag (``DEL_``/``ASP_`` prefix) or their ``source`` marker.
    """
    __tablename__ = "orders"

    id = Column(String(64), primary_key=True)

    # =========================================================================
    # CLASSIFICATION
    # =========================================================================
    table_tag = Column(String(100), nullable=False, index=True)
    source = Column(String(20), nullable=True, index=True)
    label = Column(String(200), nullable=True)

    # =========================================================================
    # ORDER DETAILS
    # =========================================================================
    items = Column(JSON, nullable=False)  # [{"menu_item": {...}, "quantity": 2, "notes": ""}]
    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True
    )

    # =========================================================================
    # CUSTOMER INFORMATION
    # =========================================================================
    customer_name = Column(String(100), nullable=True)
    customer_phone = Column(String(30), nullable=True)
    customer_address = Column(String(255), nullable=True)
    delivery_time = Column(String(5), nullable=True)
    delivery_notes = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    # =========================================================================
    # TIMESTAMPS (epoch milliseconds)
    # =========================================================================
    created_at = Column(BigInteger, nullable=False, index=True)
    updated_at = Column(BigInteger, nullable=False)

    def __repr__(self):
        return f"<OrderRecord {self.id} - {self.table_tag} - {self.status.value}>"


class MenuItemRecord(Base):
    """Menu catalog table."""
    __tablename__ = "menu_items"

    id = Column(String(64), primary_key=True)
    name = Column(String(200), nullable=False)
    price = Column(Float, nullable=False)
    category = Column(Enum(Category), nullable=False)
    description = Column(Text, nullable=True)

    def __repr__(self):
        return f"<MenuItemRecord {self.id} - {self.name}>"
