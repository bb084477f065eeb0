"""
Pydantic Schemas for the Delivery Desk

Domain models shared by the delivery manager, the order stores and the
HTTP API:
- Platforms, fulfillment kinds, menu categories and order statuses
- Menu items, order lines and orders
- Receipt extraction payloads
- Request/response bodies for the API
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List
from enum import Enum
import math
import re


TIME_OF_DAY_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")
AMOUNT_NOISE = re.compile(r"[^\d,.\-]")


# =============================================================================
# ENUMS
# =============================================================================

class Platform(str, Enum):
    JUST_EAT = "just-eat"
    GLOVO = "glovo"
    DELIVEROO = "deliveroo"
    UBER_EATS = "uber-eats"
    PHONE = "phone"
    TAKEAWAY = "takeaway"

    @property
    def label(self) -> str:
        return PLATFORM_STYLES[self]["label"]

    @property
    def tokens(self) -> tuple[str, ...]:
        """Uppercase forms the platform takes inside a display tag."""
        upper = self.value.upper()
        underscored = upper.replace("-", "_")
        if underscored == upper:
            return (upper,)
        return (upper, underscored)


PLATFORM_STYLES: dict[Platform, dict[str, str]] = {
    Platform.JUST_EAT: {"label": "Just Eat", "color": "#ff8000", "icon": "JE"},
    Platform.GLOVO: {"label": "Glovo", "color": "#facd3d", "icon": "GL"},
    Platform.DELIVEROO: {"label": "Deliveroo", "color": "#00ccbc", "icon": "DE"},
    Platform.UBER_EATS: {"label": "Uber Eats", "color": "#06c167", "icon": "UE"},
    Platform.PHONE: {"label": "Phone", "color": "#3b82f6", "icon": "TEL"},
    Platform.TAKEAWAY: {"label": "Takeaway", "color": "#8b5cf6", "icon": "ASP"},
}


class FulfillmentKind(str, Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class OrderStatus(str, Enum):
    """Delivery order lifecycle, in order."""
    PENDING = "pending"
    IN_PREPARATION = "in_preparation"
    READY = "ready"
    DELIVERED = "delivered"


class Category(str, Enum):
    COMBO = "combo"
    STARTERS = "starters"
    SANDWICHES = "sandwiches"
    PIZZAS = "pizzas"
    FIRST_COURSES = "first_courses"
    MAIN_COURSES = "main_courses"
    DESSERTS = "desserts"
    DRINKS = "drinks"


class SortMode(str, Enum):
    URGENCY = "urgency"
    PLATFORM = "platform"


class UrgencyLevel(str, Enum):
    URGENT = "urgent"
    WARNING = "warning"
    NORMAL = "normal"


def validate_time_of_day(v: Optional[str]) -> Optional[str]:
    """Accept ``H:MM``/``HH:MM`` and normalize to ``HH:MM``; blank means ASAP."""
    if v is None or not v.strip():
        return None
    match = TIME_OF_DAY_PATTERN.match(v.strip())
    if not match:
        raise ValueError("Time must be in HH:MM format")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise ValueError("Time must be a valid time of day")
    return f"{hours:02d}:{minutes:02d}"


# Receipt fields come from a vision model: read what we can, drop the rest

def parse_amount(v) -> Optional[float]:
    """
    Read a printed money amount such as ``16``, ``"16.00"``, ``"€16,00"``
    or ``"1.234,50"``. Unreadable or negative amounts become None.
    """
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        amount = float(v)
    else:
        text = AMOUNT_NOISE.sub("", str(v))
        if "," in text and "." in text:
            # The separator that comes last is the decimal one
            if text.rfind(",") > text.rfind("."):
                text = text.replace(".", "").replace(",", ".")
            else:
                text = text.replace(",", "")
        else:
            text = text.replace(",", ".")
        try:
            amount = float(text)
        except ValueError:
            return None
    if not math.isfinite(amount) or amount < 0:
        return None
    return amount


def parse_quantity(v) -> int:
    """Unreadable quantities, and anything below one, count as a single portion."""
    if isinstance(v, bool):
        return 1
    try:
        quantity = int(float(v))
    except (TypeError, ValueError, OverflowError):
        return 1
    return max(quantity, 1)


def optional_text(v) -> Optional[str]:
    if v is None or isinstance(v, (dict, list)):
        return None
    text = str(v).strip()
    return text or None


# =============================================================================
# DOMAIN MODELS
# =============================================================================

class MenuItem(BaseModel):
    """A dish from the menu catalog."""
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=200, examples=["Pizza Margherita"])
    price: float = Field(..., ge=0, examples=[8.0])
    category: Category = Category.FIRST_COURSES
    description: Optional[str] = None


class OrderItem(BaseModel):
    """Single line of an order."""
    menu_item: MenuItem
    quantity: int = Field(..., ge=1, examples=[2])
    notes: str = ""

    @property
    def total_price(self) -> float:
        return round(self.quantity * self.menu_item.price, 2)


class Order(BaseModel):
    """A delivery or takeaway order as held by the order store."""
    id: str
    display_tag: str = Field(..., min_length=1)
    items: List[OrderItem] = Field(default_factory=list)
    status: OrderStatus = OrderStatus.PENDING
    created_at: int = Field(..., description="Creation time, epoch milliseconds")
    updated_at: int = Field(..., description="Last update time, epoch milliseconds")
    platform: Optional[Platform] = None
    label: Optional[str] = None

    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    delivery_time: Optional[str] = None
    delivery_notes: Optional[str] = None
    notes: Optional[str] = None

    @property
    def total(self) -> float:
        return round(sum(item.menu_item.price * item.quantity for item in self.items), 2)

    @property
    def order_number(self) -> str:
        """Short human-facing number, the last segment of the display tag."""
        tail = self.display_tag.split("_")[-1]
        return tail or self.id[-6:]


class ExtractedItem(BaseModel):
    """One line read off a scanned receipt."""
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1)
    price: Optional[float] = Field(default=None, ge=0)

    @field_validator("name", mode="before")
    @classmethod
    def clean_name(cls, v):
        return optional_text(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def lenient_quantity(cls, v):
        return parse_quantity(v)

    @field_validator("price", mode="before")
    @classmethod
    def lenient_price(cls, v):
        return parse_amount(v)


class ExtractedOrder(BaseModel):
    """
    Best-effort structured data read off a scanned receipt.

    Unreadable fields are dropped rather than rejected, so one garbled value
    never costs the rest of the scan. Lines without a dish name are skipped.
    """
    model_config = ConfigDict(populate_by_name=True)

    reference_id: Optional[str] = Field(default=None, alias="orderId")
    items: List[ExtractedItem] = Field(default_factory=list)
    total: Optional[float] = None
    requested_time: Optional[str] = Field(default=None, alias="deliveryTime")
    customer_name: Optional[str] = Field(default=None, alias="customerName")
    customer_address: Optional[str] = Field(default=None, alias="customerAddress")
    notes: Optional[str] = None

    @field_validator("reference_id", "customer_name", "customer_address", "notes", mode="before")
    @classmethod
    def clean_text(cls, v):
        return optional_text(v)

    @field_validator("total", mode="before")
    @classmethod
    def lenient_total(cls, v):
        return parse_amount(v)

    @field_validator("items", mode="before")
    @classmethod
    def keep_named_lines(cls, v):
        if not isinstance(v, list):
            return []
        lines = []
        for line in v:
            if isinstance(line, ExtractedItem):
                lines.append(line)
            elif isinstance(line, str) and line.strip():
                lines.append({"name": line})
            elif isinstance(line, dict) and optional_text(line.get("name")):
                lines.append(line)
        return lines

    @field_validator("requested_time", mode="before")
    @classmethod
    def drop_unreadable_time(cls, v):
        # Receipts print times in all shapes; keep only what we can schedule on
        if v is None:
            return None
        try:
            return validate_time_of_day(str(v))
        except ValueError:
            return None


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class CartLineCreate(BaseModel):
    """A cart line referencing a catalog item by id."""
    menu_item_id: str = Field(..., min_length=1)
    quantity: int = Field(default=1, ge=1, le=99)
    notes: Optional[str] = Field(None, max_length=200)


class DeliveryOrderCreate(BaseModel):
    """Request schema for creating an order from a manually built cart."""
    platform: Platform = Field(default=Platform.JUST_EAT, examples=["just-eat"])
    external_reference: Optional[str] = Field(None, max_length=50, examples=["JE123456"])
    customer_name: Optional[str] = Field(None, max_length=100)
    customer_phone: Optional[str] = Field(None, max_length=30)
    customer_address: Optional[str] = Field(None, max_length=255)
    requested_time: Optional[str] = Field(None, examples=["20:30"])
    notes: Optional[str] = Field(None, max_length=500)
    items: List[CartLineCreate] = Field(default_factory=list)

    @field_validator("requested_time")
    @classmethod
    def validate_requested_time(cls, v: Optional[str]) -> Optional[str]:
        return validate_time_of_day(v)


class ScanOrderCreate(BaseModel):
    """Request schema for creating an order from a receipt extraction."""
    platform: Platform = Platform.JUST_EAT
    extraction: ExtractedOrder


class StatusAdvanceRequest(BaseModel):
    status: OrderStatus


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class UrgencyResponse(BaseModel):
    level: UrgencyLevel
    minutes_until_due: int
    label: str
    due_time: str


class OrderView(BaseModel):
    """An active order as shown on the delivery board."""
    order: Order
    platform: Platform
    fulfillment: FulfillmentKind
    order_number: str
    total: float
    urgency: Optional[UrgencyResponse] = None
    next_status: Optional[OrderStatus] = None
    action_label: Optional[str] = None


class PlatformColumn(BaseModel):
    platform: Platform
    label: str
    color: str
    orders: List[OrderView]


class OrderListResponse(BaseModel):
    total: int
    platform_filter: str
    sort: SortMode
    orders: List[OrderView]


class CommandResponse(BaseModel):
    """Response after a create/advance/delete command."""
    success: bool
    message: str
    order: Optional[Order] = None


class NoticeResponse(BaseModel):
    message: str
    level: str
    created_at: str


class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    order_store: str
    redis: str
    extraction_service: str
    notification_service: str
    timestamp: str
