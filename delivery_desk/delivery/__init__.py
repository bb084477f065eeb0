"""
Delivery order lifecycle: classification, status flow, urgency and the
board projections, tied together by DeliveryManager.
"""

from delivery_desk.delivery.cart import Cart, CartLine
from delivery_desk.delivery.manager import CommandResult, DeliveryManager, build_order_view

__all__ = ["Cart", "CartLine", "CommandResult", "DeliveryManager", "build_order_view"]
