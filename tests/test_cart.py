import pytest

from delivery_desk.core.exceptions import EmptyCartError
from delivery_desk.delivery.cart import Cart
from delivery_desk.schemas import Platform


def test_add_item_merges_same_dish(menu):
    cart = Cart()
    cart.add_item(menu["pizza_margherita"])
    cart.add_item(menu["pizza_margherita"], 2)
    cart.add_item(menu["coca_cola"])

    assert len(cart.lines) == 2
    assert cart.lines[0].quantity == 3
    assert cart.total == 27.0


def test_update_quantity_removes_line_at_zero(menu):
    cart = Cart()
    cart.add_item(menu["tiramisu"], 2)
    cart.update_quantity(0, -1)
    assert cart.lines[0].quantity == 1

    cart.update_quantity(0, -1)
    assert cart.is_empty


def test_clear_keeps_platform(menu):
    cart = Cart(platform=Platform.GLOVO, customer_name="Marco", requested_time="20:00")
    cart.add_item(menu["lasagna"])

    cart.clear()

    assert cart.is_empty
    assert cart.platform is Platform.GLOVO
    assert cart.customer_name == ""
    assert cart.requested_time == ""


def test_to_order_carries_header_fields(menu, now):
    cart = Cart(
        platform=Platform.GLOVO,
        external_reference="GL777",
        customer_name="Marco Bianchi",
        customer_phone="  ",
        requested_time="20:30",
        notes="Citofono rotto",
    )
    cart.add_item(menu["pizza_diavola"], 2)
    cart.set_note(0, "ben cotta")

    order = cart.to_order(now)

    assert order.id.startswith("delivery_")
    assert order.display_tag == "DEL_GLOVO_GL777"
    assert order.label == "Glovo - Marco Bianchi"
    assert order.customer_phone is None
    assert order.delivery_time == "20:30"
    assert order.delivery_notes == "Citofono rotto"
    assert order.items[0].notes == "ben cotta"
    assert order.total == 19.0
    # Converting does not consume the cart
    assert len(cart.lines) == 1


def test_empty_cart_cannot_become_an_order(now):
    with pytest.raises(EmptyCartError):
        Cart().to_order(now)
