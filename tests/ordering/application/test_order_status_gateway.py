"""Application tests for status, payment and tracking changes on persisted orders."""

import pytest
from ordering.cart.cart import Cart
from ordering.checkout.engine import create_order
from ordering.errors import IllegalTransition, OrderNotFound
from ordering.inventory.ledger import ledger
from ordering.inventory.product import Product
from ordering.order.order import Order, OrderStatus, PaymentStatus
from ordering.order.transitions import (
    SetTrackingNumber,
    TransitionOrderStatus,
    set_tracking,
    transition_payment,
    transition_status,
    update_order_status,
)
from protean import current_domain


def _place_order(payment_method="cod"):
    product = Product.register(name="Brass Diya", unit_price=300.0, initial_stock=10)
    current_domain.repository_for(Product).add(product)

    cart = Cart.create()
    cart.add_item(ledger.product(product.id), 2)
    order = create_order(
        cart,
        {"name": "Asha Menon", "phone": "9876543210"},
        payment_method,
        shipping_address={"street": "14 MG Road", "city": "Kochi", "postal_code": "682016"},
    )
    return str(order.id)


def _reload(order_id):
    return current_domain.repository_for(Order).get(order_id)


class TestOrderStatus:
    def test_walks_the_lifecycle(self):
        order_id = _place_order()
        for status in ("confirmed", "processing", "shipped", "delivered"):
            transition_status(order_id, status)
            assert _reload(order_id).status == status

        order = _reload(order_id)
        assert order.shipped_at is not None
        assert order.delivered_at is not None

    def test_via_command(self):
        order_id = _place_order()
        result = current_domain.process(
            TransitionOrderStatus(order_id=order_id, status="confirmed"),
            asynchronous=False,
        )
        assert result.status == "confirmed"
        assert _reload(order_id).status == "confirmed"

    def test_accepts_enum(self):
        order_id = _place_order()
        transition_status(order_id, OrderStatus.CANCELLED)
        assert _reload(order_id).status == "cancelled"

    def test_illegal_transition_leaves_order_untouched(self):
        order_id = _place_order()
        before = _reload(order_id)

        with pytest.raises(IllegalTransition):
            transition_status(order_id, "delivered")

        after = _reload(order_id)
        assert after.status == "pending"
        assert after.updated_at == before.updated_at

    def test_terminal_state_is_final(self):
        order_id = _place_order()
        transition_status(order_id, "cancelled")
        with pytest.raises(IllegalTransition):
            transition_status(order_id, "confirmed")

    def test_same_status_is_a_no_op(self):
        order_id = _place_order(payment_method="cash")
        before = _reload(order_id)
        order = transition_status(order_id, "confirmed")
        assert order.status == "confirmed"
        assert _reload(order_id).updated_at == before.updated_at

    def test_cancel_does_not_restock(self):
        order_id = _place_order()
        product_id = _reload(order_id).items[0].product_id
        transition_status(order_id, "cancelled")
        assert ledger.available(product_id) == 8

    def test_unknown_order(self):
        with pytest.raises(OrderNotFound):
            transition_status("missing-order", "confirmed")

    def test_legacy_alias(self):
        order_id = _place_order()
        update_order_status(order_id, "confirmed")
        assert _reload(order_id).status == "confirmed"


class TestPaymentStatus:
    def test_mark_paid_then_refunded(self):
        order_id = _place_order()
        transition_payment(order_id, PaymentStatus.PAID)
        assert _reload(order_id).payment_status == "paid"
        transition_payment(order_id, "refunded")
        assert _reload(order_id).payment_status == "refunded"

    def test_failed_cannot_become_paid(self):
        order_id = _place_order()
        transition_payment(order_id, "failed")
        with pytest.raises(IllegalTransition):
            transition_payment(order_id, "paid")
        assert _reload(order_id).payment_status == "failed"

    def test_payment_independent_of_order_status(self):
        order_id = _place_order()
        transition_payment(order_id, "paid")
        assert _reload(order_id).status == "pending"


class TestTrackingNumber:
    def test_set_and_trim(self):
        order_id = _place_order()
        set_tracking(order_id, "  DTDC-7781 ")
        assert _reload(order_id).tracking_number == "DTDC-7781"

    def test_clear_with_blank(self):
        order_id = _place_order()
        set_tracking(order_id, "DTDC-7781")
        current_domain.process(SetTrackingNumber(order_id=order_id, tracking_number=""), asynchronous=False)
        assert _reload(order_id).tracking_number is None

    def test_allowed_in_any_status(self):
        order_id = _place_order()
        transition_status(order_id, "cancelled")
        set_tracking(order_id, "RET-0001")
        assert _reload(order_id).tracking_number == "RET-0001"

    def test_unknown_order(self):
        with pytest.raises(OrderNotFound):
            set_tracking("missing-order", "DTDC-1")
