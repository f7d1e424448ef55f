"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from ordering.errors import IllegalTransition, InsufficientStock
from ordering.inventory.events import (
    LowStockDetected,
    ReservationCommitted,
    StockReceived,
    StockReleased,
    StockReserved,
)
from ordering.inventory.product import Product
from ordering.order.events import (
    OrderPlaced,
    OrderStatusChanged,
    PaymentStatusChanged,
    TrackingNumberUpdated,
)
from ordering.order.order import Address, CustomerDetails, Order, OrderPricing
from pytest_bdd import given, parsers, then

# Map event name strings to classes for dynamic lookup in Then steps
_EVENT_CLASSES = {
    "StockReserved": StockReserved,
    "StockReleased": StockReleased,
    "ReservationCommitted": ReservationCommitted,
    "StockReceived": StockReceived,
    "LowStockDetected": LowStockDetected,
    "OrderPlaced": OrderPlaced,
    "OrderStatusChanged": OrderStatusChanged,
    "PaymentStatusChanged": PaymentStatusChanged,
    "TrackingNumberUpdated": TrackingNumberUpdated,
}


@pytest.fixture()
def error():
    """Container for the exception a When step captured."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps — Product
# ---------------------------------------------------------------------------
@given(parsers.cfparse("a product with {stock:d} units in stock"), target_fixture="product")
def stocked_product(stock):
    product = Product.register(name="Brass Diya", unit_price=100.0, initial_stock=stock, min_stock_level=5)
    product._events.clear()
    return product


# ---------------------------------------------------------------------------
# Given steps — Order
# ---------------------------------------------------------------------------
@given(parsers.cfparse('an online order paid by "{payment_method}"'), target_fixture="order")
def online_order(payment_method):
    order = Order.create(
        order_number="ORD-1-000001-abcd",
        source="online",
        customer=CustomerDetails(name="Asha Menon", email="asha@example.com"),
        payment_method=payment_method,
        items_data=[{"product_id": "prod-001", "product_name": "Brass Diya", "quantity": 1, "unit_price": 100.0}],
        pricing=OrderPricing(subtotal=100.0, tax_total=18.0, shipping_total=50.0, grand_total=168.0),
        shipping_address=Address(street="14 MG Road", city="Kochi", postal_code="682016"),
    )
    order._events.clear()
    return order


# ---------------------------------------------------------------------------
# Then steps — shared
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the product has {stock:d} units in stock"))
def product_stock_is(product, stock):
    assert product.stock == stock


@then("the operation fails with insufficient stock")
def insufficient_stock_raised(error):
    assert isinstance(error["exc"], InsufficientStock)


@then("the transition is rejected")
def transition_rejected(error):
    assert isinstance(error["exc"], IllegalTransition)


@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order, status):
    assert order.status == status


@then(parsers.cfparse('the payment status is "{payment_status}"'))
def payment_status_is(order, payment_status):
    assert order.payment_status == payment_status


@then(parsers.cfparse("a {event_type} product event is raised"))
def product_event_raised(product, event_type):
    event_cls = _EVENT_CLASSES[event_type]
    assert any(isinstance(e, event_cls) for e in product._events)


@then(parsers.cfparse("no {event_type} product event is raised"))
def product_event_not_raised(product, event_type):
    event_cls = _EVENT_CLASSES[event_type]
    assert not any(isinstance(e, event_cls) for e in product._events)


@then(parsers.cfparse("an {event_type} order event is raised"))
def order_event_raised_an(order, event_type):
    event_cls = _EVENT_CLASSES[event_type]
    assert any(isinstance(e, event_cls) for e in order._events)


@then(parsers.cfparse("a {event_type} order event is raised"))
def order_event_raised(order, event_type):
    event_cls = _EVENT_CLASSES[event_type]
    assert any(isinstance(e, event_cls) for e in order._events)


@then("no order event is raised")
def no_order_event(order):
    assert order._events == []
