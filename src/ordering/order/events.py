"""Domain events for the Order aggregate.

Events are versioned, immutable facts written in the same unit of work as the
Order change they describe, and are available to downstream consumers
(fulfilment, notifications, reporting) through the event store.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """An order was created at the POS counter or through online checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    source = String(required=True)
    customer_name = String()
    items = Text(required=True)  # JSON: list of item dicts
    item_count = Integer(required=True)
    status = String(required=True)
    payment_status = String(required=True)
    payment_method = String(required=True)
    subtotal = Float(required=True)
    discount_total = Float()
    tax_total = Float()
    shipping_total = Float()
    grand_total = Float(required=True)
    currency = String(default="INR")
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """The order moved one step through its lifecycle."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentStatusChanged:
    """The order's payment was settled, failed or refunded."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_payment_status = String(required=True)
    new_payment_status = String(required=True)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class TrackingNumberUpdated:
    """A shipment tracking number was set, replaced or cleared."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_tracking_number = String()
    tracking_number = String()  # None when cleared
    updated_at = DateTime(required=True)
