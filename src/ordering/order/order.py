"""Order aggregate — the persisted record of a completed checkout.

An Order is created once, together with its items, by the checkout engine.
After that only three things change, and only through the transition
gateway: `status`, `payment_status` and `tracking_number`. Everything else
(items, prices, addresses, customer details) is fixed at creation.

Order Status:
    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED
    CANCELLED / REFUNDED from any non-terminal status
    Terminal: DELIVERED, CANCELLED, REFUNDED

Payment Status:
    PENDING → PAID → REFUNDED
    PENDING → FAILED
    Terminal: FAILED, REFUNDED
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from ordering.domain import ordering
from ordering.errors import IllegalTransition
from ordering.order.events import (
    OrderPlaced,
    OrderStatusChanged,
    PaymentStatusChanged,
    TrackingNumberUpdated,
)

WALK_IN_CUSTOMER = "Walk-in Customer"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(Enum):
    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    COD = "cod"
    RAZORPAY = "razorpay"
    OTHER = "other"


class OrderSource(Enum):
    POS = "pos"
    ONLINE = "online"


# Order lifecycle transition map
_ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

# Payment transition map
_PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.FAILED},
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: set(),  # Terminal
    PaymentStatus.REFUNDED: set(),  # Terminal
}

# Methods settled at the moment of sale (counter payments)
SETTLED_PAYMENT_METHODS = {
    PaymentMethod.CASH,
    PaymentMethod.CARD,
    PaymentMethod.UPI,
    PaymentMethod.OTHER,
}


def parse_enum(enum_cls, value, field):
    """Coerce `value` into `enum_cls`, raising ValidationError for unknown values."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError({field: [f"Unknown {field} '{value}'. Expected one of: {allowed}"]}) from None


def initial_statuses(payment_method):
    """Order and payment status a new order starts in for `payment_method`."""
    method = parse_enum(PaymentMethod, payment_method, "payment_method")
    if method in SETTLED_PAYMENT_METHODS:
        return OrderStatus.CONFIRMED, PaymentStatus.PAID
    return OrderStatus.PENDING, PaymentStatus.PENDING


def is_terminal(status):
    return not _ORDER_TRANSITIONS[parse_enum(OrderStatus, status, "status")]


def allowed_transitions(status):
    """Statuses reachable in one step from `status`."""
    return _ORDER_TRANSITIONS[parse_enum(OrderStatus, status, "status")]


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class CustomerDetails:
    """Who the order was placed for, as captured at checkout."""

    name = String(required=True, max_length=255)
    email = String(max_length=254)
    phone = String(max_length=20)
    customer_id = Identifier()  # Absent for walk-in and guest customers


@ordering.value_object(part_of="Order")
class Address:
    """A delivery or billing address captured at checkout time."""

    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(max_length=100, default="India")


@ordering.value_object(part_of="Order")
class OrderPricing:
    """Amounts locked in at checkout.

    grand_total = subtotal - discount_total + tax_total + shipping_total
    """

    subtotal = Float(default=0.0)
    discount_total = Float(default=0.0)
    tax_total = Float(default=0.0)
    shipping_total = Float(default=0.0)
    grand_total = Float(default=0.0)
    currency = String(max_length=3, default="INR")


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    product_name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)  # Snapshot at order time
    line_total = Float(required=True, min_value=0.0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    source = String(choices=OrderSource, default=OrderSource.ONLINE.value)
    customer = ValueObject(CustomerDetails)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_method = String(required=True, choices=PaymentMethod)
    pricing = ValueObject(OrderPricing)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    tracking_number = String(max_length=255)
    notes = Text()
    created_at = DateTime()
    updated_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_number,
        source,
        customer,
        payment_method,
        items_data,
        pricing,
        shipping_address=None,
        billing_address=None,
        notes=None,
    ):
        """Build a new order with all of its items.

        Args:
            order_number: Unique human-readable number.
            source: `OrderSource` or its value.
            customer: CustomerDetails value object.
            payment_method: `PaymentMethod` or its value.
            items_data: List of dicts with product_id, product_name,
                        quantity, unit_price and optionally variant_id.
            pricing: OrderPricing value object.
            shipping_address / billing_address: Address value objects or None.
        """
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        source = parse_enum(OrderSource, source, "source")
        method = parse_enum(PaymentMethod, payment_method, "payment_method")
        status, payment_status = initial_statuses(method)
        now = datetime.now(UTC)

        order = cls(
            order_number=order_number,
            source=source.value,
            customer=customer,
            status=status.value,
            payment_status=payment_status.value,
            payment_method=method.value,
            pricing=pricing,
            shipping_address=shipping_address,
            billing_address=billing_address,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        for data in items_data:
            order.add_items(
                OrderItem(
                    product_id=str(data["product_id"]),
                    variant_id=data.get("variant_id"),
                    product_name=data.get("product_name"),
                    quantity=data["quantity"],
                    unit_price=data["unit_price"],
                    line_total=round(data["quantity"] * data["unit_price"], 2),
                )
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                source=source.value,
                customer_name=customer.name if customer else None,
                items=json.dumps(
                    [
                        {
                            "product_id": str(item.product_id),
                            "variant_id": item.variant_id,
                            "quantity": item.quantity,
                            "unit_price": item.unit_price,
                        }
                        for item in order.items
                    ]
                ),
                item_count=len(order.items),
                status=status.value,
                payment_status=payment_status.value,
                payment_method=method.value,
                subtotal=pricing.subtotal,
                discount_total=pricing.discount_total,
                tax_total=pricing.tax_total,
                shipping_total=pricing.shipping_total,
                grand_total=pricing.grand_total,
                currency=pricing.currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------
    def transition_status(self, new_status):
        """Move the order to `new_status`.

        Returns False without changing anything when the order is already in
        that status. Raises IllegalTransition for any move the lifecycle does
        not allow.
        """
        target = parse_enum(OrderStatus, new_status, "status")
        current = OrderStatus(self.status)
        if target == current:
            return False
        if target not in _ORDER_TRANSITIONS[current]:
            raise IllegalTransition(current.value, target.value)

        now = datetime.now(UTC)
        self.status = target.value
        if target == OrderStatus.SHIPPED:
            self.shipped_at = now
        elif target == OrderStatus.DELIVERED:
            self.delivered_at = now
        self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=current.value,
                new_status=target.value,
                changed_at=now,
            )
        )
        return True

    def transition_payment(self, new_payment_status):
        """Move the payment to `new_payment_status`. Same contract as transition_status."""
        target = parse_enum(PaymentStatus, new_payment_status, "payment_status")
        current = PaymentStatus(self.payment_status)
        if target == current:
            return False
        if target not in _PAYMENT_TRANSITIONS[current]:
            raise IllegalTransition(current.value, target.value, field="payment_status")

        now = datetime.now(UTC)
        self.payment_status = target.value
        self.updated_at = now

        self.raise_(
            PaymentStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_payment_status=current.value,
                new_payment_status=target.value,
                changed_at=now,
            )
        )
        return True

    def set_tracking(self, tracking_number):
        """Set, replace or clear (None or blank) the tracking number."""
        cleaned = tracking_number.strip() if tracking_number else ""
        cleaned = cleaned or None
        if cleaned == self.tracking_number:
            return False

        now = datetime.now(UTC)
        previous = self.tracking_number
        self.tracking_number = cleaned
        self.updated_at = now

        self.raise_(
            TrackingNumberUpdated(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_tracking_number=previous,
                tracking_number=cleaned,
                updated_at=now,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Read helpers
    # -------------------------------------------------------------------
    @property
    def grand_total(self):
        return self.pricing.grand_total if self.pricing else 0.0

    @property
    def item_count(self):
        return sum(item.quantity for item in self.items)
