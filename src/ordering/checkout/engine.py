"""Order Transaction Engine — turns a Cart into a persisted Order.

Checkout runs as an explicit saga rather than one database transaction:

    1. Validate cart, customer, payment method and addresses (no side effects)
    2. Re-check every line against live stock
    3. Reserve each line through the Inventory Ledger
    4. Number and price the order
    5. Persist the Order with all its items in a single repository write
    6. Commit the reservations against the new order

A failure after step 3 releases every reservation taken so far before the
error reaches the caller. Persistence errors surface as PersistenceFailure
with the original exception chained. A release that itself fails is logged
at CRITICAL: stock for that product needs manual reconciliation.

Once the order is persisted the sale stands. Committing a reservation is
bookkeeping on the product; a commit that fails is logged as "Reservation
commit failed" for reconciliation and the order is still returned.

The engine must run outside any unit of work so each ledger write commits
while the product lock is still held.
"""

import re

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart
from ordering.errors import InsufficientStock, PersistenceFailure
from ordering.inventory.ledger import InventoryLedger, ledger
from ordering.order.numbering import generate_order_number
from ordering.order.order import (
    WALK_IN_CUSTOMER,
    Address,
    CustomerDetails,
    Order,
    OrderSource,
    PaymentMethod,
    parse_enum,
)
from ordering.order.pricing import price_order

logger = structlog.get_logger(__name__)

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class OrderTransactionEngine:
    def __init__(self, inventory: InventoryLedger | None = None) -> None:
        self.inventory = inventory or ledger

    # -------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------
    def _customer_details(self, customer, source: OrderSource) -> CustomerDetails:
        if isinstance(customer, CustomerDetails):
            data = customer.to_dict()
        else:
            data = dict(customer or {})

        name = (data.get("name") or "").strip()
        if not name:
            if source != OrderSource.POS:
                raise ValidationError({"customer": ["Customer name is required"]})
            name = WALK_IN_CUSTOMER

        email = (data.get("email") or "").strip() or None
        if email and not _EMAIL_PATTERN.match(email):
            raise ValidationError({"email": ["Invalid email address"]})
        if source == OrderSource.ONLINE and not email and not data.get("phone"):
            raise ValidationError({"customer": ["An email or phone number is required for online orders"]})

        return CustomerDetails(
            name=name,
            email=email,
            phone=(data.get("phone") or "").strip() or None,
            customer_id=data.get("customer_id"),
        )

    def _address(self, address) -> Address | None:
        if address is None or isinstance(address, Address):
            return address
        return Address(**address)

    def _validate(self, cart: Cart, customer, payment_method, source, shipping_address, billing_address):
        if cart is None or cart.is_empty():
            raise ValidationError({"cart": ["Cart is empty"]})

        source = parse_enum(OrderSource, source, "source")
        method = parse_enum(PaymentMethod, payment_method, "payment_method")
        details = self._customer_details(customer, source)

        shipping = self._address(shipping_address)
        billing = self._address(billing_address)
        if source == OrderSource.ONLINE and shipping is None:
            raise ValidationError({"shipping_address": ["Shipping address is required for online orders"]})

        return source, method, details, shipping, billing or shipping

    # -------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------
    def _recheck_stock(self, cart: Cart) -> None:
        for line in cart.lines:
            available = self.inventory.available(line.product_id, variant_id=line.variant_id)
            cart.observe_stock(line.product_id, available, variant_id=line.variant_id)
            if line.quantity > available:
                raise InsufficientStock(line.product_id, line.quantity, available, product_name=line.product_name)

    def _reserve_all(self, cart: Cart) -> list:
        reservations = []
        for line in cart.lines:
            try:
                reservations.append(
                    self.inventory.reserve(line.product_id, line.quantity, variant_id=line.variant_id)
                )
            except Exception:
                logger.warning(
                    "Reservation failed, rolling back checkout",
                    product_id=str(line.product_id),
                    variant_id=line.variant_id,
                    quantity=line.quantity,
                    reserved_lines=len(reservations),
                )
                self._compensate(reservations)
                raise
        return reservations

    def _compensate(self, reservations) -> None:
        for reservation in reversed(reservations):
            try:
                self.inventory.release(reservation, reason="checkout_failed")
            except Exception as exc:
                logger.critical(
                    "Stock compensation failed",
                    product_id=reservation.product_id,
                    variant_id=reservation.variant_id,
                    reservation_id=reservation.reservation_id,
                    quantity=reservation.quantity,
                    error=str(exc),
                )

    def _commit_all(self, reservations, order: Order) -> None:
        for reservation in reservations:
            try:
                self.inventory.commit(reservation, order.id)
            except Exception as exc:
                logger.error(
                    "Reservation commit failed",
                    order_id=str(order.id),
                    order_number=order.order_number,
                    product_id=reservation.product_id,
                    variant_id=reservation.variant_id,
                    reservation_id=reservation.reservation_id,
                    quantity=reservation.quantity,
                    error=str(exc),
                )

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def create_order(
        self,
        cart: Cart,
        customer=None,
        payment_method=PaymentMethod.CASH,
        *,
        source=OrderSource.ONLINE,
        shipping_address=None,
        billing_address=None,
        notes: str | None = None,
    ) -> Order:
        """Check out `cart`, returning the persisted Order.

        Raises ValidationError before touching stock, InsufficientStock when a
        line can no longer be served, and PersistenceFailure when the order
        could not be written. Stock is back where it started in every
        failure case.
        """
        source, method, details, shipping, billing = self._validate(
            cart, customer, payment_method, source, shipping_address, billing_address
        )
        self._recheck_stock(cart)
        reservations = self._reserve_all(cart)

        try:
            order = Order.create(
                order_number=generate_order_number(source),
                source=source,
                customer=details,
                payment_method=method,
                items_data=[
                    {
                        "product_id": line.product_id,
                        "variant_id": line.variant_id,
                        "product_name": line.product_name,
                        "quantity": line.quantity,
                        "unit_price": line.unit_price,
                    }
                    for line in cart.lines
                ],
                pricing=price_order(cart.subtotal(), cart.discount, source),
                shipping_address=shipping,
                billing_address=billing,
                notes=notes,
            )
        except Exception:
            self._compensate(reservations)
            raise

        try:
            current_domain.repository_for(Order).add(order)
        except Exception as exc:
            logger.error(
                "Failed to persist order, releasing reservations",
                order_number=order.order_number,
                error=str(exc),
            )
            self._compensate(reservations)
            raise PersistenceFailure("persist_order", exc) from exc

        self._commit_all(reservations, order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            source=order.source,
            status=order.status,
            payment_status=order.payment_status,
            grand_total=order.pricing.grand_total,
            item_count=len(order.items),
        )
        cart.clear()
        return order


engine = OrderTransactionEngine()


def create_order(cart, customer=None, payment_method=PaymentMethod.CASH, **kwargs) -> Order:
    """Online checkout through the shared engine."""
    kwargs.setdefault("source", OrderSource.ONLINE)
    return engine.create_order(cart, customer, payment_method, **kwargs)


def create_pos_order(cart, customer=None, payment_method=PaymentMethod.CASH, notes=None) -> Order:
    """Counter sale. Defaults to a walk-in customer paying cash."""
    return engine.create_order(cart, customer, payment_method, source=OrderSource.POS, notes=notes)
