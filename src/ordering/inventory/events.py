"""Domain events for the Product aggregate.

Every stock movement is recorded as an immutable, versioned fact. Events are
written alongside the aggregate in the same unit of work and are available to
downstream consumers (analytics, low-stock alerts) through the event store.
The stock audit trail in `ordering.inventory.movements` is built from them.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Product")
class ProductRegistered:
    """A product was registered with the ledger along with its opening stock."""

    __version__ = 1

    product_id = Identifier(required=True)
    name = String(required=True)
    sku = String()
    unit_price = Float(required=True)
    initial_stock = Integer(required=True)
    min_stock_level = Integer(required=True)
    registered_at = DateTime(required=True)


@ordering.event(part_of="Product")
class StockReserved:
    """Stock was provisionally decremented for an in-flight checkout."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    reservation_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    reserved_at = DateTime(required=True)


@ordering.event(part_of="Product")
class StockReleased:
    """A reservation was released and its quantity returned to stock."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    reservation_id = Identifier(required=True)
    quantity = Integer(required=True)
    reason = String(required=True)  # checkout_failed, persistence_failed, ...
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    released_at = DateTime(required=True)


@ordering.event(part_of="Product")
class ReservationCommitted:
    """A reservation was settled against a persisted order."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    reservation_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    committed_at = DateTime(required=True)


@ordering.event(part_of="Product")
class StockReceived:
    """Stock was received, increasing the on-hand count."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    reference = String()
    received_at = DateTime(required=True)


@ordering.event(part_of="Product")
class StockAdjusted:
    """Stock was corrected by hand (count, shrinkage, data fix)."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity_change = Integer(required=True)  # Can be negative
    reason = String(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    adjusted_at = DateTime(required=True)


@ordering.event(part_of="Product")
class LowStockDetected:
    """Stock fell to or below the product's minimum stock level."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier()
    name = String(required=True)
    current_stock = Integer(required=True)
    min_stock_level = Integer(required=True)
    detected_at = DateTime(required=True)


@ordering.event(part_of="Product")
class VariantAdded:
    """A sellable variant (size, finish, pack) was added with its own stock."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    name = String(required=True)
    sku = String()
    unit_price = Float(required=True)
    initial_stock = Integer(required=True)
    added_at = DateTime(required=True)
