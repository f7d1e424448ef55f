"""Product aggregate — the stock record owned by the Inventory Ledger.

The catalogue owns names, descriptions and images. This aggregate keeps only
what the order core needs: the sellable unit price, the on-hand `stock`
count and the low-stock threshold. A product may also carry variants (size,
finish, pack) that are sold with their own price and their own stock count;
`stock` on the product itself is what is sold when no variant is named.

Reservation Lifecycle:
    ACTIVE → (removed)   committed against a persisted order
    ACTIVE → RELEASED    checkout failed, compensating release

Stock is decremented when a reservation is taken, not when it is committed,
so `stock` is always the quantity still available to sell. Committed
reservations are dropped from the aggregate at once; only the most recent
released ones are kept. The audit trail of stock changes lives in the
StockMovement projection, fed by the events raised here.
"""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from ordering.domain import ordering
from ordering.errors import InsufficientStock, VariantNotFound
from ordering.inventory.events import (
    LowStockDetected,
    ProductRegistered,
    ReservationCommitted,
    StockAdjusted,
    StockReceived,
    StockReleased,
    StockReserved,
    VariantAdded,
)

DEFAULT_MIN_STOCK_LEVEL = 5

# Released reservations kept for conflict checks on late commits
RELEASED_HISTORY = 20


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ReservationStatus(Enum):
    ACTIVE = "active"
    RELEASED = "released"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Product")
class ProductVariant:
    """A sellable variation of the product with its own stock count."""

    name = String(required=True, max_length=255)
    sku = String(max_length=50)
    unit_price = Float(min_value=0.0)  # Falls back to the product's price
    stock = Integer(default=0, min_value=0)


@ordering.entity(part_of="Product")
class StockReservation:
    """A provisional hold on stock tied to one in-flight checkout."""

    quantity = Integer(required=True, min_value=1)
    variant_id = Identifier()
    status = String(
        choices=ReservationStatus,
        default=ReservationStatus.ACTIVE.value,
    )
    reserved_at = DateTime(required=True)
    settled_at = DateTime()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Product:
    name = String(required=True, max_length=255)
    sku = String(max_length=50)
    unit_price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)
    min_stock_level = Integer(default=DEFAULT_MIN_STOCK_LEVEL, min_value=0)
    variants = HasMany(ProductVariant)
    reservations = HasMany(StockReservation)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def stock_must_not_be_negative(self):
        if self.stock is not None and self.stock < 0:
            raise ValidationError({"stock": ["Stock cannot be negative"]})
        for variant in self.variants or []:
            if variant.stock is not None and variant.stock < 0:
                raise ValidationError({"stock": [f"Stock of variant {variant.name} cannot be negative"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def register(
        cls,
        name,
        unit_price,
        initial_stock=0,
        min_stock_level=DEFAULT_MIN_STOCK_LEVEL,
        sku=None,
        product_id=None,
    ):
        """Register a product with its opening stock.

        `product_id` lets the catalogue keep its own identifiers; when omitted
        an identity is generated.
        """
        if initial_stock is None or initial_stock < 0:
            raise ValidationError({"initial_stock": ["Initial stock cannot be negative"]})

        now = datetime.now(UTC)
        attrs = {
            "name": name,
            "sku": sku,
            "unit_price": unit_price,
            "stock": initial_stock,
            "min_stock_level": min_stock_level,
            "created_at": now,
            "updated_at": now,
        }
        if product_id is not None:
            attrs["id"] = product_id

        product = cls(**attrs)
        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                name=name,
                sku=sku,
                unit_price=unit_price,
                initial_stock=initial_stock,
                min_stock_level=min_stock_level,
                registered_at=now,
            )
        )
        return product

    def add_variant(self, name, unit_price=None, initial_stock=0, sku=None, variant_id=None):
        """Add a variant with its own opening stock. Returns the new variant."""
        if initial_stock is None or initial_stock < 0:
            raise ValidationError({"initial_stock": ["Initial stock cannot be negative"]})
        if any(v.name == name for v in self.variants or []):
            raise ValidationError({"name": [f"Variant {name} already exists"]})

        attrs = {"name": name, "sku": sku, "unit_price": unit_price, "stock": initial_stock}
        if variant_id is not None:
            attrs["id"] = variant_id
        variant = ProductVariant(**attrs)

        now = datetime.now(UTC)
        self.add_variants(variant)
        self.updated_at = now

        self.raise_(
            VariantAdded(
                product_id=str(self.id),
                variant_id=str(variant.id),
                name=name,
                sku=sku,
                unit_price=self.price_for(variant.id),
                initial_stock=initial_stock,
                added_at=now,
            )
        )
        return variant

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def variant(self, variant_id):
        found = next((v for v in self.variants or [] if str(v.id) == str(variant_id)), None)
        if found is None:
            raise VariantNotFound(self.id, variant_id)
        return found

    def stock_for(self, variant_id=None):
        """Stock still available to sell, for the product or one of its variants."""
        if variant_id is None:
            return self.stock or 0
        return self.variant(variant_id).stock or 0

    def price_for(self, variant_id=None):
        if variant_id is None:
            return self.unit_price
        variant = self.variant(variant_id)
        return variant.unit_price if variant.unit_price is not None else self.unit_price

    def label_for(self, variant_id=None):
        """Display name, e.g. "Brass Diya (Large)" for a variant."""
        if variant_id is None:
            return self.name
        return f"{self.name} ({self.variant(variant_id).name})"

    def _set_stock(self, variant_id, value):
        if variant_id is None:
            self.stock = value
        else:
            self.variant(variant_id).stock = value

    def is_low_stock(self, variant_id=None):
        return self.stock_for(variant_id) <= (self.min_stock_level or 0)

    def find_reservation(self, reservation_id):
        return next(
            (r for r in (self.reservations or []) if str(r.id) == str(reservation_id)),
            None,
        )

    def _check_low_stock(self, previous_stock, variant_id=None):
        """Raise LowStockDetected when stock crosses the threshold downwards."""
        threshold = self.min_stock_level or 0
        current = self.stock_for(variant_id)
        if previous_stock > threshold >= current:
            self.raise_(
                LowStockDetected(
                    product_id=str(self.id),
                    variant_id=variant_id,
                    name=self.label_for(variant_id),
                    current_stock=current,
                    min_stock_level=threshold,
                    detected_at=datetime.now(UTC),
                )
            )

    def _prune_released(self):
        released = sorted(
            (r for r in self.reservations or [] if r.status == ReservationStatus.RELEASED.value),
            key=lambda r: r.settled_at,
        )
        for reservation in released[:-RELEASED_HISTORY]:
            self.remove_reservations(reservation)

    # -------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------
    def reserve(self, quantity, variant_id=None):
        """Take `quantity` out of stock for a checkout in progress.

        Returns the new StockReservation. The check and the decrement happen
        together; callers serialize access per product.
        """
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        variant_id = str(variant_id) if variant_id is not None else None
        previous_stock = self.stock_for(variant_id)
        if quantity > previous_stock:
            raise InsufficientStock(
                self.id, quantity, previous_stock, product_name=self.label_for(variant_id)
            )

        now = datetime.now(UTC)
        reservation = StockReservation(
            quantity=quantity,
            variant_id=variant_id,
            status=ReservationStatus.ACTIVE.value,
            reserved_at=now,
        )
        self._set_stock(variant_id, previous_stock - quantity)
        self.add_reservations(reservation)
        self.updated_at = now

        self.raise_(
            StockReserved(
                product_id=str(self.id),
                variant_id=variant_id,
                reservation_id=str(reservation.id),
                quantity=quantity,
                previous_stock=previous_stock,
                new_stock=self.stock_for(variant_id),
                reserved_at=now,
            )
        )
        self._check_low_stock(previous_stock, variant_id)
        return reservation

    def release_reservation(self, reservation_id, reason):
        """Return a reservation's quantity to stock.

        Returns False when there is nothing left to release: the reservation
        was already released, or it was committed and is no longer tracked.
        """
        reservation = self.find_reservation(reservation_id)
        if reservation is None or reservation.status == ReservationStatus.RELEASED.value:
            return False

        now = datetime.now(UTC)
        variant_id = reservation.variant_id
        previous_stock = self.stock_for(variant_id)
        self._set_stock(variant_id, previous_stock + reservation.quantity)
        reservation.status = ReservationStatus.RELEASED.value
        reservation.settled_at = now
        self.updated_at = now

        self.raise_(
            StockReleased(
                product_id=str(self.id),
                variant_id=variant_id,
                reservation_id=str(reservation.id),
                quantity=reservation.quantity,
                reason=reason,
                previous_stock=previous_stock,
                new_stock=self.stock_for(variant_id),
                released_at=now,
            )
        )
        self._prune_released()
        return True

    def commit_reservation(self, reservation_id, order_id):
        """Settle a reservation against a persisted order and stop tracking it.

        Returns False when the reservation is no longer tracked (already
        committed). Committing a released reservation is an error: its stock
        has gone back on the shelf.
        """
        reservation = self.find_reservation(reservation_id)
        if reservation is None:
            return False
        if reservation.status == ReservationStatus.RELEASED.value:
            raise ValidationError({"reservation_id": ["Cannot commit a released reservation"]})

        now = datetime.now(UTC)
        self.remove_reservations(reservation)
        self.updated_at = now

        self.raise_(
            ReservationCommitted(
                product_id=str(self.id),
                variant_id=reservation.variant_id,
                reservation_id=str(reservation.id),
                order_id=str(order_id),
                quantity=reservation.quantity,
                committed_at=now,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Receiving and adjustment
    # -------------------------------------------------------------------
    def receive_stock(self, quantity, reference=None, variant_id=None):
        """Receive stock into the store."""
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        now = datetime.now(UTC)
        previous_stock = self.stock_for(variant_id)
        self._set_stock(variant_id, previous_stock + quantity)
        self.updated_at = now

        self.raise_(
            StockReceived(
                product_id=str(self.id),
                variant_id=variant_id,
                quantity=quantity,
                previous_stock=previous_stock,
                new_stock=self.stock_for(variant_id),
                reference=reference,
                received_at=now,
            )
        )

    def adjust_stock(self, quantity_change, reason, variant_id=None):
        """Manually correct the stock count."""
        if not reason:
            raise ValidationError({"reason": ["Reason is required for stock adjustments"]})
        if not quantity_change:
            raise ValidationError({"quantity_change": ["Adjustment must change the stock"]})

        previous_stock = self.stock_for(variant_id)
        new_stock = previous_stock + quantity_change
        if new_stock < 0:
            raise ValidationError({"quantity_change": [f"Adjustment would result in negative stock: {new_stock}"]})

        now = datetime.now(UTC)
        self._set_stock(variant_id, new_stock)
        self.updated_at = now

        self.raise_(
            StockAdjusted(
                product_id=str(self.id),
                variant_id=variant_id,
                quantity_change=quantity_change,
                reason=reason,
                previous_stock=previous_stock,
                new_stock=new_stock,
                adjusted_at=now,
            )
        )
        self._check_low_stock(previous_stock, variant_id)
