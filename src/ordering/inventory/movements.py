"""Stock movement log — append-only audit trail of every stock change.

Built from the Product events rather than stored on the aggregate. Commits
move no stock and leave no entry.
"""

import uuid
from enum import Enum

from protean.core.projector import on
from protean.fields import DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.inventory.events import (
    ProductRegistered,
    StockAdjusted,
    StockReceived,
    StockReleased,
    StockReserved,
    VariantAdded,
)
from ordering.inventory.product import Product


class MovementType(Enum):
    INITIAL = "initial"
    RESERVATION = "reservation"
    RELEASE = "release"
    RECEIPT = "receipt"
    ADJUSTMENT = "adjustment"


@ordering.projection
class StockMovement:
    entry_id = Identifier(identifier=True, required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    movement_type = String(required=True, choices=MovementType)
    change_amount = Integer(required=True)
    new_stock = Integer(required=True)
    reference = String(max_length=255)
    created_at = DateTime(required=True)


def _add_entry(event, movement_type, change_amount, new_stock, created_at, reference=None):
    current_domain.repository_for(StockMovement).add(
        StockMovement(
            entry_id=str(uuid.uuid4()),
            product_id=event.product_id,
            variant_id=getattr(event, "variant_id", None),
            movement_type=movement_type.value,
            change_amount=change_amount,
            new_stock=new_stock,
            reference=reference,
            created_at=created_at,
        )
    )


def movements_for(product_id, variant_id=None, limit=100) -> list[StockMovement]:
    """Most recent movements for a product, newest first.

    With `variant_id` only that variant's movements are returned; without it,
    every movement on the product.
    """
    filters = {"product_id": str(product_id)}
    if variant_id is not None:
        filters["variant_id"] = str(variant_id)
    dao = current_domain.repository_for(StockMovement)._dao
    return dao.query.filter(**filters).order_by("-created_at").limit(limit).all().items


@ordering.projector(projector_for=StockMovement, aggregates=[Product])
class StockMovementProjector:
    @on(ProductRegistered)
    def on_product_registered(self, event):
        _add_entry(
            event,
            MovementType.INITIAL,
            event.initial_stock,
            event.initial_stock,
            event.registered_at,
            reference="registration",
        )

    @on(VariantAdded)
    def on_variant_added(self, event):
        _add_entry(
            event,
            MovementType.INITIAL,
            event.initial_stock,
            event.initial_stock,
            event.added_at,
            reference="variant",
        )

    @on(StockReserved)
    def on_stock_reserved(self, event):
        _add_entry(
            event,
            MovementType.RESERVATION,
            -event.quantity,
            event.new_stock,
            event.reserved_at,
            reference=event.reservation_id,
        )

    @on(StockReleased)
    def on_stock_released(self, event):
        _add_entry(
            event,
            MovementType.RELEASE,
            event.quantity,
            event.new_stock,
            event.released_at,
            reference=event.reservation_id,
        )

    @on(StockReceived)
    def on_stock_received(self, event):
        _add_entry(
            event,
            MovementType.RECEIPT,
            event.quantity,
            event.new_stock,
            event.received_at,
            reference=event.reference,
        )

    @on(StockAdjusted)
    def on_stock_adjusted(self, event):
        _add_entry(
            event,
            MovementType.ADJUSTMENT,
            event.quantity_change,
            event.new_stock,
            event.adjusted_at,
            reference=event.reason,
        )
