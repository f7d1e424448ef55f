"""Error taxonomy for the Ordering domain.

All errors derive from Protean's exceptions so that command processing,
unit-of-work rollback and the FastAPI exception handlers treat them the same
way as any other domain error:

- ``InsufficientStock``  recoverable; the caller may reduce quantity and retry
- ``IllegalTransition``  caller error; reject, no retry
- ``OrderNotFound`` / ``ProductNotFound`` / ``VariantNotFound``
- ``PersistenceFailure`` infrastructure; surfaced once the ledger gives up
- ``ValidationError``    (Protean) malformed cart or customer data
"""

from protean.exceptions import ObjectNotFoundError, ProteanException, ValidationError


class InsufficientStock(ValidationError):
    """Requested quantity exceeds the stock available at evaluation time."""

    def __init__(self, product_id, requested, available, product_name=None):
        self.product_id = str(product_id)
        self.product_name = product_name
        self.requested = requested
        self.available = available

        label = product_name or self.product_id
        super().__init__(
            {
                "quantity": [f"Insufficient stock for {label}: {available} available, {requested} requested"],
                "product_id": [self.product_id],
            }
        )


class IllegalTransition(ValidationError):
    """A status change not allowed by the order or payment state machine."""

    def __init__(self, current, requested, field="status"):
        self.field = field
        self.current = current
        self.requested = requested
        super().__init__({field: [f"Cannot transition from {current} to {requested}"]})


class OrderNotFound(ObjectNotFoundError):
    def __init__(self, order_id):
        self.order_id = str(order_id)
        super().__init__({"order_id": [f"Order {order_id} does not exist"]})


class ProductNotFound(ObjectNotFoundError):
    def __init__(self, product_id):
        self.product_id = str(product_id)
        super().__init__({"product_id": [f"Product {product_id} does not exist"]})


class VariantNotFound(ObjectNotFoundError):
    def __init__(self, product_id, variant_id):
        self.product_id = str(product_id)
        self.variant_id = str(variant_id)
        super().__init__({"variant_id": [f"Variant {variant_id} does not exist on product {product_id}"]})


class PersistenceFailure(ProteanException):
    """The data layer refused or lost a write.

    Raised after compensation has run; the original exception is chained as
    ``__cause__``.
    """

    def __init__(self, operation, reason):
        self.operation = operation
        self.reason = str(reason)
        super().__init__({"persistence": [f"{operation} failed: {reason}"]})


__all__ = [
    "IllegalTransition",
    "InsufficientStock",
    "OrderNotFound",
    "PersistenceFailure",
    "ProductNotFound",
    "ValidationError",
    "VariantNotFound",
]
