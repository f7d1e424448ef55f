"""Cart aggregate — ephemeral selection of products ahead of checkout.

A Cart lives for one checkout session (POS counter or online basket) and is
never persisted. Each line snapshots the product's unit price at add time and
the stock level as last observed; line quantities never exceed that observed
stock. The Order Transaction Engine re-checks live stock at checkout.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from ordering.domain import ordering
from ordering.errors import InsufficientStock


@ordering.entity(part_of="Cart")
class CartLine:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    product_name = String(max_length=255)  # Includes the variant name
    unit_price = Float(required=True, min_value=0.0)  # Snapshot at add time
    quantity = Integer(required=True, min_value=1)
    available_stock = Integer(default=0, min_value=0)  # Stock as last observed

    @property
    def line_total(self):
        return round(self.quantity * self.unit_price, 2)


@ordering.aggregate
class Cart:
    customer_id = Identifier()
    lines = HasMany(CartLine)
    discount = Float(default=0.0, min_value=0.0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, customer_id=None):
        now = datetime.now(UTC)
        return cls(customer_id=customer_id, discount=0.0, created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def line_for(self, product_id, variant_id=None):
        """The line for a product, or for one of its variants."""
        variant_key = str(variant_id) if variant_id is not None else None
        return next(
            (
                line
                for line in self.lines
                if str(line.product_id) == str(product_id)
                and (str(line.variant_id) if line.variant_id is not None else None) == variant_key
            ),
            None,
        )

    def add_item(self, product, requested_qty=1, variant_id=None):
        """Add `requested_qty` of `product`, merging into an existing line.

        `product` is anything carrying `id`, `name`, `unit_price` and `stock`,
        usually a Product read from the ledger. Naming a `variant_id` sells
        that variant instead, with its own price and stock; the product must
        then be a Product. Each variant gets a line of its own.
        """
        if requested_qty is None or requested_qty < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        if variant_id is None:
            name, unit_price, observed_stock = product.name, product.unit_price, product.stock or 0
        else:
            variant_id = str(variant_id)
            name = product.label_for(variant_id)
            unit_price = product.price_for(variant_id)
            observed_stock = product.stock_for(variant_id)

        existing = self.line_for(product.id, variant_id)
        current_qty = existing.quantity if existing else 0
        new_qty = current_qty + requested_qty
        if new_qty > observed_stock:
            raise InsufficientStock(product.id, new_qty, observed_stock, product_name=name)

        if existing:
            existing.quantity = new_qty
            existing.available_stock = observed_stock
        else:
            self.add_lines(
                CartLine(
                    product_id=str(product.id),
                    variant_id=variant_id,
                    product_name=name,
                    unit_price=unit_price,
                    quantity=requested_qty,
                    available_stock=observed_stock,
                )
            )
        self.updated_at = datetime.now(UTC)

    def _existing_line(self, product_id, variant_id):
        line = self.line_for(product_id, variant_id)
        if line is None:
            raise ValidationError({"product_id": ["Product is not in the cart"]})
        return line

    def update_quantity(self, product_id, delta, variant_id=None):
        """Change a line's quantity by `delta`.

        Increases beyond the observed stock are rejected. Decreases stop at 1;
        use `remove_item` to drop the line.
        """
        line = self._existing_line(product_id, variant_id)

        new_qty = line.quantity + delta
        if delta > 0 and new_qty > (line.available_stock or 0):
            raise InsufficientStock(
                line.product_id, new_qty, line.available_stock or 0, product_name=line.product_name
            )

        line.quantity = max(1, new_qty)
        self.updated_at = datetime.now(UTC)

    def remove_item(self, product_id, variant_id=None):
        self.remove_lines(self._existing_line(product_id, variant_id))
        self.updated_at = datetime.now(UTC)

    def observe_stock(self, product_id, stock, variant_id=None):
        """Record a fresher stock reading for a line. Quantity is left alone."""
        line = self._existing_line(product_id, variant_id)
        line.available_stock = max(0, stock)

    def clear(self):
        for line in list(self.lines):
            self.remove_lines(line)
        self.discount = 0.0
        self.updated_at = datetime.now(UTC)

    def is_empty(self):
        return not self.lines

    # -------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------
    def subtotal(self):
        return round(sum(line.quantity * line.unit_price for line in self.lines), 2)

    def apply_discount(self, amount):
        """Set a flat discount. Anything above the subtotal is capped at checkout."""
        if amount is None or amount < 0:
            raise ValidationError({"discount": ["Discount cannot be negative"]})
        self.discount = float(amount)
        self.updated_at = datetime.now(UTC)

    def effective_discount(self):
        return min(self.discount or 0.0, self.subtotal())

    def total(self):
        return round(max(0.0, self.subtotal() - self.effective_discount()), 2)
