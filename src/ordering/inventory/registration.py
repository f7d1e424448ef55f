"""Product registration — command and handler."""

from protean import handle
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.inventory.product import DEFAULT_MIN_STOCK_LEVEL, Product


@ordering.command(part_of="Product")
class RegisterProduct:
    """Make a product sellable by recording its price and opening stock."""

    product_id: Identifier()
    name: String(required=True, max_length=255)
    sku: String(max_length=50)
    unit_price: Float(required=True, min_value=0.0)
    initial_stock: Integer(default=0, min_value=0)
    min_stock_level: Integer(default=DEFAULT_MIN_STOCK_LEVEL, min_value=0)


@ordering.command_handler(part_of=Product)
class RegisterProductHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        product = Product.register(
            name=command.name,
            unit_price=command.unit_price,
            initial_stock=command.initial_stock,
            min_stock_level=command.min_stock_level,
            sku=command.sku,
            product_id=command.product_id,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)
