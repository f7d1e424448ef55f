"""Order pricing rules.

POS sales are priced at the counter: no tax line, no shipping. Online orders
carry tax on the discounted subtotal and a flat shipping fee that is waived
once the subtotal reaches the free-shipping threshold. Rates come from the
`[custom]` section of domain.toml.
"""

from protean.utils.globals import current_domain

from ordering.order.order import OrderPricing, OrderSource, parse_enum

DEFAULT_TAX_RATE = 0.18
DEFAULT_FREE_SHIPPING_THRESHOLD = 1000.0
DEFAULT_FLAT_SHIPPING = 50.0
DEFAULT_CURRENCY = "INR"


def _setting(key, default):
    custom = current_domain.config.get("custom", {}) or {}
    return custom.get(key, default)


def price_order(subtotal, discount, source, currency=None) -> OrderPricing:
    """Price an order from its item subtotal and requested flat discount.

    The discount is capped at the subtotal so the grand total is never negative.
    """
    source = parse_enum(OrderSource, source, "source")
    subtotal = round(subtotal, 2)
    discount_total = round(min(max(discount or 0.0, 0.0), subtotal), 2)
    taxable = subtotal - discount_total

    if source == OrderSource.POS:
        tax_total = 0.0
        shipping_total = 0.0
    else:
        tax_total = round(taxable * float(_setting("TAX_RATE", DEFAULT_TAX_RATE)), 2)
        threshold = float(_setting("FREE_SHIPPING_THRESHOLD", DEFAULT_FREE_SHIPPING_THRESHOLD))
        shipping_total = 0.0 if subtotal >= threshold else float(_setting("FLAT_SHIPPING", DEFAULT_FLAT_SHIPPING))

    grand_total = round(max(0.0, subtotal - discount_total + tax_total + shipping_total), 2)
    return OrderPricing(
        subtotal=subtotal,
        discount_total=discount_total,
        tax_total=tax_total,
        shipping_total=shipping_total,
        grand_total=grand_total,
        currency=currency or _setting("CURRENCY", DEFAULT_CURRENCY),
    )
