"""FastAPI routes for the Ordering domain — products, checkout and orders."""

from dataclasses import asdict

from fastapi import APIRouter, Query
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    AddVariantRequest,
    CheckoutRequest,
    OrderItemResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatsResponse,
    PosOrderRequest,
    ProductIdResponse,
    ProductResponse,
    RegisterProductRequest,
    StockMovementResponse,
    StockUpdateRequest,
    UpdatePaymentStatusRequest,
    UpdateStatusRequest,
    UpdateTrackingRequest,
    VariantResponse,
)
from ordering.cart.cart import Cart
from ordering.checkout.engine import engine
from ordering.inventory.ledger import ledger
from ordering.inventory.registration import RegisterProduct
from ordering.order.order import OrderSource
from ordering.order.queries import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    OrderFilters,
    get_order,
    list_orders_with_stats,
    order_stats,
)
from ordering.order.transitions import set_tracking, transition_payment, transition_status


def _product_response(product) -> ProductResponse:
    return ProductResponse(
        product_id=str(product.id),
        name=product.name,
        sku=product.sku,
        unit_price=product.unit_price,
        stock=product.stock or 0,
        min_stock_level=product.min_stock_level or 0,
        low_stock=product.is_low_stock(),
        variants=[
            VariantResponse(
                variant_id=str(variant.id),
                name=variant.name,
                sku=variant.sku,
                unit_price=product.price_for(variant.id),
                stock=variant.stock or 0,
            )
            for variant in product.variants
        ],
    )


def _movement_response(movement) -> StockMovementResponse:
    return StockMovementResponse(
        product_id=str(movement.product_id),
        variant_id=str(movement.variant_id) if movement.variant_id else None,
        movement_type=movement.movement_type,
        change_amount=movement.change_amount,
        new_stock=movement.new_stock,
        reference=movement.reference,
        created_at=str(movement.created_at),
    )


def _address(address):
    return address.to_dict() if address else None


def _order_response(order) -> OrderResponse:
    pricing = order.pricing
    return OrderResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        source=order.source,
        status=order.status,
        payment_status=order.payment_status,
        payment_method=order.payment_method,
        customer=order.customer.to_dict() if order.customer else None,
        items=[
            OrderItemResponse(
                product_id=str(item.product_id),
                variant_id=str(item.variant_id) if item.variant_id else None,
                product_name=item.product_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=item.line_total,
            )
            for item in order.items
        ],
        subtotal=pricing.subtotal,
        discount_total=pricing.discount_total,
        tax_total=pricing.tax_total,
        shipping_total=pricing.shipping_total,
        grand_total=pricing.grand_total,
        currency=pricing.currency,
        shipping_address=_address(order.shipping_address),
        billing_address=_address(order.billing_address),
        tracking_number=order.tracking_number,
        notes=order.notes,
        created_at=str(order.created_at) if order.created_at else None,
        updated_at=str(order.updated_at) if order.updated_at else None,
    )


def _build_cart(lines, discount) -> Cart:
    cart = Cart.create()
    for line in lines:
        cart.add_item(ledger.product(line.product_id), line.quantity, variant_id=line.variant_id)
    if discount:
        cart.apply_discount(discount)
    return cart


# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def register_product(body: RegisterProductRequest) -> ProductIdResponse:
    command = RegisterProduct(**body.model_dump())
    product_id = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=product_id)


@product_router.post("/{product_id}/stock", response_model=ProductResponse)
async def update_stock(product_id: str, body: StockUpdateRequest) -> ProductResponse:
    if body.kind == "adjustment":
        product = ledger.adjust(product_id, body.quantity, body.reason, variant_id=body.variant_id)
    else:
        product = ledger.receive(product_id, body.quantity, reference=body.reference, variant_id=body.variant_id)
    return _product_response(product)


@product_router.post("/{product_id}/variants", status_code=201, response_model=ProductResponse)
async def add_variant(product_id: str, body: AddVariantRequest) -> ProductResponse:
    product = ledger.add_variant(product_id, **body.model_dump())
    return _product_response(product)


@product_router.get("/{product_id}/movements", response_model=list[StockMovementResponse])
async def stock_movements(
    product_id: str,
    variant_id: str | None = None,
    limit: int = Query(default=50, ge=1, le=MAX_PAGE_SIZE),
) -> list[StockMovementResponse]:
    return [_movement_response(m) for m in ledger.movements(product_id, variant_id=variant_id, limit=limit)]


@product_router.get("/low-stock", response_model=list[ProductResponse])
async def low_stock_products() -> list[ProductResponse]:
    return [_product_response(p) for p in ledger.low_stock_products()]


@product_router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str) -> ProductResponse:
    return _product_response(ledger.product(product_id))


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("/checkout", status_code=201, response_model=OrderResponse)
async def checkout(body: CheckoutRequest) -> OrderResponse:
    cart = _build_cart(body.items, body.discount)
    order = engine.create_order(
        cart,
        body.customer.model_dump(),
        body.payment_method,
        source=OrderSource.ONLINE,
        shipping_address=body.shipping_address.model_dump() if body.shipping_address else None,
        billing_address=body.billing_address.model_dump() if body.billing_address else None,
        notes=body.notes,
    )
    return _order_response(order)


@order_router.post("/pos", status_code=201, response_model=OrderResponse)
async def pos_sale(body: PosOrderRequest) -> OrderResponse:
    cart = _build_cart(body.items, body.discount)
    order = engine.create_order(
        cart,
        body.customer.model_dump() if body.customer else None,
        body.payment_method,
        source=OrderSource.POS,
        notes=body.notes,
    )
    return _order_response(order)


@order_router.get("", response_model=OrderListResponse)
async def list_orders(
    search: str | None = None,
    status: str | None = None,
    payment_status: str | None = None,
    source: str | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    include_stats: bool = False,
) -> OrderListResponse:
    filters = OrderFilters(search=search, status=status, payment_status=payment_status, source=source)
    result, stats = list_orders_with_stats(filters, page, page_size)
    return OrderListResponse(
        items=[_order_response(o) for o in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
        stats=OrderStatsResponse(**asdict(stats)) if include_stats else None,
    )


@order_router.get("/stats", response_model=OrderStatsResponse)
async def get_order_stats(
    search: str | None = None,
    status: str | None = None,
    payment_status: str | None = None,
    source: str | None = None,
) -> OrderStatsResponse:
    filters = OrderFilters(search=search, status=status, payment_status=payment_status, source=source)
    return OrderStatsResponse(**asdict(order_stats(filters)))


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order_detail(order_id: str) -> OrderResponse:
    return _order_response(get_order(order_id))


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_status(order_id: str, body: UpdateStatusRequest) -> OrderResponse:
    return _order_response(transition_status(order_id, body.status))


@order_router.put("/{order_id}/payment-status", response_model=OrderResponse)
async def update_payment_status(order_id: str, body: UpdatePaymentStatusRequest) -> OrderResponse:
    return _order_response(transition_payment(order_id, body.payment_status))


@order_router.put("/{order_id}/tracking", response_model=OrderResponse)
async def update_tracking(order_id: str, body: UpdateTrackingRequest) -> OrderResponse:
    return _order_response(set_tracking(order_id, body.tracking_number))
