"""Pydantic request/response schemas for the Ordering API.

These are external contracts, kept separate from the internal Protean
commands and aggregates.
"""

from typing import Literal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    street: str
    city: str
    state: str | None = None
    postal_code: str
    country: str = "India"


class CustomerSchema(BaseModel):
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    customer_id: str | None = None


class CartLineSchema(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1, default=1)


# ---------------------------------------------------------------------------
# Product Request Schemas
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    product_id: str | None = None
    name: str
    sku: str | None = None
    unit_price: float = Field(ge=0)
    initial_stock: int = Field(ge=0, default=0)
    min_stock_level: int = Field(ge=0, default=5)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Brass Diya (Large)",
                    "sku": "DIYA-BRS-L",
                    "unit_price": 450.0,
                    "initial_stock": 40,
                    "min_stock_level": 5,
                }
            ]
        }
    }


class AddVariantRequest(BaseModel):
    name: str
    sku: str | None = None
    unit_price: float | None = Field(ge=0, default=None)
    initial_stock: int = Field(ge=0, default=0)


class StockUpdateRequest(BaseModel):
    """Receipt adds `quantity`; adjustment applies a signed `quantity` with a reason."""

    kind: Literal["receipt", "adjustment"] = "receipt"
    quantity: int
    reason: str | None = None
    reference: str | None = None
    variant_id: str | None = None


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    items: list[CartLineSchema] = Field(min_length=1)
    customer: CustomerSchema
    payment_method: str = "razorpay"
    shipping_address: AddressSchema | None = None
    billing_address: AddressSchema | None = None
    discount: float = Field(ge=0, default=0.0)
    notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [{"product_id": "prod-001", "quantity": 2}],
                    "customer": {
                        "name": "Asha Menon",
                        "email": "asha@example.com",
                        "phone": "9876543210",
                    },
                    "payment_method": "cod",
                    "shipping_address": {
                        "street": "14 MG Road",
                        "city": "Kochi",
                        "state": "Kerala",
                        "postal_code": "682016",
                        "country": "India",
                    },
                }
            ]
        }
    }


class PosOrderRequest(BaseModel):
    items: list[CartLineSchema] = Field(min_length=1)
    customer: CustomerSchema | None = None
    payment_method: str = "cash"
    discount: float = Field(ge=0, default=0.0)
    notes: str | None = None


class UpdateStatusRequest(BaseModel):
    status: str


class UpdatePaymentStatusRequest(BaseModel):
    payment_status: str


class UpdateTrackingRequest(BaseModel):
    tracking_number: str | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class ProductIdResponse(BaseModel):
    product_id: str


class VariantResponse(BaseModel):
    variant_id: str
    name: str
    sku: str | None = None
    unit_price: float
    stock: int


class ProductResponse(BaseModel):
    product_id: str
    name: str
    sku: str | None = None
    unit_price: float
    stock: int
    min_stock_level: int
    low_stock: bool
    variants: list[VariantResponse] = []


class StockMovementResponse(BaseModel):
    product_id: str
    variant_id: str | None = None
    movement_type: str
    change_amount: int
    new_stock: int
    reference: str | None = None
    created_at: str


class OrderItemResponse(BaseModel):
    product_id: str
    variant_id: str | None = None
    product_name: str | None = None
    quantity: int
    unit_price: float
    line_total: float


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    source: str
    status: str
    payment_status: str
    payment_method: str
    customer: CustomerSchema | None = None
    items: list[OrderItemResponse] = []
    subtotal: float
    discount_total: float
    tax_total: float
    shipping_total: float
    grand_total: float
    currency: str
    shipping_address: AddressSchema | None = None
    billing_address: AddressSchema | None = None
    tracking_number: str | None = None
    notes: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


class OrderStatsResponse(BaseModel):
    total_orders: int
    total_revenue: float
    orders_today: int
    revenue_today: float
    avg_order_value: float
    pending_orders: int
    status_breakdown: dict[str, int]
    payment_breakdown: dict[str, int]


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    stats: OrderStatsResponse | None = None
