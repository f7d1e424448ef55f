"""Order Query & Aggregation Service.

Listing, filtering, pagination and summary statistics over persisted orders.
The functions taking an `orders` sequence are pure and do not touch the
repository; `list_orders` and friends load the persisted set and apply them.

Statistics are always computed over the whole filtered set, never over the
page being displayed.
"""

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from ordering.errors import OrderNotFound
from ordering.order.order import (
    Order,
    OrderSource,
    OrderStatus,
    PaymentStatus,
    parse_enum,
)
from ordering.utils.db import fetch_all

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class OrderFilters:
    """Listing criteria. Empty values (and "all") match everything."""

    search: str | None = None
    status: str | None = None
    payment_status: str | None = None
    source: str | None = None

    def normalized(self) -> "OrderFilters":
        def _value(enum_cls, value, name):
            if value is None or str(value).strip().lower() in ("", "all"):
                return None
            return parse_enum(enum_cls, value, name).value

        search = (self.search or "").strip().lower() or None
        return OrderFilters(
            search=search,
            status=_value(OrderStatus, self.status, "status"),
            payment_status=_value(PaymentStatus, self.payment_status, "payment_status"),
            source=_value(OrderSource, self.source, "source"),
        )


@dataclass(frozen=True)
class OrderPage:
    items: list
    total: int
    page: int
    page_size: int
    total_pages: int

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


@dataclass(frozen=True)
class OrderStats:
    total_orders: int = 0
    total_revenue: float = 0.0
    orders_today: int = 0
    revenue_today: float = 0.0
    avg_order_value: float = 0.0
    pending_orders: int = 0
    status_breakdown: dict = field(default_factory=dict)
    payment_breakdown: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Pure functions
# ---------------------------------------------------------------------------
def _matches_search(order, needle: str) -> bool:
    customer = order.customer
    haystack = [
        order.order_number,
        customer.name if customer else None,
        customer.email if customer else None,
        customer.phone if customer else None,
    ]
    return any(needle in value.lower() for value in haystack if value)


def filter_orders(orders, filters: OrderFilters | None = None) -> list:
    if filters is None:
        return list(orders)

    filters = filters.normalized()
    result = []
    for order in orders:
        if filters.status and order.status != filters.status:
            continue
        if filters.payment_status and order.payment_status != filters.payment_status:
            continue
        if filters.source and order.source != filters.source:
            continue
        if filters.search and not _matches_search(order, filters.search):
            continue
        result.append(order)
    return result


def _as_aware(moment: datetime | None) -> datetime:
    if moment is None:
        return datetime.min.replace(tzinfo=UTC)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def sort_orders(orders) -> list:
    """Newest first; order number breaks ties."""
    return sorted(
        orders,
        key=lambda o: (_as_aware(o.created_at), o.order_number or ""),
        reverse=True,
    )


def paginate(orders, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE) -> OrderPage:
    if page is None or page < 1:
        raise ValidationError({"page": ["Page must be at least 1"]})
    if page_size is None or not 1 <= page_size <= MAX_PAGE_SIZE:
        raise ValidationError({"page_size": [f"Page size must be between 1 and {MAX_PAGE_SIZE}"]})

    orders = list(orders)
    total = len(orders)
    start = (page - 1) * page_size
    return OrderPage(
        items=orders[start : start + page_size],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=math.ceil(total / page_size) if total else 0,
    )


def compute_stats(orders, now: datetime | None = None) -> OrderStats:
    """Summary figures for `orders`.

    Revenue counts only paid orders. "Today" is the local calendar day of `now`.
    """
    orders = list(orders)
    today = (now or datetime.now(UTC)).astimezone().date()

    paid = [o for o in orders if o.payment_status == PaymentStatus.PAID.value]
    todays = [o for o in orders if _as_aware(o.created_at).astimezone().date() == today]
    todays_paid = [o for o in todays if o.payment_status == PaymentStatus.PAID.value]

    total_revenue = round(sum(o.grand_total for o in paid), 2)
    status_counts = Counter(o.status for o in orders)
    payment_counts = Counter(o.payment_status for o in orders)

    return OrderStats(
        total_orders=len(orders),
        total_revenue=total_revenue,
        orders_today=len(todays),
        revenue_today=round(sum(o.grand_total for o in todays_paid), 2),
        avg_order_value=round(total_revenue / len(paid), 2) if paid else 0.0,
        pending_orders=status_counts.get(OrderStatus.PENDING.value, 0),
        status_breakdown={s.value: status_counts.get(s.value, 0) for s in OrderStatus},
        payment_breakdown={p.value: payment_counts.get(p.value, 0) for p in PaymentStatus},
    )


# ---------------------------------------------------------------------------
# Repository-backed queries
# ---------------------------------------------------------------------------
def _filtered(filters: OrderFilters | None) -> list:
    return sort_orders(filter_orders(fetch_all(Order), filters))


def list_orders(
    filters: OrderFilters | None = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> OrderPage:
    return paginate(_filtered(filters), page, page_size)


def list_orders_with_stats(
    filters: OrderFilters | None = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
    now: datetime | None = None,
) -> tuple[OrderPage, OrderStats]:
    orders = _filtered(filters)
    return paginate(orders, page, page_size), compute_stats(orders, now=now)


def get_order(order_id) -> Order:
    try:
        return current_domain.repository_for(Order).get(str(order_id))
    except ObjectNotFoundError as exc:
        raise OrderNotFound(order_id) from exc


def find_by_order_number(order_number: str) -> Order:
    results = (
        current_domain.repository_for(Order)._dao.query.filter(order_number=order_number.strip()).all().items
    )
    if not results:
        raise OrderNotFound(order_number)
    return results[0]


def order_stats(filters: OrderFilters | None = None, now: datetime | None = None) -> OrderStats:
    return compute_stats(filter_orders(fetch_all(Order), filters), now=now)
