"""Inventory Ledger — serialized stock mutations per product.

Every reserve/release/commit/receive/adjust loads the Product, mutates it and
persists it in its own unit of work while holding that product's lock, so
two checkouts racing for the last unit observe each other's writes. The
ledger must not be called from inside an outer unit of work: the write has
to be committed before the lock is released.

Locks are keyed by product id and created lazily under a registry lock. Work
on different products proceeds in parallel. Only products that exist keep a
lock, so the registry never outgrows the catalogue.

The lock only serializes writers in this process. A writer in another
process shows up as a version conflict on commit; the ledger reloads and
reapplies the change once, then gives up with PersistenceFailure.
"""

import threading
from dataclasses import dataclass

import structlog
from protean.core.unit_of_work import UnitOfWork
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.errors import PersistenceFailure, ProductNotFound
from ordering.inventory.movements import StockMovement, movements_for
from ordering.inventory.product import Product
from ordering.utils.db import fetch_all

logger = structlog.get_logger(__name__)

VERSION_CONFLICT_RETRIES = 1


@dataclass(frozen=True)
class Reservation:
    """Token handed back by `InventoryLedger.reserve`."""

    product_id: str
    reservation_id: str
    quantity: int
    variant_id: str | None = None


class InventoryLedger:
    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, product_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(product_id)
            if lock is None:
                lock = self._locks[product_id] = threading.Lock()
            return lock

    def _forget_lock(self, product_id: str, lock: threading.Lock) -> None:
        with self._registry_lock:
            if self._locks.get(product_id) is lock:
                del self._locks[product_id]

    def _load(self, product_id: str) -> Product:
        try:
            return current_domain.repository_for(Product).get(product_id)
        except ObjectNotFoundError as exc:
            raise ProductNotFound(product_id) from exc

    def _write(self, product_id: str, operation: str, mutate):
        """Load, mutate and persist one product under its lock.

        `mutate(product)` applies the change and returns its result; a result
        of False means nothing changed and nothing is written. Returns the
        product and that result.
        """
        lock = self._lock_for(product_id)
        with lock:
            for attempt in range(VERSION_CONFLICT_RETRIES + 1):
                try:
                    with UnitOfWork():
                        product = self._load(product_id)
                        result = mutate(product)
                        if result is not False:
                            current_domain.repository_for(Product).add(product)
                    return product, result
                except ProductNotFound:
                    self._forget_lock(product_id, lock)
                    raise
                except ExpectedVersionError as exc:
                    if attempt < VERSION_CONFLICT_RETRIES:
                        logger.warning(
                            "Stock write conflicted with another writer, retrying",
                            product_id=product_id,
                            operation=operation,
                            error=str(exc),
                        )
                        continue
                    logger.error(
                        "Stock write conflicted again, giving up",
                        product_id=product_id,
                        operation=operation,
                        error=str(exc),
                    )
                    raise PersistenceFailure(operation, exc) from exc

    # -------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------
    def reserve(self, product_id, quantity: int, variant_id=None) -> Reservation:
        """Check and decrement stock as one step.

        Raises InsufficientStock when `quantity` exceeds the stock on hand for
        the product, or for `variant_id` when one is given.
        """
        product_id = str(product_id)
        variant_id = str(variant_id) if variant_id is not None else None
        product, reservation = self._write(
            product_id, "reserve_stock", lambda p: p.reserve(quantity, variant_id=variant_id)
        )

        logger.info(
            "Reserved stock",
            product_id=product_id,
            variant_id=variant_id,
            reservation_id=str(reservation.id),
            quantity=quantity,
            remaining=product.stock_for(variant_id),
        )
        return Reservation(
            product_id=product_id,
            reservation_id=str(reservation.id),
            quantity=quantity,
            variant_id=variant_id,
        )

    def release(self, reservation: Reservation, reason: str = "checkout_failed") -> bool:
        """Return a reservation's quantity to stock.

        Releasing the same token twice is a no-op; the second call returns False.
        """
        _, released = self._write(
            reservation.product_id,
            "release_stock",
            lambda p: p.release_reservation(reservation.reservation_id, reason),
        )

        logger.info(
            "Released stock reservation" if released else "Reservation already released",
            product_id=reservation.product_id,
            variant_id=reservation.variant_id,
            reservation_id=reservation.reservation_id,
            quantity=reservation.quantity,
            reason=reason,
        )
        return released

    def commit(self, reservation: Reservation, order_id) -> bool:
        """Settle a reservation against the persisted order it belongs to."""
        _, committed = self._write(
            reservation.product_id,
            "commit_stock",
            lambda p: p.commit_reservation(reservation.reservation_id, order_id),
        )

        logger.debug(
            "Committed stock reservation",
            product_id=reservation.product_id,
            reservation_id=reservation.reservation_id,
            order_id=str(order_id),
        )
        return committed

    # -------------------------------------------------------------------
    # Stock maintenance
    # -------------------------------------------------------------------
    def add_variant(self, product_id, name: str, unit_price=None, initial_stock: int = 0, sku=None):
        product_id = str(product_id)
        product, variant = self._write(
            product_id,
            "add_variant",
            lambda p: p.add_variant(name, unit_price=unit_price, initial_stock=initial_stock, sku=sku),
        )

        logger.info(
            "Added product variant",
            product_id=product_id,
            variant_id=str(variant.id),
            name=name,
            initial_stock=initial_stock,
        )
        return product

    def receive(self, product_id, quantity: int, reference: str | None = None, variant_id=None) -> Product:
        product_id = str(product_id)
        product, _ = self._write(
            product_id,
            "receive_stock",
            lambda p: p.receive_stock(quantity, reference=reference, variant_id=variant_id),
        )

        logger.info(
            "Received stock",
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
            new_stock=product.stock_for(variant_id),
        )
        return product

    def adjust(self, product_id, quantity_change: int, reason: str, variant_id=None) -> Product:
        product_id = str(product_id)
        product, _ = self._write(
            product_id,
            "adjust_stock",
            lambda p: p.adjust_stock(quantity_change, reason, variant_id=variant_id),
        )

        logger.info(
            "Adjusted stock",
            product_id=product_id,
            variant_id=variant_id,
            quantity_change=quantity_change,
            reason=reason,
            new_stock=product.stock_for(variant_id),
        )
        return product

    # -------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------
    def product(self, product_id) -> Product:
        return self._load(str(product_id))

    def available(self, product_id, variant_id=None) -> int:
        return self._load(str(product_id)).stock_for(variant_id)

    def movements(self, product_id, variant_id=None, limit: int = 100) -> list[StockMovement]:
        """Recent stock movements for a product, newest first."""
        self._load(str(product_id))
        return movements_for(product_id, variant_id=variant_id, limit=limit)

    def low_stock_products(self) -> list[Product]:
        """Products at or below their low-stock threshold, lowest stock first."""
        products = fetch_all(Product)
        return sorted(
            (p for p in products if p.is_low_stock()),
            key=lambda p: (p.stock or 0, p.name),
        )


ledger = InventoryLedger()
