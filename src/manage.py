"""Storefront Orders database management CLI.

Creates and drops the ordering schema, and seeds products for local runs.

Usage:
    python src/manage.py setup-db                 # Create all tables
    python src/manage.py drop-db                  # Drop all tables
    python src/manage.py low-stock                # List products at or below threshold
    python src/manage.py seed-product "Brass Diya" 450 --stock 40
"""

import argparse
import sys


def _domain():
    from ordering.domain import ordering

    ordering.init()
    return ordering


def setup_databases():
    """Create database schemas for the ordering domain."""
    from ordering.utils.db import setup_db

    domain = _domain()
    print("Creating ordering database schema...")
    touched = setup_db(domain)
    if not touched:
        print("  No SQL providers configured; nothing to create.")
    for name in touched:
        print(f"  {name} schema ready.")
    print("Done.")


def drop_databases():
    """Drop database schemas for the ordering domain."""
    from ordering.utils.db import drop_db

    domain = _domain()
    print("Dropping ordering database schema...")
    for name in drop_db(domain):
        print(f"  {name} schema dropped.")
    print("Done.")


def seed_product(name, unit_price, stock, min_stock_level, sku=None):
    from ordering.inventory.registration import RegisterProduct

    domain = _domain()
    with domain.domain_context():
        product_id = domain.process(
            RegisterProduct(
                name=name,
                unit_price=unit_price,
                initial_stock=stock,
                min_stock_level=min_stock_level,
                sku=sku,
            ),
            asynchronous=False,
        )
    print(f"Registered {name} as {product_id}")


def show_low_stock():
    from ordering.inventory.ledger import ledger

    domain = _domain()
    with domain.domain_context():
        products = ledger.low_stock_products()
        if not products:
            print("No products at or below their low-stock threshold.")
        for product in products:
            print(f"{product.id}  {product.name:<40} stock={product.stock} min={product.min_stock_level}")


def main():
    parser = argparse.ArgumentParser(description="Storefront Orders database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("low-stock", help="List products at or below their low-stock threshold")

    seed_parser = subparsers.add_parser("seed-product", help="Register a product with opening stock")
    seed_parser.add_argument("name")
    seed_parser.add_argument("unit_price", type=float)
    seed_parser.add_argument("--stock", type=int, default=0)
    seed_parser.add_argument("--min-stock-level", type=int, default=5)
    seed_parser.add_argument("--sku")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_databases()
    elif args.command == "drop-db":
        drop_databases()
    elif args.command == "seed-product":
        seed_product(args.name, args.unit_price, args.stock, args.min_stock_level, sku=args.sku)
    elif args.command == "low-stock":
        show_low_stock()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
