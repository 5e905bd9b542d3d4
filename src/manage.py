"""Order lifecycle database management CLI.

Creates and drops the SQL schemas: the ordering domain's aggregate tables
(when a SQL provider is configured) and the shared stock and idempotency
tables used by the SQL adapters.

Usage:
    python src/manage.py setup-db                  # Create all tables
    python src/manage.py drop-db                   # Drop all tables
    python src/manage.py seed-stock products.json  # Load stock levels
"""

import argparse
import json
import os
import sys


def _database_url(args) -> str:
    return args.database_url or os.environ.get("DATABASE_URL", "sqlite:///orders.db")


def setup_databases(database_url: str):
    from ordering.domain import ordering
    from ordering.utils.db import setup_db

    print("Initializing ordering domain...")
    ordering.init()
    print("Creating database schema...")
    setup_db(ordering, database_url)
    print("Done.")


def drop_databases(database_url: str):
    from ordering.domain import ordering
    from ordering.utils.db import drop_db

    print("Initializing ordering domain...")
    ordering.init()
    print("Dropping database schema...")
    drop_db(ordering, database_url)
    print("Done.")


def seed_stock(database_url: str, path: str):
    """Upsert products from a JSON list of {product_id, name, price, stock}."""
    from inventory.store.port import ProductStock
    from inventory.store.sql_adapter import SQLStockStore

    store = SQLStockStore(database_url)
    with open(path) as fh:
        products = json.load(fh)
    for entry in products:
        store.upsert(ProductStock(**entry))
    print(f"Seeded {len(products)} products.")


def main():
    parser = argparse.ArgumentParser(description="Order lifecycle database management")
    parser.add_argument("--database-url", help="Overrides DATABASE_URL")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    seed_parser = subparsers.add_parser("seed-stock", help="Load product stock from a JSON file")
    seed_parser.add_argument("path")

    args = parser.parse_args()
    database_url = _database_url(args)

    if args.command == "setup-db":
        setup_databases(database_url)
    elif args.command == "drop-db":
        drop_databases(database_url)
    elif args.command == "seed-stock":
        seed_stock(database_url, args.path)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
