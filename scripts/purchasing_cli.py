#!/usr/bin/env python3
"""
Purchasing kernel command line.

Subcommands:
    init-db     Create all tables.
    seed-demo   Insert a demo organization with a supplier and products,
                then create, confirm and partially receive one order.
    stock       Print a product's ledger history and current balance.

Configuration comes from --config (YAML) and PURCHASING_* environment
variables; --database-url overrides both.

Usage:
    python3 scripts/purchasing_cli.py init-db --database-url sqlite:///purchasing.db
    python3 scripts/purchasing_cli.py seed-demo
    python3 scripts/purchasing_cli.py stock --organization <uuid> --product <uuid>
"""

import argparse
import sys
from dataclasses import replace
from decimal import Decimal
from pathlib import Path
from uuid import UUID, uuid4

_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from purchasing_kernel.config import PurchasingConfig
from purchasing_kernel.db.engine import create_tables, get_session, init_engine_from_url
from purchasing_kernel.logging_config import configure_logging
from purchasing_kernel.models.master_data import Product, Supplier
from purchasing_kernel.selectors.inventory_selector import InventorySelector
from purchasing_kernel.services.purchasing_facade import PurchasingService


def _load_config(args: argparse.Namespace) -> PurchasingConfig:
    config = PurchasingConfig.from_yaml(args.config) if args.config else PurchasingConfig()
    config = PurchasingConfig.from_env(config)
    if args.database_url:
        config = replace(config, database_url=args.database_url)
    return config


def _init(config: PurchasingConfig) -> None:
    configure_logging(level=config.log_level)
    init_engine_from_url(
        config.database_url,
        echo=config.echo_sql,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        sqlite_busy_timeout=config.sqlite_busy_timeout,
    )


def cmd_init_db(config: PurchasingConfig, args: argparse.Namespace) -> int:
    create_tables()
    print(f"Tables created at {config.database_url}")
    return 0


def cmd_seed_demo(config: PurchasingConfig, args: argparse.Namespace) -> int:
    create_tables()
    org_id = uuid4()
    user_id = uuid4()

    session = get_session()
    try:
        supplier = Supplier(organization_id=org_id, name="Northwind Traders")
        products = [
            Product(organization_id=org_id, sku="BOLT-M8", name="M8 bolt", unit_of_measure="EA"),
            Product(organization_id=org_id, sku="NUT-M8", name="M8 nut", unit_of_measure="EA"),
        ]
        session.add(supplier)
        session.add_all(products)
        session.commit()

        facade = PurchasingService(session, config=config)
        created = facade.create_order(
            org_id, user_id, supplier.id,
            [
                {"product_id": products[0].id, "quantity": "100", "unit_price": "0.25"},
                {"product_id": products[1].id, "quantity": "100", "unit_price": "0.10"},
            ],
            notes="Demo order",
        )
        if not created.is_success:
            print(f"Order creation failed: {created.message}", file=sys.stderr)
            return 1
        order = created.value
        for status in ("sent", "confirmed"):
            facade.update_status(org_id, user_id, order.id, status)

        received = facade.receive(
            org_id, user_id, order.id,
            [{"order_item_id": order.items[0].id, "received_quantity": "60"}],
        )
        if not received.is_success:
            print(f"Receiving failed: {received.message}", file=sys.stderr)
            return 1
    finally:
        session.close()

    print(f"organization: {org_id}")
    print(f"order:        {order.order_number} ({received.value.new_status})")
    for product in products:
        print(f"product:      {product.sku} {product.id}")
    return 0


def cmd_stock(config: PurchasingConfig, args: argparse.Namespace) -> int:
    session = get_session()
    try:
        selector = InventorySelector(session)
        history = selector.history(args.organization, args.product)
        report = selector.verify_chain(args.organization, args.product)
    finally:
        session.close()

    print(f"{'#':>4}  {'type':<10} {'qty':>14} {'before':>14} {'after':>14}  reference")
    for entry in history:
        print(
            f"{entry.entry_number:>4}  {entry.transaction_type:<10} "
            f"{entry.quantity.normalize():>14} {entry.previous_stock.normalize():>14} "
            f"{entry.new_stock.normalize():>14}  {entry.reference_number or ''}"
        )
    balance = report.balance if history else Decimal("0")
    print(f"balance: {balance.normalize()}  chain: {'ok' if report.is_valid else 'BROKEN'}")
    return 0 if report.is_valid else 2


COMMANDS = {
    "init-db": cmd_init_db,
    "seed-demo": cmd_seed_demo,
    "stock": cmd_stock,
}


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Purchasing kernel utilities")
    parser.add_argument("--config", type=Path, default=None, help="YAML config file")
    parser.add_argument("--database-url", default=None, help="Overrides the configured database URL")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all tables")
    sub.add_parser("seed-demo", help="Insert demo master data and one received order")
    stock = sub.add_parser("stock", help="Show a product's ledger and balance")
    stock.add_argument("--organization", type=UUID, required=True)
    stock.add_argument("--product", type=UUID, required=True)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    config = _load_config(args)
    _init(config)
    return COMMANDS[args.command](config, args)


if __name__ == "__main__":
    sys.exit(main())
