#!/usr/bin/env python3
"""
Seed the database with a small catalog: two branches, clients, goods with
opening stock and a service.  Optionally issues one demo invoice through the
full issuance pipeline and prints it as JSON.

Opening stock is recorded through the stock ledger, so every product's
counter matches the sum of its movements from the first row on.

Usage:
    python3 scripts/seed_data.py
    python3 scripts/seed_data.py --db-url sqlite:///dte.db --reset --demo-invoice
"""

import argparse
import json
import sys
from dataclasses import asdict, replace
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

BRANCHES = [
    ("SUC001", "Sucursal Centro", "Av. Espana 123, San Salvador"),
    ("SUC002", "Sucursal Santa Ana", "Calle Libertad 45, Santa Ana"),
]

CLIENTS = [
    ("Consumidor Final", None, None),
    ("Distribuidora El Roble S.A. de C.V.", "0614-010190-101-3", "compras@elroble.com.sv"),
    ("Ferreteria La Union", "0210-150588-102-1", None),
]

# sku, name, kind, cost, unit_price, opening stock
PRODUCTS = [
    ("CAF-001", "Cafe molido 400g", "good", "2.10", "3.50", 120),
    ("AZU-001", "Azucar blanca 1kg", "good", "0.85", "1.25", 200),
    ("LEC-001", "Leche entera 1L", "good", "0.70", "1.10", 8),
    ("ACE-001", "Aceite vegetal 750ml", "good", "1.90", "2.95", 60),
    ("SRV-ENT", "Servicio de entrega", "service", "0.00", "5.00", 0),
]


def _parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Create the schema and seed a demo catalog")
    p.add_argument(
        "--config",
        default=None,
        help="Path to a YAML config (default: DTE_CONFIG_PATH or packaged defaults)",
    )
    p.add_argument(
        "--db-url",
        default=None,
        help="Database URL; overrides the configured one",
    )
    p.add_argument(
        "--reset",
        action="store_true",
        help="Drop all tables before creating the schema",
    )
    p.add_argument(
        "--demo-invoice",
        action="store_true",
        help="Issue one invoice against the seeded catalog and print it as JSON",
    )
    return p.parse_args()


def _seed_catalog(session, actor_id):
    from dte_kernel.domain.dtos import ProductKind, StockDirection
    from dte_kernel.models.branch import Branch
    from dte_kernel.models.client import Client
    from dte_kernel.models.product import Product
    from dte_kernel.services.stock_ledger import StockLedger

    branches = [Branch(code=code, name=name, address=address) for code, name, address in BRANCHES]
    clients = [
        Client(name=name, document_number=document, email=email)
        for name, document, email in CLIENTS
    ]
    session.add_all(branches + clients)

    products = []
    for sku, name, kind, cost, price, _ in PRODUCTS:
        products.append(
            Product(
                sku=sku,
                name=name,
                kind=ProductKind(kind),
                cost=Decimal(cost),
                unit_price=Decimal(price),
                stock_quantity=0,
                movement_count=0,
                created_by_id=actor_id,
            )
        )
    session.add_all(products)
    session.flush()

    ledger = StockLedger(session, actor_id)
    for product, (_, _, _, _, _, opening) in zip(products, PRODUCTS):
        if product.tracks_stock and opening:
            ledger.record_movement(product, StockDirection.IN, opening, "Opening stock")

    return branches, clients, products


def main() -> int:
    args = _parse_args()

    from dte_config import get_active_config
    from dte_kernel.domain.dtos import DocumentType, InvoiceDraft, LineRequest
    from dte_services.runtime import InvoicingRuntime

    config = get_active_config(args.config)
    if args.db_url:
        config = replace(config, database=replace(config.database, url=args.db_url))

    actor_id = uuid4()

    with InvoicingRuntime(config) as runtime:
        database = runtime.database
        print()
        print(f"  [1/3] Connected ({database.dialect_name})")

        if args.reset:
            database.drop_tables()
        database.create_tables()
        print("  [2/3] Schema ready")

        with database.session_scope() as session:
            branches, clients, products = _seed_catalog(session, actor_id)
            branch_id = branches[0].id
            client_id = clients[1].id
            product_ids = [p.id for p in products]
        print(
            f"  [3/3] Seeded {len(BRANCHES)} branches, {len(CLIENTS)} clients, "
            f"{len(PRODUCTS)} products"
        )

        if args.demo_invoice:
            draft = InvoiceDraft(
                branch_id=branch_id,
                series="CCF",
                document_type=DocumentType.FISCAL_CREDIT,
                client_id=client_id,
                items=(
                    LineRequest(product_id=product_ids[0], quantity=10),
                    LineRequest(product_id=product_ids[1], quantity=24, discount=Decimal("2.00")),
                    LineRequest(product_id=product_ids[4], quantity=1),
                ),
                apply_vat_retention=True,
                observations="Demo invoice",
            )
            record = runtime.invoices.create(draft, issued_by_id=actor_id)
            print()
            print(json.dumps(asdict(record), indent=2, default=str, ensure_ascii=False))

    print()
    print("  Done.")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
