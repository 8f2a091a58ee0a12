from __future__ import annotations

import argparse
import json
import sys
from decimal import Decimal, InvalidOperation
from typing import Any

from lotcost.api.utils import (
    consumption_record_to_dict,
    consumption_to_dict,
    cost_info_to_dict,
    delivery_to_dict,
    lot_to_dict,
)
from lotcost.core.errors import LotCostingError
from lotcost.core.logging import configure_logging
from lotcost.demo import seed_default_scenario
from lotcost.domain.service import LotCostingService
from lotcost.persistence.pg import init_db


def _parse_item(raw: str) -> dict[str, Any]:
    parts = raw.split(":")
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(f"item must be PRODUCT:QTY:PRICE, got {raw!r}")
    product_id, qty, price = parts
    try:
        return {"product_id": product_id, "quantity": int(qty), "purchase_price": Decimal(price)}
    except (ValueError, InvalidOperation) as exc:
        raise argparse.ArgumentTypeError(f"bad item {raw!r}: {exc}") from exc


def _parse_money(raw: str) -> Decimal:
    try:
        return Decimal(raw)
    except InvalidOperation as exc:
        raise argparse.ArgumentTypeError(f"not a decimal amount: {raw!r}") from exc


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Lot costing CLI")
    top = parser.add_subparsers(dest="command", required=True)

    deliver = top.add_parser("deliver", help="Create lots for a delivered supplier order")
    deliver.add_argument("order_id")
    deliver.add_argument("--item", action="append", type=_parse_item, required=True, help="PRODUCT:QTY:PRICE")
    deliver.add_argument("--shipping-cost", type=_parse_money, default=Decimal("0"))

    deliver_order = top.add_parser("deliver-order", help="Create lots from a stored supplier order")
    deliver_order.add_argument("order_id")

    consume = top.add_parser("consume", help="Deplete a product FIFO")
    consume.add_argument("product_id")
    consume.add_argument("quantity", type=int)
    consume.add_argument("--purpose", default="sale")

    cost = top.add_parser("cost", help="Show cost info for a product")
    cost.add_argument("product_id")

    lots = top.add_parser("lots", help="List lots for a product")
    lots.add_argument("product_id")
    lots.add_argument("--active", action="store_true")

    history = top.add_parser("consumptions", help="List consumption audit records for a product")
    history.add_argument("product_id")
    history.add_argument("--limit", type=int, default=100)

    top.add_parser("seed", help="Seed the demo scenario")

    return parser


def _run(args: argparse.Namespace, service: LotCostingService) -> Any:
    if args.command == "deliver":
        return delivery_to_dict(service.process_delivery(args.order_id, args.item, args.shipping_cost))
    if args.command == "deliver-order":
        return delivery_to_dict(service.process_supplier_order(args.order_id))
    if args.command == "consume":
        return consumption_to_dict(service.consume(args.product_id, args.quantity, args.purpose))
    if args.command == "cost":
        return cost_info_to_dict(service.cost_info(args.product_id))
    if args.command == "lots":
        found = service.list_active_lots(args.product_id) if args.active else service.list_lots(args.product_id)
        return [lot_to_dict(lot) for lot in found]
    if args.command == "consumptions":
        return [consumption_record_to_dict(r) for r in service.list_consumptions(args.product_id, args.limit)]
    if args.command == "seed":
        return seed_default_scenario(service)
    raise ValueError(f"unsupported command: {args.command}")


def main(argv: list[str] | None = None, service: LotCostingService | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if service is None:
        configure_logging()
        init_db()
        service = LotCostingService.from_settings()

    try:
        result = _run(args, service)
    except LotCostingError as exc:
        print(json.dumps(exc.to_dict(), ensure_ascii=False, indent=2), file=sys.stderr)
        return 1
    print(json.dumps(result, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
