from __future__ import annotations

import argparse
import json
from decimal import Decimal

from marketplace.core.config import get_settings
from marketplace.core.logging import configure_logging
from marketplace.demo import seed_demo_catalog
from marketplace.persistence.db import init_db, session_scope
from marketplace.pricing.calculator import ParentUplift, PricingInput, calculate_price, round_to_friendly_price
from marketplace.shipping.fees import calculate_shipping_fee


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Marketplace financial core CLI")
    top = parser.add_subparsers(dest="command", required=True)

    top.add_parser("init-db", help="Create all tables")
    top.add_parser("seed", help="Create tables and load the demo catalog")

    price = top.add_parser("price", help="Compute the customer price for a vendor base price")
    price.add_argument("base_price", type=Decimal)
    price.add_argument("--category", required=True)
    price.add_argument("--vat-registered", action="store_true")
    price.add_argument("--not-legalized", action="store_true")
    price.add_argument("--parent-uplift-type", choices=["fixed", "percentage"], default=None)
    price.add_argument("--parent-uplift-value", type=Decimal, default=None)
    price.add_argument("--uplift-override", type=Decimal, default=None)

    fee = top.add_parser("shipping-fee", help="Compute a shipment delivery fee")
    fee.add_argument("--weight", type=Decimal, required=True, help="actual weight in kg")
    fee.add_argument("--length", type=Decimal, required=True, help="cm")
    fee.add_argument("--width", type=Decimal, required=True, help="cm")
    fee.add_argument("--height", type=Decimal, required=True, help="cm")
    fee.add_argument("--from-zone", required=True)
    fee.add_argument("--to-zone", required=True)
    fee.add_argument("--base-rate", type=Decimal, required=True)
    fee.add_argument("--per-kg-rate", type=Decimal, required=True)

    serve = top.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--reload", action="store_true")

    return parser


def _dump(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _run_price(args: argparse.Namespace) -> int:
    parent_uplift = None
    if args.parent_uplift_type:
        if args.parent_uplift_value is None:
            raise SystemExit("--parent-uplift-value is required with --parent-uplift-type")
        parent_uplift = ParentUplift(type=args.parent_uplift_type, value=args.parent_uplift_value)

    result = calculate_price(
        PricingInput(
            vendor_base_price=args.base_price,
            category_id=args.category,
            is_vendor_vat_registered=args.vat_registered,
            is_vendor_legalized=not args.not_legalized,
            parent_uplift=parent_uplift,
            custom_uplift_override=args.uplift_override,
        )
    )
    payload = result.model_dump(mode="json")
    payload["vendor_payout"] = str(result.vendor_payout)
    payload["friendly_price"] = str(round_to_friendly_price(result.final_price))
    _dump(payload)
    return 0


def _run_shipping_fee(args: argparse.Namespace) -> int:
    result = calculate_shipping_fee(
        actual_weight_kg=args.weight,
        length_cm=args.length,
        width_cm=args.width,
        height_cm=args.height,
        from_zone=args.from_zone,
        to_zone=args.to_zone,
        base_rate=args.base_rate,
        per_kg_rate=args.per_kg_rate,
        subsidy=get_settings().shipping_subsidy,
    )
    _dump(result.model_dump(mode="json"))
    return 0


def _run_seed() -> int:
    init_db()
    with session_scope() as session:
        result = seed_demo_catalog(session)
    _dump(result)
    return 0


def _run_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "marketplace.main:app",
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        reload=args.reload,
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "init-db":
        init_db()
        print("database initialised")
        return 0
    if args.command == "seed":
        return _run_seed()
    if args.command == "price":
        return _run_price(args)
    if args.command == "shipping-fee":
        return _run_shipping_fee(args)
    if args.command == "serve":
        return _run_serve(args)

    parser.error("unsupported command")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
