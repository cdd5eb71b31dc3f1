#!/usr/bin/env python3
"""Walk a running API through seed -> order -> delivery -> payout check."""
from __future__ import annotations

import argparse
import json

import requests


def _call(method: str, url: str, **kwargs) -> dict:
    resp = requests.request(method, url, timeout=60, **kwargs)
    resp.raise_for_status()
    return resp.json()


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the marketplace demo order flow against a live API")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--delivery-zone", default="cairo")
    args = parser.parse_args()
    base = args.base_url.rstrip("/")

    seed = _call("POST", f"{base}/demo/seed")
    products = seed["products"]
    order = _call(
        "POST",
        f"{base}/orders",
        json={
            "customer_id": seed["customer_id"],
            "delivery_address": "12 Tahrir St, Cairo",
            "delivery_zone_id": args.delivery_zone,
            "items": [
                {"product_id": products["KSW-RING-001"], "quantity": 2},
                {"product_id": products["SWV-RUG-001"], "quantity": 1},
            ],
        },
    )

    for status in ("accepted", "ready_to_ship", "in_transit"):
        _call("POST", f"{base}/orders/{order['order_id']}/status", json={"status": status})
    first_shipment = order["shipments"][0]["shipment_id"]
    delivered = _call(
        "POST",
        f"{base}/orders/{order['order_id']}/status",
        json={"status": "delivered", "shipment_id": first_shipment},
    )

    wallets = {vendor_id: _call("GET", f"{base}/vendors/{vendor_id}/wallet") for vendor_id in seed["vendors"]}
    report = _call("GET", f"{base}/reports/finance")["report"]
    report.pop("beancount_ledger", None)

    print(
        json.dumps(
            {
                "order_number": order["order_number"],
                "total_amount": order["total_amount"],
                "shipments": [
                    {"tracking_number": row["tracking_number"], "cod_amount_due": row["cod_amount_due"]}
                    for row in order["shipments"]
                ],
                "after_delivery": delivered["shipment_statuses"],
                "wallets": wallets,
                "finance": report,
            },
            indent=2,
            ensure_ascii=False,
        )
    )


if __name__ == "__main__":
    main()
