#!/usr/bin/env python3
"""
Fetch an analytics snapshot from the command line

Builds a snapshot for the configured store (SHOPIFY_SHOP_URL /
SHOPIFY_ACCESS_TOKEN) or the one given on the command line, and prints or
saves the same JSON document the dashboard receives.

Usage:
    python scripts/fetch_snapshot.py
    python scripts/fetch_snapshot.py --shop my-store.myshopify.com --token shpat_xxx
    python scripts/fetch_snapshot.py --sessions reports --policy best_effort -o snapshot.json
"""
import argparse
import asyncio
import json
import os
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.config import get_settings
from app.connectors.errors import ShopifyError
from app.services.analytics_service import AnalyticsService
from app.utils.logger import log


async def main() -> int:
    parser = argparse.ArgumentParser(description="Build a shop analytics snapshot")
    parser.add_argument("--shop", help="Store domain (defaults to SHOPIFY_SHOP_URL)")
    parser.add_argument("--token", help="Admin API access token (defaults to SHOPIFY_ACCESS_TOKEN)")
    parser.add_argument("--sessions", choices=["synthetic", "reports"], help="Session data source")
    parser.add_argument("--policy", choices=["fail_fast", "best_effort"], help="Failure policy")
    parser.add_argument("--validate-only", action="store_true", help="Only check the credentials")
    parser.add_argument("-o", "--output", help="Write JSON here instead of stdout")
    args = parser.parse_args()

    overrides = {}
    if args.sessions:
        overrides["session_source"] = args.sessions
    if args.policy:
        overrides["failure_policy"] = args.policy
    settings = get_settings().model_copy(update=overrides)

    service = AnalyticsService(settings=settings)

    try:
        if args.validate_only:
            valid = await service.validate_credentials(args.shop, args.token)
            print("valid" if valid else "invalid")
            return 0 if valid else 1

        snapshot = await service.get_snapshot(args.shop, args.token)
    except ShopifyError as e:
        log.error(f"Snapshot failed: {e.message}")
        print(json.dumps({"success": False, "error": e.to_dict()}, indent=2), file=sys.stderr)
        return 1

    payload = json.dumps(snapshot.to_wire(), indent=2)
    if args.output:
        with open(args.output, "w") as f:
            f.write(payload)
        log.info(f"Wrote snapshot for {snapshot.store_domain} to {args.output}")
    else:
        print(payload)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
