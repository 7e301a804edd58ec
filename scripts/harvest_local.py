#!/usr/bin/env python3
"""Harvest unclaimed rewards against the local fallback store.

The /api/harvest endpoint refuses to settle when no remote store is
configured; this is the local counterpart for demo / offline deployments.

Usage: python scripts/harvest_local.py <wallet> [<wallet> ...]
"""

import sys

from config import load_settings
from gateway import PersistenceGateway
from harvest import HarvestSettlement
from local_store import LocalStore


def main(wallets: list[str]) -> int:
    if not wallets:
        print(__doc__.strip().splitlines()[-1])
        return 2

    settings = load_settings()
    gateway = PersistenceGateway(LocalStore(settings.local_url))
    harvest = HarvestSettlement(gateway)

    results = {}
    try:
        for wallet in wallets:
            results[wallet] = {
                "awarded": harvest.settle(wallet),
                "balance": gateway.get_balance(wallet.strip()),
            }
    finally:
        gateway.close()

    print({"ok": True, "store": settings.local_url, "results": results})
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
