"""Harvest: settle a wallet's unclaimed rewards into its balance.

The move happens under the same per-wallet lock the Ledger uses, and the
backend applies the balance write and the unclaimed reset in one transaction,
so a retried or concurrent harvest can award the amount only once. The second
of two back-to-back harvests sees unclaimed == 0 and awards nothing.

On-chain payout is not done here; a batching job reads the settled balances.
"""

import logging
import threading

from errors import InternalError, LedgerError
from ledger import WalletLocks, normalize_wallet


logger = logging.getLogger(__name__)

IDLE = "idle"
SETTLING = "settling"


class HarvestSettlement:
    def __init__(self, gateway, locks: WalletLocks | None = None):
        self.gateway = gateway
        self.locks = locks or WalletLocks()
        self._settling = set()
        self._state_lock = threading.Lock()

    def state(self, wallet: str) -> str:
        with self._state_lock:
            return SETTLING if wallet in self._settling else IDLE

    def settle(self, wallet: str) -> int:
        """Return the amount moved from unclaimed to balance (0 when nothing was owed)."""
        wallet = normalize_wallet(wallet)
        with self.locks.hold(wallet):
            with self._state_lock:
                self._settling.add(wallet)
            try:
                awarded = int(self.gateway.settle(wallet) or 0)
            except LedgerError:
                raise
            except Exception as e:
                logger.exception("Harvest failed for %s", wallet)
                raise InternalError("Harvest failed") from e
            finally:
                with self._state_lock:
                    self._settling.discard(wallet)

        if awarded:
            logger.info("Harvested %s for %s", awarded, wallet)
        return awarded
