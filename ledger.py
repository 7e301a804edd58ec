"""Per-wallet balance / unclaimed bookkeeping.

Every mutation is one gateway read plus one gateway write, done while holding
the wallet's lock so concurrent credits for the same wallet cannot lose an
update. Different wallets use different locks.
"""

import threading
import weakref

from errors import InsufficientFunds, InvalidInput


BALANCE = "balance"
UNCLAIMED = "unclaimed"


class WalletLocks:
    """Lazily created re-entrant lock per key.

    Entries are weak: a lock no caller still holds a reference to is dropped,
    so the registry only grows with the number of keys in use at once.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = weakref.WeakValueDictionary()

    def hold(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock


def _check_amount(amount) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        raise InvalidInput("Amount must be a non-negative integer")
    return amount


def normalize_wallet(wallet) -> str:
    wallet = (wallet or "").strip() if isinstance(wallet, str) else ""
    if not wallet:
        raise InvalidInput("Missing wallet")
    return wallet


class Ledger:
    def __init__(self, gateway, locks: WalletLocks | None = None):
        self.gateway = gateway
        self.locks = locks or WalletLocks()

    def read(self, wallet: str, field: str) -> int:
        return int(self.gateway.get_field(normalize_wallet(wallet), field) or 0)

    def credit(self, wallet: str, field: str, amount: int) -> int:
        wallet = normalize_wallet(wallet)
        amount = _check_amount(amount)
        with self.locks.hold(wallet):
            current = self.read(wallet, field)
            return self.gateway.set_field(wallet, field, current + amount)

    def debit(self, wallet: str, field: str, amount: int) -> int:
        wallet = normalize_wallet(wallet)
        amount = _check_amount(amount)
        with self.locks.hold(wallet):
            current = self.read(wallet, field)
            if current < amount:
                raise InsufficientFunds(wallet, needed=amount, available=current)
            return self.gateway.set_field(wallet, field, current - amount)

    def snapshot(self, wallet: str) -> dict:
        wallet = normalize_wallet(wallet)
        balance = self.read(wallet, BALANCE)
        unclaimed = self.read(wallet, UNCLAIMED)
        # Farmed total: everything earned from posts plus the settled balance.
        farmed = int(self.gateway.sum_post_rewards(wallet) or 0) + balance
        return {
            "wallet": wallet,
            "balance": balance,
            "unclaimed": unclaimed,
            "farmed_total": farmed,
        }
