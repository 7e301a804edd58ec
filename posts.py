"""Post actions: create, list, resonate, sacrifice.

Create runs quota check -> reward -> unclaimed credit -> feed append -> quota
increment. Guest posts (no wallet) never touch the ledger; their reward goes
to the context's shadow counter instead.
"""

import logging
import threading
import time
from datetime import datetime, timezone

from config import BASE_RATE, FEED_CAP, MAX_CHARS, SACRIFICE_COST
from errors import InvalidInput, PostNotFound, QuotaExceeded, StoreError
from ledger import BALANCE, UNCLAIMED, WalletLocks
from quota import shadow_key
from rewards import reward


logger = logging.getLogger(__name__)


def utc_day(now: datetime | None = None) -> str:
    return (now or datetime.now(timezone.utc)).date().isoformat()


def clean_text(text) -> str:
    text = text.strip() if isinstance(text, str) else ""
    if not text:
        raise InvalidInput("Post text is required")
    if len(text) > MAX_CHARS:
        raise InvalidInput(f"Post text must be at most {MAX_CHARS} characters")
    return text


def parse_post_id(post_id) -> int:
    try:
        return int(post_id)
    except (TypeError, ValueError):
        raise InvalidInput("Invalid post id")


class PostService:
    def __init__(self, gateway, ledger, quota, locks: WalletLocks | None = None, base_rate: int = BASE_RATE):
        self.gateway = gateway
        self.ledger = ledger
        self.quota = quota
        self.locks = locks or ledger.locks
        self.base_rate = base_rate
        self._id_lock = threading.Lock()
        self._last_id = 0

    def _next_id(self) -> int:
        # Epoch milliseconds, bumped so ids stay unique and increasing within the process.
        with self._id_lock:
            self._last_id = max(int(time.time() * 1000), self._last_id + 1)
            return self._last_id

    def create_post(self, wallet, text, intent_modifier_active: bool = False, context_id: str = "local", day: str | None = None) -> dict:
        text = clean_text(text)
        wallet = wallet.strip() if isinstance(wallet, str) and wallet.strip() else None
        day = day or utc_day()

        with self.locks.hold(f"context:{context_id}"):
            if not self.quota.can_post(context_id, day):
                raise QuotaExceeded()

            amount = reward(self.base_rate, bool(intent_modifier_active))
            entry = {
                "id": self._next_id(),
                "wallet": wallet,
                "text": text,
                "reward": amount,
                "created_at": datetime.now(timezone.utc).isoformat(),
                "resonates": 0,
                "highlighted": False,
            }

            if wallet:
                self.ledger.credit(wallet, UNCLAIMED, amount)
            try:
                stored = self.gateway.append_post(entry)
            except StoreError:
                if wallet:
                    self.ledger.debit(wallet, UNCLAIMED, amount)
                raise
            if not wallet:
                self.gateway.incr_value(shadow_key(context_id), amount)

            used = self.quota.record_post(context_id, day)

        return {"post": stored, "used_today": used, "daily_limit": self.quota.limit}

    def list_posts(self, limit: int = FEED_CAP) -> list[dict]:
        return self.gateway.list_posts(limit)

    def resonate(self, post_id) -> bool:
        """+1 on the post's resonate counter. Unknown ids are a no-op."""
        return bool(self.gateway.increment_post(parse_post_id(post_id)))

    def sacrifice(self, wallet, post_id) -> dict:
        """Burn SACRIFICE_COST from the wallet's balance to highlight a post."""
        if not isinstance(wallet, str) or not wallet.strip():
            raise InvalidInput("Connect to sacrifice.")
        wallet = wallet.strip()
        post_id = parse_post_id(post_id)

        with self.locks.hold(wallet):
            balance = self.ledger.debit(wallet, BALANCE, SACRIFICE_COST)
            try:
                found = self.gateway.set_post_highlighted(post_id)
            except StoreError:
                self.ledger.credit(wallet, BALANCE, SACRIFICE_COST)
                raise
            if not found:
                self.ledger.credit(wallet, BALANCE, SACRIFICE_COST)
                raise PostNotFound()

        logger.info("Sacrifice by %s highlighted post %s", wallet, post_id)
        return {"post_id": post_id, "highlighted": True, "balance": balance, "cost": SACRIFICE_COST}
