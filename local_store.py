"""Local fallback store: a durable key/value table in a SQLite file.

Stable keys (values are JSON):
- balance:<wallet>, unclaimed:<wallet>   integers
- posts                                  list of post dicts, newest first, capped
- dailyUsed:<context>                    {"day": "YYYY-MM-DD", "used": int}
- cycleStart:<context>                   epoch milliseconds
- shadow:<context>                       guest shadow total

Absent keys read as 0 / empty. Every read-modify-write runs under one store
lock because SQLite offers no atomic increment.
"""

import json
import threading

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from config import DEFAULT_LOCAL_STORE_URL, FEED_CAP
from extensions import LocalBase
from models_ledger import LocalValue


POSTS_KEY = "posts"


def balance_key(wallet: str) -> str:
    return f"balance:{wallet}"


def unclaimed_key(wallet: str) -> str:
    return f"unclaimed:{wallet}"


class LocalStore:
    name = "local"

    def __init__(self, url: str = DEFAULT_LOCAL_STORE_URL, cap: int = FEED_CAP):
        self.url = url
        self.cap = cap
        connect_args = {"check_same_thread": False, "timeout": 30} if url.startswith("sqlite") else {}
        self._engine = create_engine(url, connect_args=connect_args)
        LocalBase.metadata.create_all(self._engine)
        self._sessions = sessionmaker(bind=self._engine, expire_on_commit=False)
        self._lock = threading.RLock()

    def dispose(self):
        self._engine.dispose()

    def ping(self) -> bool:
        with self._sessions() as session:
            session.execute(text("SELECT 1"))
        return True

    # ---- raw key/value ----

    def get_value(self, key: str, default=None):
        with self._sessions() as session:
            row = session.get(LocalValue, key)
            if row is None:
                return default
            return json.loads(row.value)

    def _put(self, session, key: str, value):
        row = session.get(LocalValue, key)
        encoded = json.dumps(value)
        if row:
            row.value = encoded
        else:
            session.add(LocalValue(key=key, value=encoded))

    def set_value(self, key: str, value):
        with self._lock, self._sessions() as session:
            self._put(session, key, value)
            session.commit()
        return value

    def incr_value(self, key: str, amount: int = 1) -> int:
        with self._lock:
            value = int(self.get_value(key, 0) or 0) + amount
            self.set_value(key, value)
            return value

    def delete_value(self, key: str):
        with self._lock, self._sessions() as session:
            row = session.get(LocalValue, key)
            if row:
                session.delete(row)
                session.commit()

    # ---- balances / unclaimed ----

    def get_balance(self, wallet: str) -> int:
        return int(self.get_value(balance_key(wallet), 0) or 0)

    def set_balance(self, wallet: str, value: int) -> int:
        return self.set_value(balance_key(wallet), int(value))

    def get_unclaimed(self, wallet: str) -> int:
        return int(self.get_value(unclaimed_key(wallet), 0) or 0)

    def set_unclaimed(self, wallet: str, value: int) -> int:
        return self.set_value(unclaimed_key(wallet), int(value))

    def settle(self, wallet: str) -> int:
        with self._lock, self._sessions() as session:
            uc = session.get(LocalValue, unclaimed_key(wallet))
            amount = int(json.loads(uc.value) or 0) if uc else 0
            if amount <= 0:
                return 0
            bal = session.get(LocalValue, balance_key(wallet))
            current = int(json.loads(bal.value) or 0) if bal else 0
            self._put(session, balance_key(wallet), current + amount)
            self._put(session, unclaimed_key(wallet), 0)
            session.commit()
            return amount

    # ---- posts ----

    def _posts(self) -> list:
        return list(self.get_value(POSTS_KEY, []) or [])

    def append_post(self, entry: dict) -> dict:
        stored = {
            "id": entry["id"],
            "wallet": entry.get("wallet"),
            "text": entry["text"],
            "reward": int(entry.get("reward") or 0),
            "created_at": entry["created_at"],
            "resonates": int(entry.get("resonates") or 0),
            "highlighted": bool(entry.get("highlighted")),
        }
        with self._lock:
            posts = self._posts()
            posts.insert(0, stored)
            self.set_value(POSTS_KEY, posts[: self.cap])
        return stored

    def list_posts(self, limit: int) -> list[dict]:
        return self._posts()[:limit]

    def _update_post(self, post_id: int, change) -> bool:
        with self._lock:
            posts = self._posts()
            for post in posts:
                if post.get("id") == post_id:
                    change(post)
                    self.set_value(POSTS_KEY, posts)
                    return True
            return False

    def increment_post(self, post_id: int, field: str = "resonates") -> bool:
        def bump(post):
            post[field] = int(post.get(field) or 0) + 1

        return self._update_post(post_id, bump)

    def set_post_highlighted(self, post_id: int) -> bool:
        return self._update_post(post_id, lambda post: post.update(highlighted=True))

    def sum_post_rewards(self, wallet: str) -> int:
        return sum(int(p.get("reward") or 0) for p in self._posts() if p.get("wallet") == wallet)
