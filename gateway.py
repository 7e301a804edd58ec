"""Persistence gateway: remote store first, local fallback on any failure.

Callers only see this class. Each call is tried against the remote store when
one is configured, bounded by a timeout; any error or timeout is logged and
the same operation is redone from scratch against the local store. Results
from the two backends are never merged.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout

from config import FEED_CAP, Settings
from errors import BackendUnavailable, InvalidInput, StoreError
from local_store import LocalStore
from remote_store import Deadline, RemoteStore


logger = logging.getLogger(__name__)

LEDGER_FIELDS = ("balance", "unclaimed")

REMOTE_WRITES = frozenset(
    ["set_balance", "set_unclaimed", "settle", "append_post", "increment_post", "set_post_highlighted"]
)


class PersistenceGateway:
    def __init__(self, local, remote=None, timeout: float = 5.0, max_workers: int = 8, on_fallback=None):
        self.local = local
        self.remote = remote
        self.timeout = timeout
        self.on_fallback = on_fallback
        self.fallback_count = 0
        self._count_lock = threading.Lock()
        self._pool = None
        if remote is not None:
            self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="remote-store")

    @property
    def remote_configured(self) -> bool:
        return self.remote is not None

    def close(self, wait: bool = False):
        if self._pool is not None:
            self._pool.shutdown(wait=wait, cancel_futures=True)
        for store in (self.remote, self.local):
            if store is not None:
                store.dispose()

    # ---- dispatch ----

    def _remote_call(self, op: str, *args):
        deadline = Deadline(self.timeout)
        kwargs = {"deadline": deadline} if op in REMOTE_WRITES else {}
        future = self._pool.submit(getattr(self.remote, op), *args, **kwargs)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout:
            if not deadline.abandon():
                # Committed just as we gave up: the remote effect stands, so no fallback.
                return future.result()
            future.cancel()
            raise BackendUnavailable(f"{op} timed out after {self.timeout}s")
        except Exception as e:
            raise BackendUnavailable(f"{op} failed: {e}") from e

    def _local_call(self, op: str, *args):
        try:
            return getattr(self.local, op)(*args)
        except Exception as e:
            logger.error("Local store %s failed: %s", op, e)
            raise StoreError(f"{op} failed on every backend") from e

    def _signal_fallback(self, op: str, error: Exception):
        with self._count_lock:
            self.fallback_count += 1
        logger.warning("Remote store %s failed, using local fallback: %s", op, error)
        if self.on_fallback is not None:
            self.on_fallback(op, error)

    def _call(self, op: str, *args):
        if self.remote is not None:
            try:
                return self._remote_call(op, *args)
            except BackendUnavailable as e:
                self._signal_fallback(op, e)
        return self._local_call(op, *args)

    # ---- ledger rows ----

    def get_balance(self, wallet: str) -> int:
        return self._call("get_balance", wallet)

    def set_balance(self, wallet: str, value: int) -> int:
        return self._call("set_balance", wallet, value)

    def get_unclaimed(self, wallet: str) -> int:
        return self._call("get_unclaimed", wallet)

    def set_unclaimed(self, wallet: str, value: int) -> int:
        return self._call("set_unclaimed", wallet, value)

    def get_field(self, wallet: str, field: str) -> int:
        _check_field(field)
        return self._call(f"get_{field}", wallet)

    def set_field(self, wallet: str, field: str, value: int) -> int:
        _check_field(field)
        return self._call(f"set_{field}", wallet, value)

    def settle(self, wallet: str) -> int:
        """Single-backend transactional unclaimed -> balance move."""
        return self._call("settle", wallet)

    # ---- posts ----

    def append_post(self, entry: dict) -> dict:
        return self._call("append_post", entry)

    def list_posts(self, limit: int = FEED_CAP) -> list[dict]:
        limit = max(1, min(int(limit), FEED_CAP))
        return self._call("list_posts", limit)

    def increment_post(self, post_id: int) -> bool:
        return self._call("increment_post", post_id, "resonates")

    def set_post_highlighted(self, post_id: int) -> bool:
        return self._call("set_post_highlighted", post_id)

    def sum_post_rewards(self, wallet: str) -> int:
        return self._call("sum_post_rewards", wallet)

    # ---- per-session values (always local) ----

    def get_value(self, key: str, default=None):
        return self._local_call("get_value", key, default)

    def set_value(self, key: str, value):
        return self._local_call("set_value", key, value)

    def incr_value(self, key: str, amount: int = 1) -> int:
        return self._local_call("incr_value", key, amount)

    def status(self) -> dict:
        remote_ok = None
        if self.remote is not None:
            try:
                remote_ok = bool(self._remote_call("ping"))
            except BackendUnavailable as e:
                logger.warning("Remote store ping failed: %s", e)
                remote_ok = False
        return {
            "remote_configured": self.remote_configured,
            "remote_reachable": remote_ok,
            "fallback_count": self.fallback_count,
        }


def _check_field(field: str):
    if field not in LEDGER_FIELDS:
        raise InvalidInput(f"Unknown ledger field: {field}")


def build_gateway(settings: Settings) -> PersistenceGateway:
    local = LocalStore(settings.local_url)
    remote = RemoteStore(settings.remote_url, timeout=settings.remote_timeout) if settings.remote_configured else None
    return PersistenceGateway(local, remote=remote, timeout=settings.remote_timeout)
