"""Remote (hosted) record store.

Tables: posts, balances, unclaimed (see models_ledger.py).

The engine is created lazily on the first call, so a missing driver or a bad
URL shows up as a failure of that call and the gateway can fall back.
Single-row lookups that find nothing return 0 / None, never raise.
"""

import threading
import time
from datetime import datetime

from sqlalchemy import create_engine, func, select, text, update
from sqlalchemy.orm import sessionmaker

from errors import BackendUnavailable
from extensions import Base
from models_ledger import Balance, Post, Unclaimed


class Deadline:
    """Commit guard shared by the gateway and one remote write.

    The write commits only if the gateway has not given up on it; once the
    gateway abandons the call the transaction is rolled back instead.
    """

    def __init__(self, seconds: float):
        self.expires_at = time.monotonic() + seconds
        self.abandoned = False
        self.committed = False
        self._lock = threading.Lock()

    def abandon(self) -> bool:
        """Give up on the call. Returns False when it already committed."""
        with self._lock:
            if self.committed:
                return False
            self.abandoned = True
            return True

    def commit(self, session):
        with self._lock:
            if self.abandoned or time.monotonic() > self.expires_at:
                session.rollback()
                raise BackendUnavailable("Remote write passed its deadline; rolled back")
            session.commit()
            self.committed = True


def _commit(session, deadline):
    if deadline is None:
        session.commit()
    else:
        deadline.commit(session)


class RemoteStore:
    name = "remote"

    def __init__(self, url: str, timeout: float = 5.0):
        self.url = url
        self.timeout = timeout
        self._engine = None
        self._sessions = None
        self._init_lock = threading.Lock()

    def _engine_options(self) -> dict:
        opts = {
            "pool_recycle": 300,
            "pool_pre_ping": True,
        }
        if self.url.startswith("postgresql"):
            # Bound server-side work so a call the gateway gave up on cannot commit much later.
            opts["connect_args"] = {
                "connect_timeout": max(1, int(self.timeout)),
                "options": f"-c statement_timeout={int(self.timeout * 1000)}",
            }
        elif self.url.startswith("sqlite"):
            opts["connect_args"] = {"check_same_thread": False, "timeout": 30}
        return opts

    def _session(self):
        if self._sessions is None:
            with self._init_lock:
                if self._sessions is None:
                    engine = create_engine(self.url, **self._engine_options())
                    Base.metadata.create_all(engine)
                    self._engine = engine
                    self._sessions = sessionmaker(bind=engine, expire_on_commit=False)
        return self._sessions()

    def dispose(self):
        if self._engine is not None:
            self._engine.dispose()

    def ping(self) -> bool:
        with self._session() as session:
            session.execute(text("SELECT 1"))
        return True

    # ---- balances / unclaimed ----

    def get_balance(self, wallet: str) -> int:
        with self._session() as session:
            row = session.get(Balance, wallet)
            return int(row.balance or 0) if row else 0

    def set_balance(self, wallet: str, value: int, deadline: Deadline | None = None) -> int:
        with self._session() as session:
            row = session.get(Balance, wallet)
            if row:
                row.balance = value
            else:
                session.add(Balance(wallet=wallet, balance=value))
            _commit(session, deadline)
        return value

    def get_unclaimed(self, wallet: str) -> int:
        with self._session() as session:
            row = session.get(Unclaimed, wallet)
            return int(row.amount or 0) if row else 0

    def set_unclaimed(self, wallet: str, value: int, deadline: Deadline | None = None) -> int:
        with self._session() as session:
            row = session.get(Unclaimed, wallet)
            if value == 0:
                if row:
                    session.delete(row)
            elif row:
                row.amount = value
            else:
                session.add(Unclaimed(wallet=wallet, amount=value))
            _commit(session, deadline)
        return value

    def settle(self, wallet: str, deadline: Deadline | None = None) -> int:
        """Move unclaimed into balance in one transaction. Returns the amount moved."""
        with self._session() as session:
            uc = session.execute(
                select(Unclaimed).where(Unclaimed.wallet == wallet).with_for_update()
            ).scalar_one_or_none()
            amount = int(uc.amount or 0) if uc else 0
            if amount <= 0:
                session.rollback()
                return 0

            bal = session.execute(
                select(Balance).where(Balance.wallet == wallet).with_for_update()
            ).scalar_one_or_none()
            if bal:
                bal.balance = int(bal.balance or 0) + amount
            else:
                session.add(Balance(wallet=wallet, balance=amount))
            session.delete(uc)
            _commit(session, deadline)
            return amount

    # ---- posts ----

    def append_post(self, entry: dict, deadline: Deadline | None = None) -> dict:
        post = Post(
            id=entry["id"],
            owner=entry.get("wallet"),
            text=entry["text"],
            reward=int(entry.get("reward") or 0),
            created_at=datetime.fromisoformat(entry["created_at"]),
            resonates=int(entry.get("resonates") or 0),
            highlighted=bool(entry.get("highlighted")),
        )
        with self._session() as session:
            session.add(post)
            _commit(session, deadline)
            return post.to_dict()

    def list_posts(self, limit: int) -> list[dict]:
        with self._session() as session:
            rows = session.execute(
                select(Post).order_by(Post.created_at.desc(), Post.id.desc()).limit(limit)
            ).scalars().all()
            return [p.to_dict() for p in rows]

    def increment_post(self, post_id: int, field: str = "resonates", deadline: Deadline | None = None) -> bool:
        column = getattr(Post, field)
        with self._session() as session:
            result = session.execute(
                update(Post).where(Post.id == post_id).values({field: column + 1})
            )
            _commit(session, deadline)
            return result.rowcount > 0

    def set_post_highlighted(self, post_id: int, deadline: Deadline | None = None) -> bool:
        with self._session() as session:
            result = session.execute(
                update(Post).where(Post.id == post_id).values(highlighted=True)
            )
            _commit(session, deadline)
            return result.rowcount > 0

    def sum_post_rewards(self, wallet: str) -> int:
        with self._session() as session:
            total = session.execute(
                select(func.coalesce(func.sum(Post.reward), 0)).where(Post.owner == wallet)
            ).scalar()
            return int(total or 0)
