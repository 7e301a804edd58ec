"""Ledger and feed models.

Remote tables (posts, balances, unclaimed) mirror the hosted schema the web
client writes to. The local fallback keeps everything in a single key/value
table so it can live in one SQLite file next to the process.

- balances.wallet and unclaimed.wallet are the identity key (1:1 per wallet)
- an unclaimed row is deleted once settled; absence means 0
- posts.owner is NULL for guest (shadow) posts
"""

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Index, Integer, String, Text

from extensions import Base, LocalBase


class Post(Base):
    __tablename__ = "posts"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    owner = Column(String(64), nullable=True, index=True)
    text = Column(String(240), nullable=False)
    reward = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False)
    resonates = Column(Integer, nullable=False, default=0)
    highlighted = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_posts_created_at", "created_at"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "wallet": self.owner,
            "text": self.text,
            "reward": int(self.reward or 0),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "resonates": int(self.resonates or 0),
            "highlighted": bool(self.highlighted),
        }


class Balance(Base):
    __tablename__ = "balances"

    wallet = Column(String(64), primary_key=True)
    balance = Column(Integer, nullable=False, default=0)


class Unclaimed(Base):
    __tablename__ = "unclaimed"

    wallet = Column(String(64), primary_key=True)
    amount = Column(Integer, nullable=False, default=0)


class LocalValue(LocalBase):
    """One JSON-encoded value per stable key (balance:<wallet>, posts, ...)."""

    __tablename__ = "local_kv"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
