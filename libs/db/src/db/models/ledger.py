from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Key-value: ea_kv_entries
# ---------------------------


class KvEntry(Base):
    """One persisted collection of the expense ledger, stored as a JSON document.

    ``key`` is a storage key such as ``EA_TRANSACTIONS_V1``; ``value`` holds
    the whole collection. Collections are written independently, so there is
    no cross-key transaction.
    """

    __tablename__ = "ea_kv_entries"

    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[Any] = mapped_column(JSON, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
