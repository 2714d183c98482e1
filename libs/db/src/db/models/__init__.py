"""Shared SQLAlchemy models registry for the workspace database.

Currently includes the key-value table used by ``expense_analyzer``.
"""

from .ledger import Base, KvEntry

__all__ = [
    "Base",
    "KvEntry",
]
