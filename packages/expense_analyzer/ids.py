"""Identifier generation as an injected capability.

Extraction, manual adds and staging all ask an :class:`IdGenerator` for new
ids instead of calling ``uuid4`` directly, so tests can pass a deterministic
generator.
"""

from __future__ import annotations

import uuid
from typing import Protocol


class IdGenerator(Protocol):
    def next_id(self) -> str: ...


class UuidIdGenerator:
    """Random UUID4 strings (the production default)."""

    def next_id(self) -> str:
        return str(uuid.uuid4())


__all__ = ["IdGenerator", "UuidIdGenerator"]
