# /manage_functions/ports/meta_store.py
from __future__ import annotations

from typing import Protocol


class MetaStorePort(Protocol):
    def get(self, name: str) -> str | None:
        """Return the raw value stored under ``name``, or None when unset."""
