# /manage_functions/adapters/system/settings_meta_store.py
from __future__ import annotations

from manage_functions.config import Settings


class SettingsMetaStore:
    """Meta values taken from process settings instead of a shared store."""

    def __init__(self, settings: Settings) -> None:
        self._values = {"max_hosts": str(settings.MAX_HOSTS)}

    def get(self, name: str) -> str | None:
        return self._values.get(name)
