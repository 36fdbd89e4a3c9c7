"""Persistent setup settings store.

Stores the vehicle provider selection, API credentials, the selected
vehicle and the automation rule collection in a JSON file within the
data directory. These settings are managed through the web UI rather
than environment variables; environment values only act as fallbacks.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

SECRET_KEYS = ("api_key", "tessie_api_key", "fleet_api_key", "notify_smtp_password")


class SetupStore:
    """Durable key-value store backed by a single JSON file."""

    def __init__(self, path: str, fallbacks: Optional[dict] = None):
        self.path = Path(path)
        self._fallbacks = dict(fallbacks or {})
        self._store: dict = {}
        self._load()

    def _load(self):
        """Load settings from disk."""
        if self.path.exists():
            try:
                self._store = json.loads(self.path.read_text())
                logger.info("Loaded setup settings from %s", self.path)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Failed to load setup settings: %s", e)
                self._store = {}
        else:
            self._store = {}

    def _save(self, store: dict):
        """Persist settings to disk.

        Written to a temporary file and moved into place, so a crash never
        leaves a half-written store behind.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".setup-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(store, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        logger.debug("Saved setup settings to %s", self.path)

    def _commit(self, store: dict):
        """Write the new settings, then make them current."""
        self._save(store)
        self._store = store

    # --- Getters ---

    def get(self, key: str, default=None):
        """Get a setup setting value, falling back to the environment."""
        value = self._store.get(key)
        if value in (None, ""):
            value = self._fallbacks.get(key)
        return default if value in (None, "") else value

    def contains(self, key: str) -> bool:
        """True if the key has ever been written to the store itself."""
        return key in self._store

    def get_all(self) -> dict:
        """Get all setup settings (with secrets masked)."""
        result = {k: v for k, v in self._store.items() if k != "automation_rules"}
        for key in SECRET_KEYS:
            if key in result:
                result[key] = mask_secret(result[key])
        return result

    # --- Setters ---

    def set(self, key: str, value):
        """Set a single setup setting."""
        self._commit({**self._store, key: value})

    def update(self, data: dict):
        """Update multiple setup settings at once."""
        self._commit({**self._store, **data})

    def delete(self, key: str):
        """Remove a setting (the environment fallback, if any, applies again)."""
        if key in self._store:
            self._commit({k: v for k, v in self._store.items() if k != key})

    # --- Convenience accessors ---

    def get_provider(self) -> str:
        return self.get("provider", "")

    def get_api_key(self) -> str:
        return self.get("api_key", "")

    def get_vehicle_id(self) -> str:
        return self.get("vehicle_id", "")

    def is_vehicle_configured(self) -> bool:
        """Check that a provider, an API key and a target vehicle are all set."""
        provider = self.get_provider()
        api_key = self.get_api_key() or self.get(f"{provider}_api_key", "")
        return bool(provider) and bool(api_key) and bool(self.get_vehicle_id())


def mask_secret(secret) -> str:
    """Mask a credential for API responses."""
    secret = str(secret or "")
    if not secret:
        return ""
    if len(secret) > 8:
        return f"{secret[:4]}...{secret[-4:]}"
    return "****"
