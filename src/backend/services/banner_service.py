"""
Banner URL management.

Banner images are referenced by external URL and kept in the local store.
Default URLs are only used when default banners are enabled in the runtime
configuration.
"""

from typing import Literal

import structlog

from core.config import RuntimeConfig
from services.local_store import LocalStore

logger = structlog.get_logger(__name__)

BannerKey = Literal["login1", "login2", "register"]

DEFAULT_BANNERS: dict[str, str] = {
    "login1": "",  # Left login banner
    "login2": "",  # Right login banner
    "register": "",  # Register page banner
}

STORAGE_KEYS: dict[str, str] = {
    "login1": "login_banner1",
    "login2": "login_banner2",
    "register": "register_banner",
}


class BannerService:
    """Read and write banner URLs."""

    def __init__(self, store: LocalStore, config: RuntimeConfig, defaults: dict[str, str] | None = None):
        self.store = store
        self.config = config
        self.defaults = defaults if defaults is not None else DEFAULT_BANNERS

    def _storage_key(self, banner_key: str) -> str:
        try:
            return STORAGE_KEYS[banner_key]
        except KeyError:
            raise ValueError(f"Unknown banner: {banner_key}") from None

    def get_banner_url(self, banner_key: str) -> str:
        """Stored URL, else the default (when enabled), else empty."""
        stored = self.store.get(self._storage_key(banner_key))
        if stored:
            return stored
        if self.config.use_default_banners:
            return self.defaults.get(banner_key, "")
        return ""

    def set_banner_url(self, banner_key: str, url: str) -> None:
        self.store.set(self._storage_key(banner_key), url)
        logger.info("banner_updated", banner=banner_key)

    def clear_banner_url(self, banner_key: str) -> None:
        self.store.remove(self._storage_key(banner_key))
        logger.info("banner_cleared", banner=banner_key)

    def clear_all_banners(self) -> None:
        self.store.remove_many(list(STORAGE_KEYS.values()))
        logger.info("banners_cleared")

    def get_all_banners(self) -> dict[str, str]:
        return {key: self.get_banner_url(key) for key in STORAGE_KEYS}
