"""
Application service container.

Holds the platform client and every service built on it. One container is
created at startup and stored on ``app.state.services``; API dependencies
read it from there, and tests build their own around a fake platform.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from core.config import RuntimeConfig, Settings, get_settings
from db.platform import PlatformClient, get_platform
from services.ai_score import AIScoreService
from services.auth_service import AuthService
from services.banner_service import BannerService
from services.ip_lookup import IPLookupService
from services.local_store import LocalStore
from services.realtime_service import ChangeFeed, RealtimeSubscriptions
from services.site_settings_service import SiteSettingsService
from services.vote_aggregation import VotingService

logger = structlog.get_logger(__name__)


@dataclass
class AppServices:
    """Everything the API needs, wired together."""

    settings: Settings
    platform: PlatformClient
    store: LocalStore
    config: RuntimeConfig
    voting: VotingService
    scores: AIScoreService
    banners: BannerService
    site_settings: SiteSettingsService
    auth: AuthService
    ip_lookup: IPLookupService
    subscriptions: Optional[RealtimeSubscriptions] = None

    def apply_config(self, config: RuntimeConfig) -> None:
        """Hand a new runtime configuration to every service."""
        self.config = config
        self.voting.config = config
        self.scores.config = config
        self.banners.config = config
        self.auth.admin_emails = set(config.admin_emails)

    def reload_config(self) -> RuntimeConfig:
        """Re-read settings and the local store, then apply the result."""
        get_settings.cache_clear()
        self.settings = get_settings()
        self.store.reload()
        config = RuntimeConfig.load(self.settings, self.store)
        self.apply_config(config)
        logger.info(
            "runtime_config_reloaded",
            voting_ended=config.voting_ended,
            score_jitter=config.score_jitter_enabled,
            page_size=config.page_size,
        )
        return config

    async def sync_voting_status(self) -> bool:
        """Consult the platform for the voting flag; reload when it changed."""
        ended = await self.site_settings.is_voting_ended()
        if ended != self.config.voting_ended:
            self.reload_config()
        return ended

    def attach_feed(self, feed: ChangeFeed) -> RealtimeSubscriptions:
        """Create the realtime subscriptions for ``feed``."""
        self.subscriptions = RealtimeSubscriptions(feed, self.voting)
        return self.subscriptions


def build_services(
    app_settings: Settings,
    platform: PlatformClient | None = None,
    store: LocalStore | None = None,
) -> AppServices:
    """Wire the services for ``app_settings``."""
    platform = platform or get_platform(app_settings)
    store = store or LocalStore(app_settings.LOCAL_STORE_PATH)
    config = RuntimeConfig.load(app_settings, store)

    ip_lookup = IPLookupService(
        store,
        lookup_url=app_settings.IP_LOOKUP_URL,
        timeout=app_settings.IP_LOOKUP_TIMEOUT_SECONDS,
    )
    return AppServices(
        settings=app_settings,
        platform=platform,
        store=store,
        config=config,
        voting=VotingService(platform, config, ip_lookup=ip_lookup),
        scores=AIScoreService(platform, config),
        banners=BannerService(store, config),
        site_settings=SiteSettingsService(platform, store),
        auth=AuthService(
            platform,
            admin_emails=config.admin_emails,
            retry_attempts=app_settings.SESSION_RETRY_ATTEMPTS,
            retry_backoff_seconds=app_settings.SESSION_RETRY_BACKOFF_SECONDS,
        ),
        ip_lookup=ip_lookup,
    )
