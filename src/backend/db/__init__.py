"""Platform access module."""

from db.platform import PlatformClient, PlatformError, close_platform, get_platform

__all__ = ["PlatformClient", "PlatformError", "get_platform", "close_platform"]
