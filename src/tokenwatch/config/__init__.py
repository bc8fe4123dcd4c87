"""Configuration module for tokenwatch.

Usage:
    from tokenwatch.config import get_settings

    settings = get_settings()  # Cached singleton
    print(settings.detection_interval_ms)
"""

from tokenwatch.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
