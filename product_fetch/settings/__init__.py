"""Application settings loading."""

from .app import DEFAULT_BASE_URL, AppSettings, get_settings


__all__ = ["DEFAULT_BASE_URL", "AppSettings", "get_settings"]
