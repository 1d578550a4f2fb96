"""Configuration module."""

from yieldbot.config.settings import EngineSettings, clear_settings_cache, get_settings

__all__ = ["EngineSettings", "clear_settings_cache", "get_settings"]
