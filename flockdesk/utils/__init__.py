"""Flockdesk utilities."""

from .config_loader import ConsoleSettings, load_settings, DEFAULT_CONFIG_PATH

__all__ = ["ConsoleSettings", "load_settings", "DEFAULT_CONFIG_PATH"]
