"""Configuration module for the PJ summary service."""

from pj_summary.config.logging import configure_logging, get_logger
from pj_summary.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "configure_logging", "get_logger"]
