"""Configuration package"""
from .settings import settings, Settings
from .logging_config import configure_logging

__all__ = ["settings", "Settings", "configure_logging"]
