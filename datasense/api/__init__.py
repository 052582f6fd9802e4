"""API routers"""
from . import sql, chat, app_metadata

__all__ = ["sql", "chat", "app_metadata"]
