# src/stem_rag/core/__init__.py
"""Core module containing configuration and service construction."""

from .config import settings, get_settings, Settings
from .dependencies import create_services, ServiceContainer

__all__ = ["settings", "get_settings", "Settings", "create_services", "ServiceContainer"]
