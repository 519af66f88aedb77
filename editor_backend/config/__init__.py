"""
Configuration for the editor backend.
"""

from .settings import Settings, get_settings, is_feature_enabled

__all__ = ["Settings", "get_settings", "is_feature_enabled"]
