"""
Configuration module for omsearch.

Example:
    >>> from omsearch.config import Settings, load_config
    >>> 
    >>> settings = load_config()
    >>> print(settings.dialect)
"""

from .settings import (
    Settings,
    load_config,
    get_default_config_path,
)

__all__ = [
    "Settings",
    "load_config",
    "get_default_config_path",
]
