"""
Unified configuration entrypoint.

Prefer importing `get_settings` from `config.settings`.
"""

from .settings import ConfigurationError, Settings, get_settings, validate_settings  # noqa: F401
