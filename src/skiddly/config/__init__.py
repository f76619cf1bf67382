"""Configurações centralizadas do skiddly.

Uso típico:
    from skiddly.config import get_settings
"""

from skiddly.config.settings import VAPI_BASE_URL, Settings, get_settings

__all__ = ["Settings", "get_settings", "VAPI_BASE_URL"]
