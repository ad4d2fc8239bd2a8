"""
Core module exports.
"""

from portalguard.core.interfaces import ConfigProvider

__all__ = [
    "ConfigProvider",
]
