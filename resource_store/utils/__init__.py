"""
Utilities package for the resource store.

Exports shared logging helpers. Keep this package lightweight and free of
domain-specific logic.
"""

from resource_store.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
