"""
jsonb_store.observability

Logging helpers for the store.
"""

from jsonb_store.observability.logging import (
    configure_logging,
    configure_logging_from_settings,
    get_logger,
)

__all__ = ["configure_logging", "configure_logging_from_settings", "get_logger"]
