"""Process-wide managers (logging)."""

from heimdall.managers.logging_manager import get_logger

__all__ = ["get_logger"]
