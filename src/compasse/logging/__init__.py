"""Structured logging for Compasse."""

from compasse.logging.logger import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
