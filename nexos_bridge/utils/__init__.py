"""Utility functions and helpers"""

from .logger import setup_logging, logger, BridgeLogger, truncate_for_logging

__all__ = ["setup_logging", "logger", "BridgeLogger", "truncate_for_logging"]
