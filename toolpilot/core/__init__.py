"""
Core utilities and configuration for toolpilot.

This package provides core functionality including settings, logging
configuration and monitoring setup.
"""

from toolpilot.core.logging_config import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
