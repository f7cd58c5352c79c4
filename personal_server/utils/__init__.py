"""Utilities for personal-server CLI."""

from .logging import setup_logging
from .process import CancellationToken

__all__ = ["CancellationToken", "setup_logging"]
