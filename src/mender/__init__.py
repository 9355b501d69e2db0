"""Mender package root."""

from mender.exceptions import MenderError

__all__ = ["__version__", "MenderError"]

__version__ = "0.1.0"
