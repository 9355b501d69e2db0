"""Shared helper synthesis for generated fixes."""

from mender.synthesis.templates import CANONICAL_UTILITIES
from mender.synthesis.utilities import UtilitySynthesizer

__all__ = [
    "CANONICAL_UTILITIES",
    "UtilitySynthesizer",
]
