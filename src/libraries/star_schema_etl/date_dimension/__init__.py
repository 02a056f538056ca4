"""
Date dimension modules.
"""

from .generator import DateDimensionGenerator

__all__ = [
    "DateDimensionGenerator"
]
