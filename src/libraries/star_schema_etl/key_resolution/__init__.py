"""
Dimensional key resolution modules.
"""

from .key_resolver import DimensionalKeyResolver
from .lookup_manager import LookupManager
from .cache_manager import CacheManager

__all__ = [
    "DimensionalKeyResolver",
    "LookupManager",
    "CacheManager"
]
