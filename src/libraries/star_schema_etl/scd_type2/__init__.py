"""
SCD Type 2 processing modules.
"""

from .scd_processor import SCDProcessor
from .change_detector import ChangeDetector, ChangePlan, ChangeType, classify
from .version_manager import DimensionVersionManager
from .hash_manager import HashManager
from .date_manager import DateManager
from .validators import SCDValidator

__all__ = [
    "SCDProcessor",
    "ChangeDetector",
    "ChangePlan",
    "ChangeType",
    "classify",
    "DimensionVersionManager",
    "HashManager",
    "DateManager",
    "SCDValidator"
]
