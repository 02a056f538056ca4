"""
Operational source readers.
"""

from .base import SourceReader
from .mapping import entity_from_row, transaction_from_row
from .memory import InMemorySourceReader
from .spark_source import SparkSourceReader

__all__ = [
    "SourceReader",
    "entity_from_row",
    "transaction_from_row",
    "InMemorySourceReader",
    "SparkSourceReader"
]
