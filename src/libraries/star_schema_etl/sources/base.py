"""
Source reader interface for OLTP feeds.
"""

from abc import ABC, abstractmethod
from typing import List

from ..common.config import DimensionConfig, FactConfig
from ..common.records import SourceEntity, TransactionLine


class SourceReader(ABC):
    """Reads dimension snapshots and pending transaction lines from the operational system."""

    @abstractmethod
    def read_entities(self, config: DimensionConfig) -> List[SourceEntity]:
        """
        Current-state snapshot for one dimension.

        Raises:
            SourceUnavailable: If the feed cannot be read
        """

    @abstractmethod
    def read_transactions(self, config: FactConfig) -> List[TransactionLine]:
        """
        Pending transaction lines for one fact.

        Raises:
            SourceUnavailable: If the feed cannot be read
        """
