"""
In-memory source reader over plain row dictionaries.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional
import logging

from ..common.config import DimensionConfig, FactConfig
from ..common.exceptions import SourceUnavailable
from ..common.records import SourceEntity, TransactionLine
from .base import SourceReader
from .mapping import entity_from_row, transaction_from_row

logger = logging.getLogger(__name__)


class InMemorySourceReader(SourceReader):
    """
    Serves source rows held in memory, keyed by dimension or fact name.

    Names listed in ``unavailable`` raise SourceUnavailable when read.
    """

    def __init__(self, entity_rows: Optional[Dict[str, List[Mapping[str, Any]]]] = None,
                 transaction_rows: Optional[Dict[str, List[Mapping[str, Any]]]] = None,
                 unavailable: Optional[Iterable[str]] = None):
        self.entity_rows = dict(entity_rows or {})
        self.transaction_rows = dict(transaction_rows or {})
        self.unavailable = set(unavailable or [])

    def read_entities(self, config: DimensionConfig) -> List[SourceEntity]:
        self._check_available(config.name)
        entities = [entity_from_row(config, row) for row in self.entity_rows.get(config.name, [])]
        logger.info(f"Read {len(entities)} source entities for dimension '{config.name}'")
        return entities

    def read_transactions(self, config: FactConfig) -> List[TransactionLine]:
        self._check_available(config.name)
        lines = [transaction_from_row(config, row) for row in self.transaction_rows.get(config.name, [])]
        logger.info(f"Read {len(lines)} pending lines for fact '{config.name}'")
        return lines

    def _check_available(self, name: str) -> None:
        if name in self.unavailable:
            logger.error(f"Source feed '{name}' is unavailable")
            raise SourceUnavailable(f"Source feed '{name}' is unavailable", name)
