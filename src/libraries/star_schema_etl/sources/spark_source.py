"""
Spark SQL source reader.
"""

from typing import List
import logging

from pyspark.sql import DataFrame, SparkSession

from ..common.config import DimensionConfig, FactConfig
from ..common.exceptions import ConfigurationError, SourceUnavailable
from ..common.records import SourceEntity, TransactionLine
from .base import SourceReader
from .mapping import entity_from_row, transaction_from_row

logger = logging.getLogger(__name__)


class SparkSourceReader(SourceReader):
    """Runs each configuration's ``source_query`` through ``spark.sql`` and maps the collected rows."""

    def __init__(self, spark: SparkSession):
        """
        Initialize SparkSourceReader.

        Args:
            spark: Spark session with the OLTP tables registered
        """
        self.spark = spark

    def read_entities(self, config: DimensionConfig) -> List[SourceEntity]:
        rows = self._collect(config.name, config.source_query)
        entities = [entity_from_row(config, row.asDict()) for row in rows]
        logger.info(f"Read {len(entities)} source entities for dimension '{config.name}'")
        return entities

    def read_transactions(self, config: FactConfig) -> List[TransactionLine]:
        rows = self._collect(config.name, config.source_query)
        lines = [transaction_from_row(config, row.asDict()) for row in rows]
        logger.info(f"Read {len(lines)} pending lines for fact '{config.name}'")
        return lines

    def _collect(self, name: str, query: str) -> list:
        if not query:
            raise ConfigurationError(f"No source_query configured for '{name}'", config_field="source_query")

        try:
            source_df: DataFrame = self.spark.sql(query)
            return source_df.collect()
        except Exception as e:
            logger.error(f"Failed to read source '{name}': {str(e)}")
            raise SourceUnavailable(f"Failed to read source '{name}': {str(e)}", name)
