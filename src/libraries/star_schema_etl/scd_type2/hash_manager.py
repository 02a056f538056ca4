"""
Hash management utilities for SCD processing.
"""

from typing import Any, Dict, List
import hashlib
import json
import logging

from ..common.config import DimensionConfig

logger = logging.getLogger(__name__)


class HashManager:
    """Computes fingerprints of tracked attributes, stored on each version for auditing."""

    def __init__(self, config: DimensionConfig):
        """
        Initialize HashManager with configuration.

        Args:
            config: Dimension configuration
        """
        self.config = config
        self.hash_algorithm = config.hash_algorithm.lower()

        # Validate hash algorithm
        if self.hash_algorithm not in ["sha256", "md5"]:
            raise ValueError(f"Unsupported hash algorithm: {self.hash_algorithm}")

    def compute_scd_hash(self, attributes: Dict[str, Any]) -> str:
        """
        Compute SCD hash over the tracked columns.

        Values are encoded as a JSON array in tracked-column order, so a
        separator inside a value cannot make two different rows collide.

        Args:
            attributes: Attribute values keyed by column name

        Returns:
            Hex digest
        """
        values = [attributes.get(column) for column in self.get_hash_columns()]
        payload = json.dumps(values, default=str, separators=(",", ":"))

        if self.hash_algorithm == "sha256":
            return hashlib.sha256(payload.encode("utf-8")).hexdigest()
        return hashlib.md5(payload.encode("utf-8")).hexdigest()

    def compare_hashes(self, hash1: str, hash2: str) -> bool:
        """
        Compare two hash values.

        Args:
            hash1: First hash value
            hash2: Second hash value

        Returns:
            True if hashes are equal, False otherwise
        """
        return hash1 == hash2

    def get_hash_columns(self) -> List[str]:
        """
        Get list of columns used for hash computation.

        Returns:
            List of unique column names
        """
        return list(dict.fromkeys(self.config.tracked_columns))  # Preserves order, removes duplicates
