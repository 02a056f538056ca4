"""
Unit tests for HashManager.
"""

import pytest
from datetime import date
from decimal import Decimal

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from libraries.star_schema_etl.scd_type2.hash_manager import HashManager
from libraries.star_schema_etl.common.config import DimensionConfig


class TestHashManager:
    """Test cases for HashManager."""

    @pytest.fixture
    def dimension_config(self):
        """Create dimension configuration for testing."""
        return DimensionConfig(
            name="customer",
            business_key_column="customer_id",
            tracked_columns=["first_name", "last_name", "email"]
        )

    @pytest.fixture
    def hash_manager(self, dimension_config):
        """Create HashManager instance."""
        return HashManager(dimension_config)

    def test_init(self, dimension_config):
        """Test HashManager initialization."""
        hash_manager = HashManager(dimension_config)

        assert hash_manager.config == dimension_config
        assert hash_manager.hash_algorithm == "sha256"

    def test_hash_is_deterministic(self, hash_manager):
        """Test equal attributes produce equal hashes."""
        attributes = {"first_name": "John", "last_name": "Doe", "email": "john@example.com"}

        assert hash_manager.compute_scd_hash(attributes) == hash_manager.compute_scd_hash(dict(attributes))
        assert len(hash_manager.compute_scd_hash(attributes)) == 64

    def test_hash_changes_with_tracked_value(self, hash_manager):
        """Test a changed tracked value changes the hash."""
        before = hash_manager.compute_scd_hash({"first_name": "John", "last_name": "Doe", "email": None})
        after = hash_manager.compute_scd_hash({"first_name": "Johnny", "last_name": "Doe", "email": None})

        assert before != after

    def test_hash_ignores_untracked_columns(self, hash_manager):
        """Test columns outside tracked_columns do not affect the hash."""
        base = {"first_name": "John", "last_name": "Doe", "email": "john@example.com"}
        with_phone = dict(base, phone="555-0100")

        assert hash_manager.compute_scd_hash(base) == hash_manager.compute_scd_hash(with_phone)

    def test_separator_in_value_does_not_collide(self, hash_manager):
        """Test values containing separators do not produce colliding hashes."""
        first = hash_manager.compute_scd_hash({"first_name": "a|b", "last_name": "c", "email": None})
        second = hash_manager.compute_scd_hash({"first_name": "a", "last_name": "b|c", "email": None})

        assert first != second

    def test_null_differs_from_empty_string(self, hash_manager):
        """Test None and empty string hash differently."""
        assert (hash_manager.compute_scd_hash({"first_name": None, "last_name": "Doe", "email": None})
                != hash_manager.compute_scd_hash({"first_name": "", "last_name": "Doe", "email": None}))

    def test_non_string_values(self, hash_manager):
        """Test dates and decimals are hashable."""
        digest = hash_manager.compute_scd_hash({"first_name": date(2024, 1, 1), "last_name": Decimal("1.50"),
                                                "email": 3})

        assert isinstance(digest, str)

    def test_md5_algorithm(self):
        """Test md5 hashing."""
        config = DimensionConfig(name="customer", business_key_column="customer_id",
                                 tracked_columns=["email"], hash_algorithm="md5")

        assert len(HashManager(config).compute_scd_hash({"email": "x"})) == 32

    def test_compare_hashes(self, hash_manager):
        """Test hash comparison."""
        assert hash_manager.compare_hashes("abc", "abc") is True
        assert hash_manager.compare_hashes("abc", "abd") is False

    def test_get_hash_columns(self, hash_manager):
        """Test getting hash columns."""
        assert hash_manager.get_hash_columns() == ["first_name", "last_name", "email"]
