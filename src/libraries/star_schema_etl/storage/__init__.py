"""
Warehouse storage back-ends.
"""

from .base import DimensionStore, FactStore, DateDimensionStore, Warehouse
from .memory import (
    InMemoryDimensionStore,
    InMemoryFactStore,
    InMemoryDateDimensionStore,
    InMemoryWarehouse
)
from .delta import DeltaDimensionStore, DeltaFactStore, DeltaDateDimensionStore, DeltaWarehouse

__all__ = [
    "DimensionStore",
    "FactStore",
    "DateDimensionStore",
    "Warehouse",
    "InMemoryDimensionStore",
    "InMemoryFactStore",
    "InMemoryDateDimensionStore",
    "InMemoryWarehouse",
    "DeltaDimensionStore",
    "DeltaFactStore",
    "DeltaDateDimensionStore",
    "DeltaWarehouse"
]
