"""
Fact loading modules.
"""

from .fact_loader import FactLoader, FactLoadResult
from .measures import (
    SalesMeasureCalculator,
    InventoryMeasureCalculator,
    aggregate_inventory_movements,
    measure_calculator_for
)

__all__ = [
    "FactLoader",
    "FactLoadResult",
    "SalesMeasureCalculator",
    "InventoryMeasureCalculator",
    "aggregate_inventory_movements",
    "measure_calculator_for"
]
