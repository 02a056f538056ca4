"""
Derived measure policies for fact loading.
"""

from collections import OrderedDict
from typing import Any, Dict, List, Mapping
import logging

from ..common.config import FactConfig, MeasurePolicy
from ..common.records import DimensionVersion, TransactionLine
from ..common.utils import quantize_amount, to_decimal

logger = logging.getLogger(__name__)


class SalesMeasureCalculator:
    """
    Sales line measures.

    discount_amount = quantity * unit_price * discount
    sales_amount    = quantity * unit_price * (1 - discount)
    cost_amount     = quantity * unit_price * cost_ratio
    profit_amount   = sales_amount * margin_ratio
    """

    def __init__(self, policy: MeasurePolicy):
        self.policy = policy

    def compute(self, line: TransactionLine, resolved: Mapping[str, DimensionVersion]) -> Dict[str, Any]:
        quantity = int(line.measures["quantity"])
        unit_price = to_decimal(line.measures["unit_price"])
        discount = to_decimal(line.measures.get("discount", 0))
        if discount < 0 or discount > 1:
            raise ValueError(f"discount {discount} outside [0, 1] on line {line.natural_transaction_key!r}")

        gross = unit_price * quantity
        sales_amount = gross * (1 - discount)
        precision = self.policy.amount_precision

        return {
            "quantity": quantity,
            "unit_price": quantize_amount(unit_price, precision),
            "discount_amount": quantize_amount(gross * discount, precision),
            "sales_amount": quantize_amount(sales_amount, precision),
            "cost_amount": quantize_amount(gross * self.policy.cost_ratio, precision),
            "profit_amount": quantize_amount(sales_amount * self.policy.margin_ratio, precision),
        }


class InventoryMeasureCalculator:
    """
    Daily inventory measures per product and store.

    stock_value is the on-hand quantity valued at the resolved product
    version's unit price.
    """

    def __init__(self, policy: MeasurePolicy, config: FactConfig):
        self.policy = policy
        self.config = config

    def compute(self, line: TransactionLine, resolved: Mapping[str, DimensionVersion]) -> Dict[str, Any]:
        received = int(line.measures.get("quantity_received", 0))
        sold = int(line.measures.get("quantity_sold", 0))
        on_hand = int(line.measures.get("quantity_on_hand", received - sold))

        valued_version = resolved[self.config.valuation_role]
        price = to_decimal(valued_version.attributes.get(self.config.valuation_attribute))

        return {
            "quantity_on_hand": on_hand,
            "quantity_received": received,
            "quantity_sold": sold,
            "quantity_on_order": int(line.measures.get("quantity_on_order", 0)),
            "stock_value": quantize_amount(price * on_hand, self.policy.amount_precision),
        }


def aggregate_inventory_movements(lines: List[TransactionLine], config: FactConfig) -> List[TransactionLine]:
    """
    Aggregate raw stock movements into one line per date and dimension members.

    Movements of type ``IN`` add to stock and count as received; every other
    type removes stock, and ``OUT`` counts as sold. The aggregate's natural key
    is ``(transaction_date, *business keys)`` in dimension reference order.

    Args:
        lines: Raw movements with ``transaction_type`` and ``quantity`` measures
        config: Inventory fact configuration

    Returns:
        Aggregated lines in first-seen order
    """
    roles = list(config.dimension_references)
    groups: "OrderedDict[tuple, Dict[str, int]]" = OrderedDict()
    members: Dict[tuple, Dict[str, Any]] = {}

    for line in lines:
        key = (line.transaction_date,) + tuple(line.business_keys.get(role) for role in roles)
        totals = groups.setdefault(key, {"quantity_received": 0, "quantity_sold": 0, "quantity_on_hand": 0})
        members.setdefault(key, {role: line.business_keys.get(role) for role in roles})

        movement = str(line.measures.get("transaction_type", "")).upper()
        quantity = int(line.measures["quantity"])
        if movement == "IN":
            totals["quantity_received"] += quantity
            totals["quantity_on_hand"] += quantity
        else:
            totals["quantity_on_hand"] -= quantity
            if movement == "OUT":
                totals["quantity_sold"] += quantity

    aggregated = [
        TransactionLine(
            natural_transaction_key=key,
            business_keys=members[key],
            transaction_date=key[0],
            measures=dict(totals),
        )
        for key, totals in groups.items()
    ]
    logger.info(f"Aggregated {len(lines)} inventory movements into {len(aggregated)} daily lines")
    return aggregated


def measure_calculator_for(config: FactConfig, policy: MeasurePolicy):
    """Calculator matching the fact's type."""
    if config.is_inventory:
        return InventoryMeasureCalculator(policy, config)
    return SalesMeasureCalculator(policy)
