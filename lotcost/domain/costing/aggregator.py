from __future__ import annotations

from decimal import Decimal

from lotcost.domain.lots.aggregates import ProductCostInfo, summarize_cost, weighted_average_cost
from lotcost.domain.lots.ledger import LotLedger


class CostAggregator:
    """Read-only cost views, recomputed from the ledger on every call."""

    def __init__(self, ledger: LotLedger):
        self.ledger = ledger

    def average_cost(self, product_id: str) -> Decimal:
        return weighted_average_cost(self.ledger.list_active_lots(product_id))

    def cost_info(self, product_id: str) -> ProductCostInfo:
        return summarize_cost(product_id, self.ledger.list_active_lots(product_id))
