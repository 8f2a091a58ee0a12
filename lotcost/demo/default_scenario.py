from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any

from lotcost.api.utils import consumption_to_dict, cost_info_to_dict, delivery_to_dict
from lotcost.core.errors import OrderAlreadyProcessed
from lotcost.domain.service import LotCostingService

logger = logging.getLogger(__name__)

DEFAULT_SCENARIO_ID = "default_lot_costing_story_v1"
DEFAULT_SCENARIO_VERSION = "1.0.0"

# The first delivery doubles as the "already seeded" marker.
MARKER_ORDER_ID = "DEMO-O1"


def _dt(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute), tzinfo=timezone.utc)


def _story_products() -> list[str]:
    return ["demo-P1", "demo-P2", "demo-P3"]


def _existing_response(service: LotCostingService) -> dict[str, Any]:
    return {
        "scenario_id": DEFAULT_SCENARIO_ID,
        "scenario_version": DEFAULT_SCENARIO_VERSION,
        "seeded_now": False,
        "cost_info": [cost_info_to_dict(service.cost_info(product_id)) for product_id in _story_products()],
    }


def seed_default_scenario(service: LotCostingService, base_day: date | None = None) -> dict[str, Any]:
    """Seed a small, deterministic story: one mixed delivery with freight,
    two staggered lots of a third product, and FIFO consumption of both."""
    base_day = base_day or (datetime.now(timezone.utc) - timedelta(days=2)).date()

    try:
        mixed = service.process_delivery(
            MARKER_ORDER_ID,
            [
                {"product_id": "demo-P1", "quantity": 10, "purchase_price": Decimal("2.00")},
                {"product_id": "demo-P2", "quantity": 5, "purchase_price": Decimal("8.00")},
            ],
            shipping_cost=Decimal("12.00"),
            received_at=_dt(base_day, 8),
        )
    except OrderAlreadyProcessed:
        logger.info("demo scenario already seeded: scenario_id=%s", DEFAULT_SCENARIO_ID)
        return _existing_response(service)

    first = service.process_delivery(
        "DEMO-P3-D1",
        [{"product_id": "demo-P3", "quantity": 5, "purchase_price": Decimal("10.00")}],
        received_at=_dt(base_day, 9),
    )
    second = service.process_delivery(
        "DEMO-P3-D2",
        [{"product_id": "demo-P3", "quantity": 5, "purchase_price": Decimal("12.00")}],
        received_at=_dt(base_day + timedelta(days=1), 9),
    )

    sale_p1 = service.consume("demo-P1", 7, "sale")
    sale_p3 = service.consume("demo-P3", 7, "sale")

    return {
        "scenario_id": DEFAULT_SCENARIO_ID,
        "scenario_version": DEFAULT_SCENARIO_VERSION,
        "seeded_now": True,
        "deliveries": [delivery_to_dict(summary) for summary in (mixed, first, second)],
        "consumptions": [consumption_to_dict(summary) for summary in (sale_p1, sale_p3)],
        "cost_info": [cost_info_to_dict(service.cost_info(product_id)) for product_id in _story_products()],
    }
