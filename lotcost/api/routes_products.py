from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from lotcost.api.deps import get_service
from lotcost.api.utils import (
    consumption_record_to_dict,
    consumption_to_dict,
    cost_info_to_dict,
    lot_to_dict,
    money,
)
from lotcost.domain.service import LotCostingService

router = APIRouter(tags=["products"])


class ConsumeBody(BaseModel):
    # Range checks live in the service so the error body is the same everywhere.
    quantity: int
    purpose: str = "sale"


@router.post("/products/{product_id}/consume")
def consume(product_id: str, body: ConsumeBody, service: LotCostingService = Depends(get_service)):
    summary = service.consume(product_id, body.quantity, body.purpose)
    return consumption_to_dict(summary)


@router.get("/products/{product_id}/lots")
def list_lots(
    product_id: str,
    active: bool = Query(default=False, description="only lots with remaining quantity, FIFO order"),
    service: LotCostingService = Depends(get_service),
):
    lots = service.list_active_lots(product_id) if active else service.list_lots(product_id)
    return {
        "product_id": product_id,
        "active_only": active,
        "count": len(lots),
        "lots": [lot_to_dict(lot) for lot in lots],
    }


@router.get("/products/{product_id}/average-cost")
def average_cost(product_id: str, service: LotCostingService = Depends(get_service)):
    return {"product_id": product_id, "average_cost": money(service.average_cost(product_id))}


@router.get("/products/{product_id}/cost-info")
def cost_info(product_id: str, service: LotCostingService = Depends(get_service)):
    return cost_info_to_dict(service.cost_info(product_id))


@router.get("/products/{product_id}/consumptions")
def list_consumptions(
    product_id: str,
    limit: int = Query(default=100, ge=1, le=1000),
    service: LotCostingService = Depends(get_service),
):
    records = service.list_consumptions(product_id, limit=limit)
    return {
        "product_id": product_id,
        "count": len(records),
        "consumptions": [consumption_record_to_dict(record) for record in records],
    }
