from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from lotcost.api.deps import get_service
from lotcost.api.utils import delivery_to_dict
from lotcost.domain.service import LotCostingService

router = APIRouter(tags=["deliveries"])


class DeliveryItemBody(BaseModel):
    product_id: str
    quantity: int
    purchase_price: Decimal
    lot_number: str | None = None
    expiry_date: date | None = None
    notes: str | None = None


class DeliveryBody(BaseModel):
    order_id: str
    items: list[DeliveryItemBody] = Field(default_factory=list)
    shipping_cost: Decimal = Decimal("0")
    received_at: datetime | None = None


class SupplierOrderDeliveryBody(BaseModel):
    received_at: datetime | None = None


@router.post("/deliveries", status_code=201)
def process_delivery(body: DeliveryBody, service: LotCostingService = Depends(get_service)):
    summary = service.process_delivery(
        order_id=body.order_id,
        line_items=[item.model_dump() for item in body.items],
        shipping_cost=body.shipping_cost,
        received_at=body.received_at,
    )
    return delivery_to_dict(summary)


@router.post("/supplier-orders/{order_id}/deliver", status_code=201)
def deliver_supplier_order(
    order_id: str,
    body: SupplierOrderDeliveryBody | None = None,
    service: LotCostingService = Depends(get_service),
):
    received_at = body.received_at if body is not None else None
    summary = service.process_supplier_order(order_id, received_at=received_at)
    return delivery_to_dict(summary)
