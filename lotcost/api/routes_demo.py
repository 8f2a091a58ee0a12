from __future__ import annotations

from fastapi import APIRouter, Depends

from lotcost.api.deps import get_service
from lotcost.demo.default_scenario import seed_default_scenario
from lotcost.domain.service import LotCostingService

router = APIRouter(tags=["demo"])


@router.post("/demo/seed")
def demo_seed(service: LotCostingService = Depends(get_service)):
    return seed_default_scenario(service)
