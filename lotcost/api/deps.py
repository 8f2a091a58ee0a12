from __future__ import annotations

from fastapi import Request

from lotcost.domain.service import LotCostingService


def get_service(request: Request) -> LotCostingService:
    # One service per app so every request shares the same product locks.
    service = getattr(request.app.state, "service", None)
    if service is None:
        service = LotCostingService.from_settings()
        request.app.state.service = service
    return service
