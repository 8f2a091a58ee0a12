from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from lotcost.api.routes_deliveries import router as deliveries_router
from lotcost.api.routes_demo import router as demo_router
from lotcost.api.routes_products import router as products_router
from lotcost.core.config import get_settings
from lotcost.core.errors import HTTP_STATUS_BY_CATEGORY, InvalidDelivery, InvalidQuantity, LotCostingError
from lotcost.core.logging import configure_logging
from lotcost.demo import seed_default_scenario
from lotcost.domain.service import LotCostingService
from lotcost.persistence import pg

configure_logging()
logger = logging.getLogger(__name__)
settings = get_settings()

app = FastAPI(title=settings.app_name)


@app.on_event("startup")
def on_startup() -> None:
    pg.init_db(pg.engine)
    app.state.service = LotCostingService(session_factory=pg.SessionLocal, settings=settings)
    if settings.bootstrap_demo_on_startup:
        result = seed_default_scenario(app.state.service)
        logger.info(
            "default demo scenario ready: scenario_id=%s seeded_now=%s",
            result.get("scenario_id"),
            result.get("seeded_now"),
        )


@app.exception_handler(LotCostingError)
async def lot_costing_error_handler(_: Request, exc: LotCostingError):
    status_code = HTTP_STATUS_BY_CATEGORY.get(exc.category, 500)
    if status_code >= 500:
        logger.error("request failed: kind=%s detail=%s", exc.kind, exc)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    error_cls = InvalidDelivery if "/deliver" in request.url.path else InvalidQuantity
    error = error_cls(f"invalid request: {problems}")
    return JSONResponse(status_code=HTTP_STATUS_BY_CATEGORY[error.category], content=error.to_dict())


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


app.include_router(deliveries_router)
app.include_router(products_router)
app.include_router(demo_router)
