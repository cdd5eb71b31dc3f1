from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from marketplace.api.routes_demo import router as demo_router
from marketplace.api.routes_orders import router as orders_router
from marketplace.api.routes_pricing import router as pricing_router
from marketplace.api.routes_reports import router as reports_router
from marketplace.api.routes_shipping import router as shipping_router
from marketplace.api.routes_vendors import router as vendors_router
from marketplace.core.config import get_settings
from marketplace.core.errors import BusinessRuleError, InvalidInputError, MarketplaceError, NotFoundError
from marketplace.core.logging import configure_logging
from marketplace.demo import seed_demo_catalog
from marketplace.persistence.db import init_db, session_scope

configure_logging()
logger = logging.getLogger(__name__)
settings = get_settings()

app = FastAPI(title=settings.app_name)


def _status_code(exc: MarketplaceError) -> int:
    if isinstance(exc, InvalidInputError):
        return 422
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, BusinessRuleError):
        return 409
    return 400


@app.on_event("startup")
def on_startup() -> None:
    init_db()
    if settings.bootstrap_demo_on_startup:
        with session_scope() as session:
            result = seed_demo_catalog(session)
        logger.info("demo catalog ready: seeded_now=%s products=%s", result["seeded_now"], len(result["products"]))


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(_: Request, exc: MarketplaceError):
    return JSONResponse(status_code=_status_code(exc), content=exc.to_dict())


@app.exception_handler(ValidationError)
async def validation_error_handler(_: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "detail": str(exc),
            "error": "validation",
        },
    )


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


app.include_router(demo_router)
app.include_router(pricing_router)
app.include_router(shipping_router)
app.include_router(orders_router)
app.include_router(vendors_router)
app.include_router(reports_router)
