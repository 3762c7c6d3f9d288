# --- START OF FILE: src/alphamarket/interfaces/api/main.py ---
import logging
import time
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from alphamarket.config import settings
from alphamarket.boot import build_services
from alphamarket.domain.errors import DomainError
from alphamarket.logging_conf import setup_logging
from alphamarket.infrastructure.db.seed import seed
from alphamarket.infrastructure.db.uow import create_tables, session_scope
from alphamarket.interfaces.api.metrics import router as metrics_router, observe
from alphamarket.interfaces.api.routers import (
    auth as auth_router,
    advisors as advisors_router,
    strategies as strategies_router,
    advisor_dashboard as advisor_dashboard_router,
    investor as investor_router,
    admin as admin_router,
    ekyc as ekyc_router,
    risk_profiling as risk_profiling_router,
    payments as payments_router,
    notifications as notifications_router,
    content as content_router,
    market as market_router,
    baskets as baskets_router,
)

log = logging.getLogger(__name__)

ROUTERS = (
    auth_router,
    advisors_router,
    strategies_router,
    advisor_dashboard_router,
    investor_router,
    admin_router,
    ekyc_router,
    risk_profiling_router,
    payments_router,
    notifications_router,
    content_router,
    market_router,
    baskets_router,
)


def create_app(services: Optional[Dict[str, Any]] = None) -> FastAPI:
    """
    Build the API. Passing `services` skips `build_services()` at startup,
    which is how the tests inject fake gateways.
    """
    setup_logging()
    app = FastAPI(title="AlphaMarket API", version="1.0.0")
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        if exc.status_code >= 500:
            log.error(f"{request.method} {request.url.path} failed upstream: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    if settings.METRICS_ENABLED:
        @app.middleware("http")
        async def record_metrics(request: Request, call_next):
            started = time.perf_counter()
            response = await call_next(request)
            observe(request, response.status_code, time.perf_counter() - started)
            return response

        app.include_router(metrics_router)

    @app.on_event("startup")
    async def on_startup():
        log.info("Application startup sequence initiated...")
        if app.state.services is None:
            if settings.AUTO_CREATE_TABLES:
                create_tables()
            if settings.SEED_DEMO_DATA:
                with session_scope() as session:
                    seed(session)
            app.state.services = build_services()

        scheduler = app.state.services.get("scheduler")
        if scheduler and settings.SCHEDULER_ENABLED:
            scheduler.start()
        log.info("Application startup complete.")

    @app.on_event("shutdown")
    async def on_shutdown():
        scheduler = (app.state.services or {}).get("scheduler")
        if scheduler:
            await scheduler.stop()

    @app.get("/")
    def root(): return {"message": "AlphaMarket API Running"}

    @app.get("/health")
    def health_check(): return {"status": "ok"}

    for module in ROUTERS:
        app.include_router(module.router)
    return app


app = create_app()
# --- END OF FILE ---
