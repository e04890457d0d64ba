"""Ordering FastAPI application.

Serves the order lifecycle over HTTP. The service graph is built once per
application by ``ordering.bootstrap`` and shared by all requests through
``app.state``. ``ORDERING_*`` environment variables select the store and the
event sink.

Usage:
    uvicorn ordering.app:app --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ordering.api.routes import router as order_router
from ordering.api.routes import stats_router
from ordering.bootstrap import build_order_service
from ordering.config import Settings
from ordering.order.service import OrderLifecycleService
from ordering.utils.logging import add_context, clear_context, configure_logging


def create_app(service: OrderLifecycleService | None = None, settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        # Drain events still queued on the background publisher
        app.state.order_service.publisher.close()

    app = FastAPI(
        title="Ordering API",
        description="Order lifecycle and event publication",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.settings = settings
    app.state.order_service = service or build_order_service(settings)

    app.include_router(order_router)
    app.include_router(stats_router)

    @app.middleware("http")
    async def bind_request_context(request: Request, call_next):
        # Every log line written while serving the request carries its route
        clear_context()
        add_context(method=request.method, path=request.url.path)
        try:
            return await call_next(request)
        finally:
            clear_context()

    @app.get("/health")
    async def health():
        return JSONResponse(
            content={
                "status": "ok",
                "env": settings.env,
                "store": type(app.state.order_service.store).__name__,
            }
        )

    return app


app = create_app()
