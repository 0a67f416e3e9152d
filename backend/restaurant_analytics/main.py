"""FastAPI application entrypoint.

Configures CORS, error envelopes, Sentry, includes the analytics routers and
exposes health endpoints.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .utils.env import load_env_file

load_env_file()
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

from . import schemas, state
from .deps import get_settings
from .errors import AnalyticsError, QueryExecutionError
from .routers import custom_query as custom_query_router
from .routers import customers as customers_router
from .routers import filter_options as filter_options_router
from .routers import metrics as metrics_router
from .routers import operations as operations_router
from .routers import products as products_router
from .routers import sales as sales_router
from .telemetry import capture_exception, init_sentry

INTERNAL_ERROR_MESSAGE = "Erro interno do servidor"
INVALID_REQUEST_MESSAGE = "Parâmetros inválidos"


def _format_validation_errors(exc: RequestValidationError) -> str:
    """``limit: Input should be greater than or equal to 1; ...``"""
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item not in ("query", "body"))
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts)


def register_exception_handlers(app: FastAPI) -> None:
    """Render every failure as ``{"error": ..., "details"?: ...}``."""

    @app.exception_handler(AnalyticsError)
    async def analytics_error_handler(request: Request, exc: AnalyticsError):
        if isinstance(exc, QueryExecutionError):
            logger.error(f"[API] {request.url.path} failed on {exc.endpoint}: {exc.details}")
            capture_exception(exc, extra={"endpoint": exc.endpoint})
        else:
            logger.info(f"[API] {request.url.path} rejected: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": INVALID_REQUEST_MESSAGE, "details": _format_validation_errors(exc)},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"[API] Unhandled error on {request.url.path}")
        capture_exception(exc, extra={"path": request.url.path})
        return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR_MESSAGE})


def create_app() -> FastAPI:
    settings = get_settings()
    init_sentry(settings)

    app = FastAPI(
        title="Restaurant Analytics API",
        description="""
        Sales analytics for restaurant operators.

        This API provides endpoints for:
        - Headline metrics with period-over-period growth
        - Revenue, channel, store, payment and coupon breakdowns
        - Product, add-on and category performance
        - Customer recency and segmentation
        - Operational and cancellation metrics
        - A free-form "metric by dimension" query

        ## Filters

        Every GET endpoint accepts the same query-string filters:
        `startDate`, `endDate` (YYYY-MM-DD), `period` (e.g. `30d`), `channel`,
        `channelType` (P|D), `store`, `subBrand`, `storeIds`, `channelIds`.
        """,
        version="1.0.0",
    )

    logger.info(f"[CORS] Allowed origins: {settings.cors_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(filter_options_router.router)
    app.include_router(metrics_router.router)
    app.include_router(sales_router.router)
    app.include_router(products_router.router)
    app.include_router(customers_router.router)
    app.include_router(operations_router.router)
    app.include_router(custom_query_router.router)

    @app.get("/", tags=["Health"], summary="Service banner")
    def root():
        return {"status": "ok", "message": "Restaurant Analytics API"}

    @app.get(
        "/health",
        response_model=schemas.HealthResponse,
        tags=["Health"],
        summary="Health check",
        description="""
        Simple health check endpoint to verify the API is running.

        This endpoint:
        - Does not touch the database
        - Can be used for load balancer health checks
        """
    )
    def health():
        return schemas.HealthResponse(status="ok")

    @app.on_event("shutdown")
    async def shutdown_event():
        """Dispose the database engine and close the Redis client."""
        await state.shutdown()

    return app


app = create_app()
