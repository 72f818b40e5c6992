"""FastAPI application factory for the visit statistics API."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..core.attribution import AttributionResolver, CountryLookup
from ..core.errors import CountryUndetectable, InvalidCountryCode, StoreUnavailable, VisitTrackingError
from ..core.geoip import GeoIpDatabase
from ..storage.connection import RedisConnection
from ..storage.counters import VisitCounterStore
from .config import Settings, _get_settings
from .middleware.cors import ALLOWED_HEADERS, ALLOWED_METHODS
from .middleware.rate_limit import install_rate_limit
from .routes.health import router as health_router
from .routes.visits import router as visits_router
from .services.visits import VisitService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    InvalidCountryCode: 400,
    CountryUndetectable: 400,
    StoreUnavailable: 503,
}


def _build_lifespan(settings: Settings, connection: RedisConnection, geo_lookup: Optional[CountryLookup]):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the Redis connection and GeoIP database for the process lifetime."""
        logger.info(f"Starting visit statistics API ({settings.env})")
        geo = geo_lookup
        owned_geo = None
        if geo is None:
            owned_geo = geo = GeoIpDatabase.open(settings.geoip_db_path)

        try:
            async with connection:
                if not connection.is_connected():
                    logger.error("Redis unavailable at startup, serving in degraded mode")
                resolver = AttributionResolver(geo, local_country=settings.local_country)
                store = VisitCounterStore(connection, key=settings.visits_key)
                app.state.visit_service = VisitService(resolver, store)
                yield
        finally:
            if owned_geo is not None:
                owned_geo.close()
            logger.info("Visit statistics API shutting down")

    return lifespan


async def visit_error_handler(request: Request, exc: VisitTrackingError):
    status_code = ERROR_STATUS.get(type(exc), 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": {"success": False, "error": exc.error_code, "detail": exc.message}},
    )


def create_app(
    settings: Optional[Settings] = None,
    connection: Optional[RedisConnection] = None,
    geo_lookup: Optional[CountryLookup] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``connection`` and ``geo_lookup`` default to ones built from ``settings``;
    pass them explicitly to run against other backends.
    """
    settings = settings or _get_settings()
    connection = connection or RedisConnection(settings.connection_config())

    app = FastAPI(
        title="Visit Statistics API",
        description="Records website visits by country and serves per-country counts",
        version="1.0.0",
        lifespan=_build_lifespan(settings, connection, geo_lookup),
    )
    app.state.settings = settings
    app.state.connection = connection

    app.add_exception_handler(VisitTrackingError, visit_error_handler)

    if settings.rate_limit_per_minute > 0:
        install_rate_limit(app, settings.rate_limit_per_minute)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
    )

    # Routes
    app.include_router(health_router)
    app.include_router(visits_router)

    return app


# Module-level app instance for uvicorn
app = create_app()
