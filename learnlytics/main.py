"""
learnlytics/main.py
HTTP application factory

Settings (and the .env file) are loaded by learnlytics.config.settings
before anything else is imported.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from learnlytics.config.settings import settings
from learnlytics.errors import ErrorCode, register_exception_handlers
from learnlytics.routes import router
from learnlytics.services.data_access import AnalyticsRepository, InMemoryAnalyticsRepository
from learnlytics.services.insight_service import InsightService

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)

DEFAULT_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8000",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:8000",
]


def create_app(
    repository: Optional[AnalyticsRepository] = None,
    insight_service: Optional[InsightService] = None
) -> FastAPI:
    """
    Build the API around a data-access collaborator.

    Without a repository the app serves an empty in-memory one, which is
    only useful for smoke tests.
    """
    app = FastAPI(
        title="Learnlytics API",
        description="Learning analytics aggregation engine",
        version="1.0.0"
    )
    app.state.repository = repository or InMemoryAnalyticsRepository()
    app.state.insight_service = insight_service

    origins = list(DEFAULT_ORIGINS)
    extra_origins = settings.ALLOWED_ORIGINS.split(",")
    if extra_origins and extra_origins[0]:
        origins.extend(o.strip() for o in extra_origins if o.strip())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "success": False,
                "error": "Validation Error",
                "code": ErrorCode.VALIDATION_ERROR,
                "details": [
                    {"loc": e.get("loc"), "msg": e.get("msg"), "type": e.get("type")}
                    for e in exc.errors()
                ]
            }
        )

    register_exception_handlers(app)
    app.include_router(router)

    @app.get("/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "external_insights": settings.external_insights_enabled(),
            "flags": settings.get_all_flags(),
            "version": "1.0.0"
        }

    logger.info(f"✓ Learnlytics API ready ({len(origins)} CORS origin(s))")
    return app


app = create_app()
