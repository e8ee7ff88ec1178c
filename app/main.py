import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api_routers.v1 import api_router
from app.context import AppContext, build_context
from app.middlewares.rate_limit import RateLimitMiddleware
from app.platform.config import Settings, settings
from app.platform.exceptions import add_exception_handlers

# Configure logging to show INFO level messages
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def create_app(
    context: Optional[AppContext] = None,
    app_settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the API. Tests pass a ready context; otherwise one is built from
    settings at startup and closed (draining inline scans) at shutdown.
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "context", None) is None:
            app.state.context = build_context(app_settings)
        logger.info(f"{app_settings.APP_NAME} started: {app.state.context.modes()}")
        yield
        await app.state.context.aclose()
        logger.info(f"{app_settings.APP_NAME} stopped")

    app = FastAPI(
        title=f"{app_settings.APP_NAME} API",
        description="WCAG accessibility scanning with AI interpretation and legal-risk scoring",
        version="1.0.0",
        debug=app_settings.DEBUG,
        lifespan=lifespan,
    )
    if context is not None:
        app.state.context = context

    # Root endpoint for basic info
    @app.get("/", tags=["Info"])
    def root():
        return {
            "app_name": f"{app_settings.APP_NAME} API",
            "description": "Scans websites for WCAG violations and scores their legal risk.",
            "version": "1.0.0",
            "docs_url": "/docs",
            "api_base": "/api",
        }

    app.add_middleware(
        RateLimitMiddleware,
        max_requests=app_settings.RATE_LIMIT_MAX,
        window_seconds=app_settings.RATE_LIMIT_WINDOW_SECONDS,
        allow_list=app_settings.rate_limit_allow_list,
        redis_url=app_settings.REDIS_URL,
        force_in_memory=app_settings.FORCE_IN_MEMORY_RATE_LIMITER,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.allowed_origins,
        allow_credentials="*" not in app_settings.allowed_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    add_exception_handlers(app)

    app.include_router(api_router)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
