from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from chatrelay.api.router import api_router
from chatrelay.api.routers.health import router as health_router
from chatrelay.core.logging import configure_logging
from chatrelay.core.settings import get_settings
from chatrelay.dependency_injection import build_container
from chatrelay.services.contracts import CompletionClientProtocol, DatabaseServiceProtocol

settings = get_settings()
configure_logging(settings.effective_log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("starting chat relay", extra={"app_env": settings.app_env, "model": settings.chat_model})

    container = build_container(settings)
    database_service = container.resolve(DatabaseServiceProtocol)
    await database_service.connect()
    logger.info("database connection pool initialized")
    completion_client = container.resolve(CompletionClientProtocol)

    app.state.container = container

    try:
        yield
    finally:
        await completion_client.close()
        await database_service.disconnect()
        logger.info("chat relay shutdown complete")


app = FastAPI(
    title="Chat Relay",
    version="0.1.0",
    docs_url="/docs" if settings.enable_swagger else None,
    redoc_url="/redoc" if settings.enable_swagger else None,
    openapi_url="/openapi.json" if settings.enable_swagger else None,
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(api_router, prefix="/api")
