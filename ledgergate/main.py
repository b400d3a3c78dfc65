import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI

from ledgergate.config.logging_config import configure_logging
from ledgergate.config.settings import settings
from ledgergate.database.client import close_db, init_db
from ledgergate.features.api_key.router import router as api_key_router
from ledgergate.features.auth.router import router as auth_router
from ledgergate.features.invite.router import router as invite_router
from ledgergate.features.usage.router import router as usage_router
from ledgergate.features.user.router import router as user_router
from ledgergate.shared.audit.audit_middleware import AccessLogMiddleware
from ledgergate.shared.errors.handlers import register_exception_handlers
from ledgergate.shared.throttling import limiter

configure_logging(settings.log_level, settings.log_format)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Handle startup and shutdown events."""
    # Startup
    await init_db()
    logger.info(f"{settings.app_name} {settings.app_version} started ({settings.environment})")
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
    debug=settings.debug,
)

# Per-IP throttling of the auth endpoints
app.state.limiter = limiter

register_exception_handlers(app)

app.add_middleware(AccessLogMiddleware)

# Router Registration
routers: list[APIRouter] = [
    auth_router,
    user_router,
    api_key_router,
    usage_router,
    invite_router,
]

for router in routers:
    app.include_router(router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {"message": settings.app_name, "status": "running"}


@app.get("/health")
async def health():
    return {"status": "healthy"}
