import json
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from core.container import build_services, close_services
from core.errors import TransientIOError
from core.log_config import configure_logging
from db import AsyncSessionLocal
from api.cycles.views import router as cycles_router
from api.dashboard.views import router as dashboard_router
from api.notifications.views import router as notifications_router
from api.teachers.views import router as teachers_router
from api.telegram.views import router as telegram_router

logger = logging.getLogger(__name__)


def get_cors_origins() -> list[str]:
    """Get CORS origins from settings or use defaults."""
    cors_env = settings.CORS_ORIGINS

    # Try to parse as JSON array
    if cors_env:
        try:
            origins = json.loads(cors_env)
            if isinstance(origins, list):
                return origins
        except json.JSONDecodeError:
            # If not valid JSON, treat as comma-separated
            return [o.strip() for o in cors_env.split(",") if o.strip()]

    # Default origins for local development
    return [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:3000",
    ]


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings)
    services = build_services(settings, AsyncSessionLocal)
    app.state.services = services

    try:
        await services.telegram.start()
    except TransientIOError as exc:
        logger.error("Telegram bot could not be initialised, deliveries will fail: %s", exc)

    if settings.TELEGRAM_WEBHOOK_URL:
        try:
            await services.telegram.set_webhook(settings.TELEGRAM_WEBHOOK_URL, settings.TELEGRAM_WEBHOOK_SECRET)
        except TransientIOError as exc:
            logger.error("Webhook registration failed, updates will not arrive: %s", exc)

    if settings.SCHEDULER_ENABLED:
        services.scheduler.start()
    else:
        logger.info("Scheduler disabled (SCHEDULER_ENABLED=false)")

    logger.info("Teacher notification service started in %s mode", settings.APP_ENV)
    yield
    await close_services(services)
    logger.info("Teacher notification service stopped")


app = FastAPI(
    title="Teacher Report Notification API",
    description="Asks teachers over Telegram whether their report tables are filled in, "
                "reminds them until they are, and tells the manager when they are done",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Chat transport
app.include_router(telegram_router, prefix="/api/v1")

# Admin endpoints
app.include_router(teachers_router, prefix="/api/v1")
app.include_router(cycles_router, prefix="/api/v1")
app.include_router(notifications_router, prefix="/api/v1")
app.include_router(dashboard_router, prefix="/api/v1")


# Health check endpoint
@app.get("/health", tags=["system"])
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}
