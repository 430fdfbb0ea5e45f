# core/deps.py
"""
FastAPI dependencies exposing the wired services to routes.

Routes never build services themselves; tests override these dependencies
with in-memory doubles.
"""
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import settings
from config.base import AppSettings
from api.notifications.repository import RosterDirectory
from api.notifications.workflow import WorkflowEngine
from api.telegram.client import TelegramClient
from core.container import Services


def get_services(request: Request) -> Services:
    """
    Services are put on app.state by the lifespan.

    Raises:
        HTTPException 503: If the app was started without its lifespan
    """
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Services are not initialised",
        )
    return services


def get_engine(services: Annotated[Services, Depends(get_services)]) -> WorkflowEngine:
    return services.engine


def get_roster(services: Annotated[Services, Depends(get_services)]) -> RosterDirectory:
    return services.roster


def get_telegram_client(services: Annotated[Services, Depends(get_services)]) -> TelegramClient:
    return services.telegram


def get_session_factory(services: Annotated[Services, Depends(get_services)]) -> async_sessionmaker[AsyncSession]:
    return services.session_factory


def get_settings() -> AppSettings:
    return settings


# Type aliases for cleaner endpoint signatures
Engine = Annotated[WorkflowEngine, Depends(get_engine)]
Roster = Annotated[RosterDirectory, Depends(get_roster)]
Telegram = Annotated[TelegramClient, Depends(get_telegram_client)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
Settings = Annotated[AppSettings, Depends(get_settings)]
