# db.py
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)

from config import settings
from db_base import Base  # <- import Base from separate module


# ---------- Engine & Session (async) ----------

def make_engine(url: str, **kwargs) -> AsyncEngine:
    """Build an async engine; sqlite URLs skip the pool options asyncpg uses."""
    if url.startswith("sqlite"):
        return create_async_engine(url, future=True, **kwargs)
    return create_async_engine(
        url,  # e.g. postgresql+asyncpg://...
        future=True,
        pool_pre_ping=True,
        pool_recycle=300,
        **kwargs,
    )


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )


engine = make_engine(settings.DATABASE_URL, echo=settings.DEBUG)

AsyncSessionLocal = make_session_factory(engine)


# ---------- Optional init helper (for dev only) ----------

async def init_db(bind: AsyncEngine | None = None) -> None:
    """
    Optional helper to create tables from ORM metadata.

    In production, prefer Alembic migrations.
    """
    # Import models so they are registered on Base.metadata
    import db_models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# ---------- FastAPI dependency ----------

async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Provide an async DB session."""
    async with AsyncSessionLocal() as session:
        yield session
