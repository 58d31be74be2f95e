"""TrackMate — Async SQLAlchemy engine and unit-of-work scope."""
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm.exc import StaleDataError

from trackmate.config import get_settings
from trackmate.core.exceptions import Conflict

_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def build_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    if url.startswith("sqlite"):
        # Writers queue on the database lock instead of failing immediately
        return create_async_engine(url, echo=echo, connect_args={"timeout": 30})
    return create_async_engine(
        url,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
        echo=echo,
    )


def configure_engine(url: str | None = None) -> AsyncEngine:
    """(Re)bind the module engine, e.g. to a throwaway database in tests."""
    global _engine, _session_maker
    settings = get_settings()
    _engine = build_engine(url or settings.DATABASE_URL, echo=settings.DEBUG)
    _session_maker = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return _engine


def get_engine() -> AsyncEngine:
    if _engine is None:
        configure_engine()
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    if _session_maker is None:
        configure_engine()
    return _session_maker


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """
    One logical operation = one transaction.
    Commits on success, rolls back everything on any exception.
    """
    async with get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except StaleDataError as exc:
            await session.rollback()
            raise Conflict("concurrent modification detected") from exc
        except IntegrityError as exc:
            await session.rollback()
            raise Conflict(f"integrity violation: {exc.orig}") from exc
        except Exception:
            await session.rollback()
            raise
