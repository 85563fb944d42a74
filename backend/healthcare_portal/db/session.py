from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional
import logging

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AsyncSession]

# Set once by the lifespan hook (or a script) so code outside a request can open sessions
_global_session_factory: Optional[SessionFactory] = None


def set_global_session_factory(factory: SessionFactory) -> None:
    global _global_session_factory
    _global_session_factory = factory
    logger.info("Global SQLAlchemy session factory has been set.")


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    One session per request, from the factory stored on ``app.state``.

    CRUD functions commit their own work; anything still pending when the
    handler raises (a claimed schedule whose insert failed) is discarded
    when the session closes.
    """
    async with request.app.state.session_factory() as session:
        yield session


@asynccontextmanager
async def background_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Session for seed scripts and other work that runs outside a request."""
    if _global_session_factory is None:
        raise RuntimeError("Database session factory not initialized globally.")

    async with _global_session_factory() as session:
        try:
            yield session
        except Exception:
            logger.exception("Rolling back background_db_session after an error")
            await session.rollback()
            raise
