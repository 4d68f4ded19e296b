from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from resume_builder.core.config import settings


class Base(DeclarativeBase):
    pass


def make_engine(url: str):
    # SQLite connections are tied to the loop that opened them; don't pool them
    extra = {"poolclass": NullPool} if url.startswith("sqlite") else {}
    return create_async_engine(url, echo=settings.DEBUG and settings.LOG_LEVEL == "DEBUG", future=True, **extra)


engine = make_engine(settings.DATABASE_URL)
AsyncSessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session
