from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from roomchat.settings import settings


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


engine = create_async_engine(settings.DATABASE_URL, echo=False)
AsyncSessionLocal = make_session_factory(engine)
