from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine


def create_engine_for(database_url: str) -> AsyncEngine:
    """Async engine for the durable scan mirror. Postgres URLs get the asyncpg driver."""
    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine_kwargs = {"echo": False, "future": True, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        engine_kwargs.update(pool_recycle=1800, pool_size=10, max_overflow=20, pool_timeout=30)

    return create_async_engine(database_url, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False, autocommit=False)
