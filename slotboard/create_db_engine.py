from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from slotboard.load_settings import (
    database_url,
    db_name,
    host,
    password,
    port,
    sqlite_path,
    user,
)


def resolve_database_url() -> str:
    """Pick the database url from the environment.

    DATABASE_URL wins, then PostgreSQL when DB_HOST is set, then the local SQLite file.
    """
    if database_url:
        return database_url
    if host:
        return f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db_name}"
    return f"sqlite+aiosqlite:///{sqlite_path}"


def create_engine(url: str | None = None) -> AsyncEngine:
    url = url or resolve_database_url()
    if url.startswith("postgresql"):
        return create_async_engine(url, pool_size=20, max_overflow=20)
    return create_async_engine(url, echo=False)
