from collections.abc import AsyncGenerator
from uuid import uuid4

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from examhub.core.config import get_settings


def build_engine(url: str) -> AsyncEngine:
    db_url = make_url(url)
    engine_kwargs: dict = {"pool_pre_ping": True}
    if not db_url.drivername.startswith("postgresql"):
        return create_async_engine(db_url, **engine_kwargs)

    query = dict(db_url.query)
    is_supabase_pooler = bool(db_url.host and "pooler.supabase.com" in db_url.host)
    # Transaction poolers (pgbouncer on 6543) cannot keep prepared statements.
    if db_url.port == 6543:
        engine_kwargs["poolclass"] = NullPool
        engine_kwargs["connect_args"] = {
            "statement_cache_size": 0,
            "prepared_statement_name_func": lambda: f"__asyncpg_{uuid4().hex}__",
        }
        query["prepared_statement_cache_size"] = "0"
    else:
        engine_kwargs["connect_args"] = {"statement_cache_size": 0}
        if is_supabase_pooler:
            engine_kwargs["poolclass"] = NullPool
    db_url = db_url.set(query=query)
    return create_async_engine(db_url.render_as_string(hide_password=False), **engine_kwargs)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


engine = build_engine(get_settings().async_database_url)
SessionLocal = build_sessionmaker(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session
