import asyncpg

from ferrytrack.config import settings

db_pool: asyncpg.Pool | None = None


async def init_db() -> asyncpg.Pool:
    global db_pool
    db_pool = await asyncpg.create_pool(
        dsn=settings.database_url,
        min_size=1,
        max_size=5,
    )
    return db_pool


async def close_db():
    global db_pool
    if db_pool:
        await db_pool.close()
        db_pool = None


def get_db() -> asyncpg.Pool:
    assert db_pool is not None, "Database pool not initialized"
    return db_pool
