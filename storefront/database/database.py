# storefront/database/database.py
import json
import asyncpg
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional
from ..config import Config
from ..errors import InfrastructureError

STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

async def _init_connection(conn: asyncpg.Connection):
    """Decode jsonb columns into Python objects"""
    await conn.set_type_codec(
        'jsonb',
        encoder=json.dumps,
        decoder=json.loads,
        schema='pg_catalog'
    )

class Database:
    """Connection pool and transaction boundary for the storefront"""

    def __init__(self, dsn: Optional[str] = None):
        self.dsn = dsn or Config.DATABASE_URL
        self.pool: Optional[asyncpg.Pool] = None
        self.logger = logging.getLogger(__name__)

    async def connect(self):
        """Create the pool and apply pending migrations"""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=Config.DB_POOL_MIN_SIZE,
                max_size=Config.DB_POOL_MAX_SIZE,
                init=_init_connection
            )

            await self._run_migrations()

            self.logger.info("Connected to database")
        except Exception as e:
            self.logger.error(f"Database connection failed: {e}")
            raise

    async def close(self):
        """Close the pool"""
        if self.pool:
            await self.pool.close()
            self.logger.info("Database connection closed")

    @asynccontextmanager
    async def connection(self, conn: Optional[asyncpg.Connection] = None) -> AsyncIterator[asyncpg.Connection]:
        """Reuse the caller's connection or borrow one from the pool"""
        if conn is not None:
            yield conn
            return
        try:
            async with self.pool.acquire() as acquired:
                yield acquired
        except STORE_ERRORS as e:
            self.logger.error(f"Database error: {e}")
            raise InfrastructureError("query") from e

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Commit when the block exits normally, roll back on any error or cancellation"""
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    yield conn
        except STORE_ERRORS as e:
            self.logger.error(f"Transaction aborted by database error: {e}")
            raise InfrastructureError("transaction") from e

    async def _run_migrations(self):
        """Apply migrations that have not been recorded yet"""
        try:
            migrations_path = Path(__file__).parent / "migrations"

            async with self.pool.acquire() as conn:
                await conn.execute("""
                    CREATE TABLE IF NOT EXISTS migrations (
                        id SERIAL PRIMARY KEY,
                        name VARCHAR(255) NOT NULL,
                        applied_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                for migration_file in sorted(migrations_path.glob("*.sql")):
                    migration_name = migration_file.name

                    is_applied = await conn.fetchval(
                        "SELECT COUNT(*) FROM migrations WHERE name = $1",
                        migration_name
                    )

                    if not is_applied:
                        async with conn.transaction():
                            await conn.execute(migration_file.read_text())
                            await conn.execute(
                                "INSERT INTO migrations (name) VALUES ($1)",
                                migration_name
                            )

                        self.logger.info(f"Migration {migration_name} applied")

        except Exception as e:
            self.logger.error(f"Migration failed: {e}")
            raise
