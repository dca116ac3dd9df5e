"""
PostgreSQL catalog store for the Pricing Service.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Optional, List, Iterable

import asyncpg

from shared.logging import get_logger
from shared.errors import UpstreamUnavailableError
from ..catalog.models import DeviceType, RuleRecord
from ..catalog.store import CatalogStore

_CONNECTION_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.exceptions.PostgresConnectionError,
    asyncpg.exceptions.InterfaceError,
)


class PostgresCatalogStore(CatalogStore):
    """PostgreSQL store for device types and rule records.

    Rule bodies live in a JSONB column; key order inside a body is not
    preserved by JSONB, which only reorders legacy adjustments (summed, so
    the price is unaffected).
    """

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.logger = get_logger("pricing.store.postgres")
        self.pool: Optional[asyncpg.Pool] = None

    async def start(self):
        """Start the persistence layer."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=30,
                init=self._init_connection
            )
            await self._create_tables()
            self.logger.info("PostgreSQL catalog store started")

        except _CONNECTION_ERRORS as e:
            self.logger.error("Failed to start PostgreSQL catalog store", error=str(e))
            raise UpstreamUnavailableError("postgres", str(e)) from e

    async def stop(self):
        """Stop the persistence layer."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL catalog store stopped")

    @staticmethod
    async def _init_connection(conn):
        await conn.set_type_codec("jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog")

    @asynccontextmanager
    async def _connection(self):
        if self.pool is None:
            raise UpstreamUnavailableError("postgres", "store not started")
        try:
            async with self.pool.acquire() as conn:
                yield conn
        except _CONNECTION_ERRORS as e:
            self.logger.error("PostgreSQL unavailable", error=str(e))
            raise UpstreamUnavailableError("postgres", str(e)) from e

    async def _create_tables(self):
        """Create database tables."""
        async with self._connection() as conn:
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS device_types (
                    id VARCHAR(255) PRIMARY KEY,
                    code VARCHAR(255),
                    name VARCHAR(255) NOT NULL,
                    status VARCHAR(50) NOT NULL DEFAULT 'active',
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_device_types_code ON device_types(code);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_device_types_name ON device_types(name);
            """)
            await conn.execute("""
                CREATE TABLE IF NOT EXISTS rules (
                    id VARCHAR(64) PRIMARY KEY,
                    type_alias VARCHAR(255) NOT NULL,
                    kind VARCHAR(100) NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1 CHECK (version >= 1),
                    is_active BOOLEAN NOT NULL DEFAULT FALSE,
                    body JSONB NOT NULL DEFAULT '{}',
                    created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
                );
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_rules_alias_kind ON rules(type_alias, kind, created_at DESC);
            """)
            await conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_rules_active ON rules(kind, type_alias) WHERE is_active;
            """)

    async def find_device_type(self, reference: str) -> Optional[DeviceType]:
        async with self._connection() as conn:
            row = await conn.fetchrow("""
                SELECT * FROM device_types
                WHERE id = $1 OR code = $1 OR name = $1
                ORDER BY (id = $1) DESC, (code = $1) DESC
                LIMIT 1
            """, reference)
        return self._row_to_device_type(row) if row else None

    async def list_device_types(self) -> List[DeviceType]:
        async with self._connection() as conn:
            rows = await conn.fetch("SELECT * FROM device_types ORDER BY name ASC")
        return [self._row_to_device_type(row) for row in rows]

    async def upsert_device_type(self, device_type: DeviceType) -> DeviceType:
        async with self._connection() as conn:
            await conn.execute("""
                INSERT INTO device_types (id, code, name, status, created_at)
                VALUES ($1, $2, $3, $4, $5)
                ON CONFLICT (id) DO NOTHING
            """,
                device_type.id, device_type.code, device_type.name,
                device_type.status, device_type.created_at
            )
            row = await conn.fetchrow("SELECT * FROM device_types WHERE id = $1", device_type.id)
        return self._row_to_device_type(row)

    async def insert_rule(self, record: RuleRecord) -> str:
        async with self._connection() as conn:
            await conn.execute("""
                INSERT INTO rules (id, type_alias, kind, version, is_active, body, created_at)
                VALUES ($1, $2, $3, $4, $5, $6, $7)
            """,
                record.id, record.type_alias, record.kind, record.version,
                record.is_active, record.body, record.created_at
            )
        self.logger.info("Rule saved", rule_id=record.id, type_alias=record.type_alias, kind=record.kind)
        return record.id

    async def get_rule(self, record_id: str) -> Optional[RuleRecord]:
        async with self._connection() as conn:
            row = await conn.fetchrow("SELECT * FROM rules WHERE id = $1", record_id)
        return self._row_to_rule(row) if row else None

    async def find_rules(self, type_aliases: Optional[Iterable[str]] = None,
                         kind: Optional[str] = None) -> List[RuleRecord]:
        clauses = []
        args = []
        if type_aliases is not None:
            args.append(list(type_aliases))
            clauses.append(f"type_alias = ANY(${len(args)}::text[])")
        if kind is not None:
            args.append(kind)
            clauses.append(f"kind = ${len(args)}")

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        async with self._connection() as conn:
            rows = await conn.fetch(
                f"SELECT * FROM rules {where} ORDER BY created_at DESC, id DESC",
                *args
            )
        return [self._row_to_rule(row) for row in rows]

    async def activate_exclusive(self, record_id: str, type_aliases: Iterable[str], kind: str) -> int:
        async with self._connection() as conn:
            result = await conn.execute("""
                UPDATE rules SET is_active = (id = $1)
                WHERE id = $1
                   OR (kind = $2 AND type_alias = ANY($3::text[]) AND is_active)
            """, record_id, kind, list(type_aliases))
        # asyncpg returns the command tag, e.g. "UPDATE 2"
        return int(result.split()[-1])

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            async with self._connection() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except UpstreamUnavailableError:
            return False

    @staticmethod
    def _row_to_device_type(row) -> DeviceType:
        return DeviceType(
            id=row["id"],
            code=row["code"],
            name=row["name"],
            status=row["status"],
            created_at=row["created_at"]
        )

    @staticmethod
    def _row_to_rule(row) -> RuleRecord:
        body = row["body"]
        return RuleRecord(
            id=row["id"],
            type_alias=row["type_alias"],
            kind=row["kind"],
            version=row["version"],
            is_active=row["is_active"],
            body=body if isinstance(body, dict) else {},
            created_at=row["created_at"]
        )
