"""Database helpers for the durable bookmark store."""

import asyncio
import logging
from contextlib import contextmanager
from typing import List, Optional, Sequence

import psycopg2
from psycopg2 import errors, pool

from tourmark.core.config import get_settings
from tourmark.core.errors import ConfigurationError, StoreConflict, StoreError, UnresolvedIdentity
from tourmark.core.models import Bookmark

logger = logging.getLogger(__name__)

_connection_pool: Optional[pool.ThreadedConnectionPool] = None

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    external_subject_id TEXT NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS bookmarks (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    user_id UUID NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    content_id TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT bookmarks_user_content_unique UNIQUE (user_id, content_id)
);
"""


def init_pool(minconn: int = 1, maxconn: int = 5) -> pool.ThreadedConnectionPool:
    """Initialise and return the shared connection pool."""
    global _connection_pool
    if _connection_pool is None:
        settings = get_settings()
        if not settings.database_url:
            raise ConfigurationError("DATABASE_URL is required for database connections")
        _connection_pool = pool.ThreadedConnectionPool(
            minconn,
            maxconn,
            dsn=settings.database_url,
            connect_timeout=10,
        )
        logger.info("Database connection pool initialised")
    return _connection_pool


@contextmanager
def get_connection():
    """Context manager yielding a pooled connection."""
    pg_pool = init_pool()
    conn = pg_pool.getconn()
    try:
        yield conn
    finally:
        pg_pool.putconn(conn)


def init_schema() -> None:
    with get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
        conn.commit()
    logger.info("Bookmark schema ensured")


_SELECT_USER = "SELECT id FROM users WHERE external_subject_id = %(subject)s"

_SELECT_EXISTS = "SELECT 1 FROM bookmarks WHERE user_id = %(user_id)s AND content_id = %(content_id)s LIMIT 1"

_INSERT_BOOKMARK = """
INSERT INTO bookmarks (user_id, content_id)
VALUES (%(user_id)s, %(content_id)s)
"""

_DELETE_BOOKMARK = "DELETE FROM bookmarks WHERE user_id = %(user_id)s AND content_id = %(content_id)s"

_SELECT_BOOKMARKS = """
SELECT id, content_id, created_at
FROM bookmarks
WHERE user_id = %(user_id)s
ORDER BY created_at DESC, id
"""

_DELETE_BOOKMARKS = "DELETE FROM bookmarks WHERE user_id = %(user_id)s AND content_id = ANY(%(content_ids)s)"


def _store_error(exc: psycopg2.Error) -> StoreError:
    return StoreError(str(exc).strip() or exc.__class__.__name__, code=getattr(exc, "pgcode", None))


class PostgresBookmarkStore:
    """``users``/``bookmarks`` tables; the unique (user_id, content_id) constraint arbitrates duplicates."""

    def _resolve_user_id(self, subject_id: str) -> str:
        try:
            with get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(_SELECT_USER, {"subject": subject_id})
                    row = cur.fetchone()
                conn.rollback()
        except psycopg2.Error as exc:
            logger.error("User lookup failed for subject %s: %s", subject_id, exc)
            raise UnresolvedIdentity(f"user lookup failed: {exc}") from exc
        if not row:
            raise UnresolvedIdentity(f"no user row for subject {subject_id}")
        return str(row[0])

    def _write(self, sql: str, params: dict) -> int:
        try:
            with get_connection() as conn:
                try:
                    with conn.cursor() as cur:
                        cur.execute(sql, params)
                        affected = cur.rowcount
                    conn.commit()
                except psycopg2.Error:
                    conn.rollback()
                    raise
        except errors.UniqueViolation as exc:
            raise StoreConflict(str(exc).strip() or "duplicate bookmark", code="23505") from exc
        except psycopg2.Error as exc:
            logger.error("Bookmark write failed: %s", exc)
            raise _store_error(exc) from exc
        return affected

    def _read(self, sql: str, params: dict) -> list:
        try:
            with get_connection() as conn:
                try:
                    with conn.cursor() as cur:
                        cur.execute(sql, params)
                        rows = cur.fetchall()
                finally:
                    conn.rollback()
        except psycopg2.Error as exc:
            logger.error("Bookmark read failed: %s", exc)
            raise _store_error(exc) from exc
        return rows

    async def resolve_user_id(self, subject_id: str) -> str:
        return await asyncio.to_thread(self._resolve_user_id, subject_id)

    async def exists(self, user_id: str, poi_id: str) -> bool:
        rows = await asyncio.to_thread(self._read, _SELECT_EXISTS, {"user_id": user_id, "content_id": poi_id})
        return bool(rows)

    async def insert(self, user_id: str, poi_id: str) -> None:
        await asyncio.to_thread(self._write, _INSERT_BOOKMARK, {"user_id": user_id, "content_id": poi_id})
        logger.debug("Inserted bookmark %s for user %s", poi_id, user_id)

    async def delete(self, user_id: str, poi_id: str) -> int:
        return await asyncio.to_thread(self._write, _DELETE_BOOKMARK, {"user_id": user_id, "content_id": poi_id})

    async def list_for_user(self, user_id: str) -> List[Bookmark]:
        rows = await asyncio.to_thread(self._read, _SELECT_BOOKMARKS, {"user_id": user_id})
        return [
            Bookmark(poi_id=str(content_id), identity=user_id, created_at=created_at, id=str(row_id))
            for row_id, content_id, created_at in rows
        ]

    async def delete_many(self, user_id: str, poi_ids: Sequence[str]) -> int:
        """Single statement in one transaction: either every matching row goes or none does."""
        if not poi_ids:
            return 0
        return await asyncio.to_thread(
            self._write, _DELETE_BOOKMARKS, {"user_id": user_id, "content_ids": list(poi_ids)}
        )
