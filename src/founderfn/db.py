"""Database connection pool and schema helpers."""

from __future__ import annotations

import logging

import psycopg
import psycopg.rows
import psycopg_pool

from founderfn.config import SCHEMA_PATH, Settings

logger = logging.getLogger(__name__)


async def open_pool(cfg: Settings) -> psycopg_pool.AsyncConnectionPool:
    """Create and open an async connection pool returning dict rows.

    The caller owns the pool and must close it.
    """
    pool = psycopg_pool.AsyncConnectionPool(
        conninfo=cfg.database_url,
        min_size=cfg.pool_min_size,
        max_size=cfg.pool_max_size,
        kwargs={"row_factory": psycopg.rows.dict_row},
        open=False,
    )
    await pool.open()
    logger.info("Database pool open (min=%d, max=%d)", cfg.pool_min_size, cfg.pool_max_size)
    return pool


def apply_schema(database_url: str) -> None:
    """Create the tables from schema.sql (synchronous, for the CLI)."""
    ddl = SCHEMA_PATH.read_text()
    with psycopg.connect(database_url) as conn:
        with conn.cursor() as cur:
            cur.execute(ddl)
        conn.commit()
    logger.info("Schema applied from %s", SCHEMA_PATH.name)
