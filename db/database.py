"""
Database connection module: SQLAlchemy async engine, session factory and schema bootstrap.

PostgreSQL (asyncpg) is the production target. SQLite URLs (aiosqlite) are
accepted for local runs and the test suite; they use NullPool so connections
are never shared between event loops.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool
from sqlalchemy.sql import text

from utils.config import DATABASE_URL as DATABASE_URL_ENV

logger = logging.getLogger("formbuilder.db")


def _normalize_async_url(dsn: str) -> str:
    # Ensure SQLAlchemy uses an async driver
    if dsn.startswith("postgresql+asyncpg://") or dsn.startswith("sqlite+aiosqlite://"):
        return dsn
    if dsn.startswith("postgres://"):
        return "postgresql+asyncpg://" + dsn[len("postgres://"):]
    if dsn.startswith("postgresql://"):
        return "postgresql+asyncpg://" + dsn[len("postgresql://"):]
    if dsn.startswith("sqlite://"):
        return "sqlite+aiosqlite://" + dsn[len("sqlite://"):]
    return dsn


DATABASE_URL = _normalize_async_url(DATABASE_URL_ENV)
IS_SQLITE = DATABASE_URL.startswith("sqlite")

if IS_SQLITE:
    engine = create_async_engine(DATABASE_URL, echo=False, poolclass=NullPool)
else:
    engine = create_async_engine(
        DATABASE_URL,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=1800,
        pool_pre_ping=True,
    )

async_session_maker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an AsyncSession and manages commit/rollback/close."""
    session = async_session_maker()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


# JSON documents are stored as TEXT so the same DDL runs on PostgreSQL and SQLite.
SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        verify_otp TEXT NOT NULL DEFAULT '',
        verify_otp_expire_at BIGINT NOT NULL DEFAULT 0,
        is_account_verified BOOLEAN NOT NULL DEFAULT FALSE,
        reset_otp TEXT NOT NULL DEFAULT '',
        reset_otp_expire_at BIGINT NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS forms (
        id TEXT PRIMARY KEY,
        owner_id TEXT,
        title TEXT NOT NULL,
        steps TEXT NOT NULL,
        share_id TEXT NOT NULL UNIQUE,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS form_responses (
        id TEXT PRIMARY KEY,
        form_id TEXT NOT NULL,
        share_id TEXT NOT NULL,
        steps TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_forms_owner ON forms (owner_id)",
    "CREATE INDEX IF NOT EXISTS idx_form_responses_share ON form_responses (share_id, created_at)",
]


async def init_db() -> None:
    """Create tables and indexes when missing. Safe to call on every startup."""
    async with engine.begin() as conn:
        for statement in SCHEMA_STATEMENTS:
            await conn.execute(text(statement))
    logger.info("database schema ready")
