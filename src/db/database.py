# manages connection to db, provides helper methods internal to db package
import asyncio
import os.path
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from sqlite3 import Row

import aiosqlite

from utils.logger import get_logger

_logger = get_logger(__name__)

_HERE = os.path.dirname(os.path.abspath(__file__))

DB_PATH = os.getenv("WARUNG_DB_PATH", "data/db.sqlite")
DB_INIT_SCRIPTS = [
    os.path.join(_HERE, "tables.sql"),
    os.path.join(_HERE, "seed-data.sql"),
]

_initialized = False
_init_lock = asyncio.Lock()


def new_id() -> str:
    return str(uuid.uuid4())


def now_iso(when: datetime | None = None) -> str:
    """Timestamps are stored as ISO-8601 text with microseconds."""
    return (when or datetime.now()).isoformat(timespec="microseconds")


def _casefold(value):
    return value.casefold() if isinstance(value, str) else value


async def _init_db(conn: aiosqlite.Connection) -> None:
    for script in DB_INIT_SCRIPTS:
        if not os.path.exists(script) or os.path.getsize(script) == 0:
            continue
        _logger.info(f"Initializing database with script {os.path.basename(script)}...")
        with open(script, "r", encoding="utf-8") as f:
            await conn.executescript(f.read())
    await conn.commit()


async def _table_exists(conn: aiosqlite.Connection, table_name: str) -> bool:
    cur = await conn.execute(
        """
        SELECT name
        FROM sqlite_master
        WHERE type = 'table'
          AND name = ?;
        """,
        (table_name,),
    )
    row = await cur.fetchone()
    await cur.close()
    return row is not None


@asynccontextmanager
async def connect() -> aiosqlite.Connection:
    """Async context manager yielding an aiosqlite connection with FK enabled.

    Ensures the database is initialized (tables and seed data) on first use.
    """
    global _initialized
    parent = os.path.dirname(DB_PATH)
    if parent and not os.path.isdir(parent):
        os.makedirs(parent, exist_ok=True)

    conn = await aiosqlite.connect(DB_PATH)
    conn.row_factory = Row
    await conn.execute("PRAGMA foreign_keys = ON;")
    # SQLite LOWER() only folds ASCII
    await conn.create_function("casefold", 1, _casefold, deterministic=True)

    if not _initialized:
        async with _init_lock:
            if not _initialized:
                exists = await _table_exists(conn, "products")
                if not exists:
                    _logger.info("Initializing database...")
                    await _init_db(conn)
                _initialized = True
    try:
        yield conn
    finally:
        await conn.close()


@asynccontextmanager
async def transaction() -> aiosqlite.Connection:
    """Like connect(), but everything done on the connection is one atomic unit.

    Takes the write lock up front (BEGIN IMMEDIATE), commits when the block
    exits normally and rolls back on any exception.
    """
    async with connect() as conn:
        await conn.execute("BEGIN IMMEDIATE;")
        try:
            yield conn
        except BaseException:
            await conn.rollback()
            raise
        await conn.commit()
