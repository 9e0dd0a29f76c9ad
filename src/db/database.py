# owns the sqlite file standing in for the hosted database, plus encoding helpers
import asyncio
import json
import os.path
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from sqlite3 import Row
from typing import Any, Optional, Sequence
from uuid import uuid4

import aiosqlite

from utils.logger import get_logger

_logger = get_logger(__name__)

_HERE = os.path.dirname(os.path.abspath(__file__))
DEFAULT_DB_PATH = "data/mestej.sqlite"
DB_INIT_SCRIPTS = [
    os.path.join(_HERE, "schema.sql"),
    os.path.join(_HERE, "seed.sql"),
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_db(dt: Optional[datetime]) -> Optional[str]:
    """Encode a datetime as a fixed-width UTC ISO string so text order == time order."""
    if dt is None:
        return None
    return as_utc(dt).astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_db(val: Optional[str]) -> Optional[datetime]:
    if val is None:
        return None
    return as_utc(datetime.fromisoformat(val))


def to_json(val: Any) -> Optional[str]:
    return None if val is None else json.dumps(val, default=str)


def from_json(val: Optional[str]) -> Any:
    return None if val is None else json.loads(val)


def new_id() -> str:
    return str(uuid4())


class Database:
    """Handle to the shop database, passed explicitly to every data function.

    The schema (and demo seed) is created on first use when the file is empty.
    """

    def __init__(
        self, path: str = DEFAULT_DB_PATH, init_scripts: Optional[Sequence[str]] = None
    ) -> None:
        self.path = path
        self.init_scripts = list(DB_INIT_SCRIPTS if init_scripts is None else init_scripts)
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def _init_db(self, conn: aiosqlite.Connection) -> None:
        for script in self.init_scripts:
            if not os.path.exists(script) or os.path.getsize(script) == 0:
                continue
            _logger.info(f"Initializing database with script {script}...")
            with open(script, "r", encoding="utf-8") as f:
                await conn.executescript(f.read())
        await conn.commit()

    @staticmethod
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
    async def connect(self):
        """Yield an aiosqlite connection with FK enforcement and Row access by name."""
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        conn = await aiosqlite.connect(self.path)
        conn.row_factory = Row
        await conn.execute("PRAGMA foreign_keys = ON;")

        if not self._initialized:
            async with self._init_lock:
                if not self._initialized:
                    if not await self._table_exists(conn, "users"):
                        _logger.info(f"Initializing database at {self.path}...")
                        await self._init_db(conn)
                    self._initialized = True
        try:
            yield conn
        finally:
            await conn.close()
