"""
Local object-storage backends for analytics records.
"""
from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from pathlib import Path, PurePosixPath
from typing import List

import aiofiles
import aiosqlite

from freshlink.modules.analytics.domain.interfaces import ObjectStorage
from freshlink.modules.analytics.domain.models import ObjectInfo
from freshlink.modules.deeplinks.domain.errors import StorageError


class SQLiteObjectStorage(ObjectStorage):

    def __init__(self, db_path: Path):
        self.db_path = db_path

    async def initialize(self) -> None:
        async with aiosqlite.connect(self.db_path) as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS objects (
                    key TEXT PRIMARY KEY,
                    body BLOB NOT NULL,
                    size INTEGER NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            await db.commit()

    async def put(self, key: str, data: bytes) -> None:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                await db.execute(
                    """
                    INSERT INTO objects (key, body, size, updated_at)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        body = excluded.body,
                        size = excluded.size,
                        updated_at = excluded.updated_at
                    """,
                    (key, data, len(data), datetime.now(UTC).isoformat())
                )
                await db.commit()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to store {key}: {exc}") from exc

    async def list(self, prefix: str) -> List[ObjectInfo]:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute(
                    """
                    SELECT key, size FROM objects
                    WHERE substr(key, 1, ?) = ?
                    ORDER BY key
                    """,
                    (len(prefix), prefix)
                )
                rows = await cursor.fetchall()
                await cursor.close()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to list {prefix}: {exc}") from exc

        return [ObjectInfo(key=row[0], size=row[1]) for row in rows]

    async def get(self, key: str) -> bytes:
        try:
            async with aiosqlite.connect(self.db_path) as db:
                cursor = await db.execute("SELECT body FROM objects WHERE key = ?", (key,))
                row = await cursor.fetchone()
                await cursor.close()
        except aiosqlite.Error as exc:
            raise StorageError(f"Failed to read {key}: {exc}") from exc

        if not row:
            raise StorageError(f"Object not found: {key}")
        return bytes(row[0])


class LocalObjectStorage(ObjectStorage):
    """Stores each object as a file under ``root``; keys map to relative paths."""

    def __init__(self, root: Path):
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        relative = PurePosixPath(key)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise StorageError(f"Invalid object key: {key}")
        return self.root.joinpath(*relative.parts)

    async def put(self, key: str, data: bytes) -> None:
        path = self._path_for(key)
        try:
            await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(data)
        except OSError as exc:
            raise StorageError(f"Failed to store {key}: {exc}") from exc

    async def list(self, prefix: str) -> List[ObjectInfo]:
        try:
            return await asyncio.to_thread(self._scan, prefix)
        except OSError as exc:
            raise StorageError(f"Failed to list {prefix}: {exc}") from exc

    def _scan(self, prefix: str) -> List[ObjectInfo]:
        objects = []
        for path in self.root.rglob("*"):
            if not path.is_file():
                continue
            key = path.relative_to(self.root).as_posix()
            if key.startswith(prefix):
                objects.append(ObjectInfo(key=key, size=path.stat().st_size))
        return sorted(objects, key=lambda obj: obj.key)

    async def get(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except OSError as exc:
            raise StorageError(f"Failed to read {key}: {exc}") from exc
