# remindbot - Discord Reminder Bot
# Copyright (c) 2025-2026 Slash Daemon slashdaemon@protonmail.com
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, version 3 of the License.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.
#
# Commercial licensing: [slashdaemon@protonmail.com]

"""
Reminder Store Module

Room-scoped key/value persistence for pending reminders. Every operation is
scoped by room; no room can see another room's keys.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

import asyncpg

from .models import ReminderRecord

logger = logging.getLogger("remindbot.reminders.store")

_TABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ReminderStore(ABC):
    """Interface of the persisted reminder store."""

    @abstractmethod
    async def set(self, key: str, record: ReminderRecord, room_id: int) -> bool:
        """Persist ``record`` under ``key``. Returns False if the write failed."""

    @abstractmethod
    async def get(self, key: str, room_id: int) -> Optional[ReminderRecord]:
        """Fetch a record, or None if the key is unknown."""

    @abstractmethod
    async def exists(self, key: str, room_id: int) -> bool:
        ...

    @abstractmethod
    async def unset(self, key: str, room_id: int) -> bool:
        """Remove a record. Returns False if there was nothing to remove."""

    @abstractmethod
    async def get_all(self, room_id: int) -> dict[str, ReminderRecord]:
        ...

    @abstractmethod
    async def get_keys(self, room_id: int) -> set[str]:
        ...

    async def rooms(self) -> set[int]:
        """Rooms that currently hold at least one record."""
        return set()


class InMemoryReminderStore(ReminderStore):
    """Process-local store. Used in tests and when no database is configured."""

    def __init__(self):
        self._rooms: dict[int, dict[str, ReminderRecord]] = {}

    async def set(self, key: str, record: ReminderRecord, room_id: int) -> bool:
        self._rooms.setdefault(room_id, {})[key] = record
        return True

    async def get(self, key: str, room_id: int) -> Optional[ReminderRecord]:
        return self._rooms.get(room_id, {}).get(key)

    async def exists(self, key: str, room_id: int) -> bool:
        return key in self._rooms.get(room_id, {})

    async def unset(self, key: str, room_id: int) -> bool:
        room = self._rooms.get(room_id, {})
        if key not in room:
            return False
        del room[key]
        if not room:
            self._rooms.pop(room_id, None)
        return True

    async def get_all(self, room_id: int) -> dict[str, ReminderRecord]:
        return dict(self._rooms.get(room_id, {}))

    async def get_keys(self, room_id: int) -> set[str]:
        return set(self._rooms.get(room_id, {}))

    async def rooms(self) -> set[int]:
        return set(self._rooms)


class PostgresReminderStore(ReminderStore):
    """
    Reminder store backed by a single Postgres table.

    Records are kept as JSONB using the keys of ``ReminderRecord.to_dict``.
    """

    def __init__(self, db_pool: asyncpg.Pool, table: str = "reminder_store"):
        """
        Initialize the store.

        Args:
            db_pool: asyncpg connection pool
            table: Table name (identifier characters only)
        """
        if not _TABLE_NAME.match(table):
            raise ValueError(f"Invalid table name: {table!r}")
        self.db = db_pool
        self.table = table

    async def ensure_schema(self) -> None:
        """Create the backing table if it does not exist yet."""
        await self.db.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                room_id BIGINT NOT NULL,
                key TEXT NOT NULL,
                value JSONB NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                PRIMARY KEY (room_id, key)
            )
            """
        )

    @staticmethod
    def _decode(value) -> ReminderRecord:
        if isinstance(value, str):
            value = json.loads(value)
        return ReminderRecord.from_dict(value)

    async def set(self, key: str, record: ReminderRecord, room_id: int) -> bool:
        try:
            await self.db.execute(
                f"""
                INSERT INTO {self.table} (room_id, key, value)
                VALUES ($1, $2, $3::jsonb)
                ON CONFLICT (room_id, key)
                DO UPDATE SET value = EXCLUDED.value
                """,
                room_id,
                key,
                json.dumps(record.to_dict()),
            )
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(f"Failed to store reminder {key} in room {room_id}: {e}")
            return False

        logger.info(f"Stored reminder {key} in room {room_id}")
        return True

    async def get(self, key: str, room_id: int) -> Optional[ReminderRecord]:
        row = await self.db.fetchrow(
            f"SELECT value FROM {self.table} WHERE room_id = $1 AND key = $2",
            room_id,
            key,
        )
        return self._decode(row["value"]) if row else None

    async def exists(self, key: str, room_id: int) -> bool:
        row = await self.db.fetchrow(
            f"SELECT 1 FROM {self.table} WHERE room_id = $1 AND key = $2",
            room_id,
            key,
        )
        return row is not None

    async def unset(self, key: str, room_id: int) -> bool:
        result = await self.db.execute(
            f"DELETE FROM {self.table} WHERE room_id = $1 AND key = $2",
            room_id,
            key,
        )
        deleted = result == "DELETE 1"
        if deleted:
            logger.info(f"Removed reminder {key} from room {room_id}")
        return deleted

    async def get_all(self, room_id: int) -> dict[str, ReminderRecord]:
        rows = await self.db.fetch(
            f"SELECT key, value FROM {self.table} WHERE room_id = $1 ORDER BY created_at",
            room_id,
        )
        return {row["key"]: self._decode(row["value"]) for row in rows}

    async def get_keys(self, room_id: int) -> set[str]:
        rows = await self.db.fetch(
            f"SELECT key FROM {self.table} WHERE room_id = $1",
            room_id,
        )
        return {row["key"] for row in rows}

    async def rooms(self) -> set[int]:
        rows = await self.db.fetch(f"SELECT DISTINCT room_id FROM {self.table}")
        return {row["room_id"] for row in rows}
