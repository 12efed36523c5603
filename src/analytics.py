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
Event tracking for remindbot.

Usage:
    from analytics import track

    track("reminder_set", "reminder", user_id=123, channel_id=456, properties={"mode": "in"})

Events go to the ``analytics_events`` table of DATABASE_URL. Without a
database, or with ANALYTICS_ENABLED=false, tracking is a no-op.
"""

import asyncio
import json
import logging
import os
from typing import Any, Optional

import asyncpg

logger = logging.getLogger("remindbot.analytics")

_pool: Optional[asyncpg.Pool] = None
_pending: set[asyncio.Task] = set()


def _enabled() -> bool:
    return (
        os.getenv("ANALYTICS_ENABLED", "true").lower() == "true"
        and bool(os.getenv("DATABASE_URL"))
    )


async def _get_pool() -> Optional[asyncpg.Pool]:
    """Get or create the connection pool."""
    global _pool
    if _pool is None:
        try:
            _pool = await asyncpg.create_pool(
                os.getenv("DATABASE_URL"), min_size=1, max_size=2
            )
            await _pool.execute(
                """
                CREATE TABLE IF NOT EXISTS analytics_events (
                    id BIGSERIAL PRIMARY KEY,
                    event_name TEXT NOT NULL,
                    event_category TEXT NOT NULL,
                    user_id BIGINT,
                    channel_id BIGINT,
                    properties JSONB NOT NULL DEFAULT '{}',
                    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
                )
                """
            )
        except (OSError, asyncpg.PostgresError) as e:
            logger.warning(f"Analytics pool creation failed: {e}")
            _pool = None
    return _pool


async def track_async(
    event_name: str,
    event_category: str,
    user_id: Optional[int] = None,
    channel_id: Optional[int] = None,
    properties: Optional[dict[str, Any]] = None,
) -> bool:
    """
    Record an event and wait for the write.

    Args:
        event_name: Specific event identifier (e.g., "reminder_set")
        event_category: One of: reminder, command, error, system
        user_id: Chat user ID (optional)
        channel_id: Room ID (optional)
        properties: Additional event data as key-value pairs

    Returns:
        True if event was recorded, False otherwise
    """
    if not _enabled():
        return False

    pool = await _get_pool()
    if pool is None:
        return False

    try:
        await pool.execute(
            """
            INSERT INTO analytics_events
                (event_name, event_category, user_id, channel_id, properties)
            VALUES ($1, $2, $3, $4, $5::jsonb)
            """,
            event_name,
            event_category,
            user_id,
            channel_id,
            json.dumps(properties or {}, default=str),
        )
        return True
    except (OSError, asyncpg.PostgresError) as e:
        logger.debug(f"Analytics tracking failed: {e}")
        return False


def track(
    event_name: str,
    event_category: str,
    user_id: Optional[int] = None,
    channel_id: Optional[int] = None,
    properties: Optional[dict[str, Any]] = None,
) -> None:
    """Record an event in the background without blocking the caller."""
    if not _enabled():
        return

    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # No running loop - skip tracking
        return

    task = loop.create_task(
        track_async(event_name, event_category, user_id, channel_id, properties)
    )
    _pending.add(task)
    task.add_done_callback(_pending.discard)


async def shutdown() -> None:
    """Close the connection pool. Call on bot shutdown."""
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None
