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
Reminder Inspector CLI

Debug tool for the persisted reminder store.

Usage:
    # List pending reminders of every room
    python scripts/reminder_inspector.py list

    # List reminders of one room
    python scripts/reminder_inspector.py list --room 123456789

    # Show one reminder as JSON
    python scripts/reminder_inspector.py show --room 123456789 --key 987654321

    # Remove a reminder (the running bot will skip it when its timer fires)
    python scripts/reminder_inspector.py unset --room 123456789 --key 987654321
"""

import argparse
import asyncio
import json
import logging
import os
import sys
import time
from pathlib import Path

import asyncpg

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from reminders.store import PostgresReminderStore
from reminders.time_parser import format_timestamp

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
)
logger = logging.getLogger(__name__)


def truncate(text: str, max_len: int = 70) -> str:
    """Truncate text with ellipsis."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


async def list_reminders(store: PostgresReminderStore, room_id: int = None, timezone: str = "UTC"):
    """List stored reminders, optionally for one room."""
    rooms = [room_id] if room_id else sorted(await store.rooms())
    now = time.time()
    total = 0

    for room in rooms:
        records = await store.get_all(room)
        if not records:
            continue

        logger.info(f"\n{'='*80}")
        logger.info(f"Room {room}: {len(records)} reminder(s)")
        logger.info(f"{'='*80}")

        for key, record in sorted(records.items(), key=lambda item: item[1].timestamp):
            seconds = record.seconds_left(now)
            state = f"in {seconds}s" if seconds > 0 else f"OVERDUE by {-seconds}s"
            logger.info(f"[{key}] {record.username} -> {record.target} | {state}")
            logger.info(f"    Due: {format_timestamp(record.timestamp, timezone)}")
            logger.info(f"    Text: {truncate(record.text)}")
            total += 1

    if total == 0:
        logger.info("No reminders found.")


async def show_reminder(store: PostgresReminderStore, room_id: int, key: str):
    record = await store.get(key, room_id)
    if record is None:
        logger.error(f"Reminder {key} not found in room {room_id}")
        sys.exit(1)
    logger.info(json.dumps(record.to_dict(), indent=2))


async def unset_reminder(store: PostgresReminderStore, room_id: int, key: str):
    if not await store.unset(key, room_id):
        logger.error(f"Reminder {key} not found in room {room_id}")
        sys.exit(1)
    logger.info(f"Reminder {key} removed from room {room_id}")


async def main_async(args):
    """Async main function."""
    db_url = os.environ.get("DATABASE_URL")
    if not db_url:
        logger.error("DATABASE_URL environment variable required")
        sys.exit(1)

    conn = await asyncpg.connect(db_url)
    store = PostgresReminderStore(conn, os.environ.get("REMINDER_TABLE", "reminder_store"))

    try:
        if args.command == "list":
            await list_reminders(store, room_id=args.room, timezone=args.timezone)
        elif args.command == "show":
            await show_reminder(store, args.room, args.key)
        elif args.command == "unset":
            await unset_reminder(store, args.room, args.key)
    finally:
        await conn.close()


def main():
    parser = argparse.ArgumentParser(
        description="Reminder Inspector CLI - Debug and query the reminder store"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List stored reminders")
    list_parser.add_argument("--room", type=int, help="Filter by room (channel) ID")
    list_parser.add_argument(
        "--timezone", default=os.environ.get("REMINDER_TIMEZONE", "UTC"),
        help="Timezone for due times (default: REMINDER_TIMEZONE or UTC)",
    )

    for name, help_text in (("show", "Show one reminder"), ("unset", "Remove one reminder")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--room", type=int, required=True, help="Room (channel) ID")
        sub.add_argument("--key", required=True, help="Reminder ID")

    args = parser.parse_args()
    asyncio.run(main_async(args))


if __name__ == "__main__":
    main()
