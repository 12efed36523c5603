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
Reminder Configuration

Tunable parameters for the reminder engine.
Values can be overridden via environment variables.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .time_parser import validate_timezone

logger = logging.getLogger("remindbot.reminders.config")


@dataclass
class ReminderConfig:
    """Configuration for the reminder engine."""

    # Chat surface
    command_prefix: str = "!!"
    owner_id: Optional[int] = None

    # Zone used for clock times without an offset suffix, and for listings
    timezone: str = "UTC"

    # Seconds to wait before apologising for reminders missed while offline
    apology_delay: float = 1.0

    # Chance of appending an exhortation to self-reminders
    flourish_probability: float = 0.05

    # Persistence
    database_url: Optional[str] = None
    table: str = "reminder_store"

    def __post_init__(self):
        if not validate_timezone(self.timezone):
            logger.warning(f"Invalid timezone '{self.timezone}', falling back to UTC")
            self.timezone = "UTC"
        if not 0.0 <= self.flourish_probability <= 1.0:
            raise ValueError(
                f"flourish_probability must be within [0, 1], got {self.flourish_probability}"
            )
        if self.apology_delay < 0:
            raise ValueError(f"apology_delay must not be negative, got {self.apology_delay}")

    @classmethod
    def from_env(cls) -> "ReminderConfig":
        """Create config from environment variables with defaults."""
        owner_id = os.getenv("OWNER_ID")
        return cls(
            command_prefix=os.getenv("REMINDER_COMMAND_PREFIX", "!!"),
            owner_id=int(owner_id) if owner_id else None,
            timezone=os.getenv("REMINDER_TIMEZONE", "UTC"),
            apology_delay=float(os.getenv("REMINDER_APOLOGY_DELAY", "1.0")),
            flourish_probability=float(
                os.getenv("REMINDER_FLOURISH_PROBABILITY", "0.05")
            ),
            database_url=os.getenv("DATABASE_URL") or None,
            table=os.getenv("REMINDER_TABLE", "reminder_store"),
        )
