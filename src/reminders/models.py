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
Reminder Data Model

The persisted reminder record and the parsed chat command that produces it.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

# Targets that are roles rather than usernames
EVERYONE = "everyone"
MYSELF = "myself"


@dataclass(frozen=True)
class ReminderRecord:
    """
    A pending reminder as stored in the room's key/value store.

    Records are immutable: the only update path is unset then set again.
    """

    id: str
    room_id: int
    for_: str  # raw target token as typed: me, everyone, yourself, @name or ""
    target: str  # resolved recipient: a username, "everyone" or "myself"
    text: str  # composed delivery text
    delay: str  # normalized time expression, kept for diagnostics
    user_id: int
    username: str
    timestamp: int  # unix seconds

    def seconds_left(self, now: float) -> int:
        return int(self.timestamp - now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "roomId": self.room_id,
            "for": self.for_,
            "target": self.target,
            "text": self.text,
            "delay": self.delay,
            "userId": self.user_id,
            "username": self.username,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReminderRecord":
        # Records written before "target" existed fall back to the setter
        return cls(
            id=str(data["id"]),
            room_id=int(data["roomId"]),
            for_=data.get("for") or "",
            target=data.get("target") or data["username"],
            text=data["text"],
            delay=data.get("delay") or "",
            user_id=int(data["userId"]),
            username=data["username"],
            timestamp=int(data["timestamp"]),
        )


@dataclass
class Command:
    """A chat command addressed to the reminder engine."""

    id: str
    room_id: int
    user_id: int
    username: str
    name: str  # reminder | in | at
    parameters: list[str] = field(default_factory=list)
    origin: Optional[Any] = None  # transport handle used for replies

    def parameter(self, index: int) -> Optional[str]:
        if 0 <= index < len(self.parameters):
            return self.parameters[index]
        return None

    def has_parameters(self) -> bool:
        return bool(self.parameters)

    @property
    def text(self) -> str:
        return " ".join(self.parameters)
