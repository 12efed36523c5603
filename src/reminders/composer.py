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

"""Assembles the sentence the bot posts when a reminder fires."""

import random
from typing import Optional

from .models import EVERYONE, MYSELF

STARTERS = (
    "wanted me to remind you",
    "asked me to remind you",
)

GRUMBLES = (
    "So get on that, would ya?",
    "It's about time you get on that.",
)

TERMINATORS = (".", "!", "?")


class ReminderComposer:
    """
    Frames a rewritten reminder for its recipient.

    Args:
        rng: Source of randomness for the starter phrase and the flourish
        flourish_probability: Chance of grumbling at people who remind themselves
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        flourish_probability: float = 0.05,
    ):
        self.rng = rng or random.Random()
        self.flourish_probability = flourish_probability

    @staticmethod
    def _mention(target: str) -> str:
        if "@" in target:
            return target
        return ", ".join(f"@{name.strip()}" for name in target.split(","))

    def compose(self, target: str, message: str, set_by: str) -> str:
        message = message.strip()
        if not message.endswith(TERMINATORS):
            message += "."

        if target == EVERYONE:
            return f"o/ everyone, {message}"

        if target == MYSELF:
            return f":-) {message}"

        if target == set_by:
            if self.rng.random() < self.flourish_probability:
                message = f"{message} {self.rng.choice(GRUMBLES)}"
            return f"@{target}, {message}"

        starter = self.rng.choice(STARTERS)
        return f"{self._mention(target)}, earlier {set_by} {starter} {message}"
