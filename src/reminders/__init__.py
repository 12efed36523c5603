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
Deferred Reminders Package

Parses natural-language reminder requests, rewrites them for their recipient,
persists them per room and delivers each one exactly once when due.
"""

from .composer import ReminderComposer
from .config import ReminderConfig
from .errors import ReminderError
from .models import Command, ReminderRecord
from .rewriter import PronounVerbRewriter, TokenClass, translate_pronouns
from .scheduler import (
    AuthorizationCheck,
    Delivery,
    ReminderScheduler,
    Watcher,
    WatcherRegistry,
)
from .store import InMemoryReminderStore, PostgresReminderStore, ReminderStore
from .tagger import NltkTagger, PartOfSpeechTagger
from .target import ResolvedTarget, resolve_target
from .time_parser import (
    TimeParseError,
    parse_absolute,
    parse_relative,
    resolve,
    validate_timezone,
)

__all__ = [
    "AuthorizationCheck",
    "Command",
    "Delivery",
    "InMemoryReminderStore",
    "NltkTagger",
    "PartOfSpeechTagger",
    "PostgresReminderStore",
    "PronounVerbRewriter",
    "ReminderComposer",
    "ReminderConfig",
    "ReminderError",
    "ReminderRecord",
    "ReminderScheduler",
    "ReminderStore",
    "ResolvedTarget",
    "TimeParseError",
    "TokenClass",
    "Watcher",
    "WatcherRegistry",
    "parse_absolute",
    "parse_relative",
    "resolve",
    "resolve_target",
    "translate_pronouns",
    "validate_timezone",
]
