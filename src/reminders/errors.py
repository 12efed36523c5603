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
Reminder Errors

Every failure of a single request is turned into a chat reply. None of these
are fatal to the engine.
"""

USAGE = (
    "Usage: `!!reminder [ examples | list | <text> [ at <time> | in <delay> ] | unset <id> ]`"
    " Try `!!reminder examples`"
)


class ReminderError(Exception):
    """Base class for failures that are reported back to the requester."""

    reply = "Something went wrong."
    as_reply = False  # True: reply to the request, False: post to the room

    def __init__(self, reply: str = None):
        if reply is not None:
            self.reply = reply
        super().__init__(self.reply)


class ParseFailure(ReminderError):
    """The time expression could not be understood."""

    reply = "Have a look at the time again, yo!"


class MissingText(ReminderError):
    """A time was found but there is nothing to remind about."""

    reply = USAGE


class UnparseableMessage(ReminderError):
    """The tagger produced nothing for the reminder text."""

    reply = "Could not understand that message. NLP is hard, yo."
    as_reply = True


class Unauthorized(ReminderError):
    """A non-admin attempted an admin-only action."""

    reply = "Only an admin can do that."
    as_reply = True


class StorageFailure(ReminderError):
    """The record could not be persisted; no timer is armed."""

    reply = "Dunno what happened but I couldn't set the reminder."


class KeyNotFound(ReminderError):
    """Unset on an unknown id."""

    reply = "I'm sorry, I couldn't find that key."
    as_reply = True
