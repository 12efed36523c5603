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

"""Works out who a reminder is for from the first word of the request."""

import re
from dataclasses import dataclass

from .models import EVERYONE, MYSELF

# Tokens that never need admin rights, whoever they end up addressing
SELF_SERVICE_TOKENS = ("me", EVERYONE, "yourself")

_MENTION = re.compile(r"@([^\s,@]+)")


@dataclass(frozen=True)
class ResolvedTarget:
    target: str
    message: str
    for_: str  # the raw token if it was recognised, "" for the fallback


def resolve_target(first_token: str, message: str, set_by: str) -> ResolvedTarget:
    """
    Decide the recipient of a reminder.

    ``me``/``everyone``/``yourself``/``@name`` strip the leading token from
    ``message``. Anything else addresses the setter and leaves the message
    intact, first word included.
    """
    first_token = first_token or ""

    if first_token == "me":
        target = set_by
    elif first_token == EVERYONE:
        target = EVERYONE
    elif first_token == "yourself":
        target = MYSELF
    else:
        names = _MENTION.findall(first_token) if first_token.startswith("@") else []
        if not names:
            return ResolvedTarget(target=set_by, message=message, for_="")
        target = ", ".join(names)

    return ResolvedTarget(
        target=target,
        message=message[len(first_token):],
        for_=first_token,
    )


def needs_admin(first_token: str, target: str, set_by: str) -> bool:
    """A non-admin may only address themselves, everyone, or the bot."""
    if first_token in SELF_SERVICE_TOKENS:
        return False
    return set_by.lower() != target.lower()
