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
Reminder Scheduler Module

Owns every pending one-shot reminder of every room. Each reminder gets its own
asyncio task that sleeps until the due instant, removes the stored record and
delivers the text. Stored records outlive the process; on room activation the
timers are rebuilt from the store, and reminders that came due while the bot
was away are delivered with an apology.
"""

import asyncio
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable, Optional

from analytics import track

from .composer import ReminderComposer
from .config import ReminderConfig
from .errors import (
    USAGE,
    KeyNotFound,
    MissingText,
    ParseFailure,
    ReminderError,
    StorageFailure,
    Unauthorized,
)
from .models import EVERYONE, MYSELF, Command, ReminderRecord
from .rewriter import PronounVerbRewriter
from .store import ReminderStore
from .tagger import PartOfSpeechTagger
from .target import needs_admin, resolve_target
from .time_parser import (
    TimeParseError,
    format_timestamp,
    normalize_expression,
    parse_absolute,
    parse_relative,
    resolve,
)

logger = logging.getLogger("remindbot.reminders.scheduler")

# The last " in " / " at " splits the reminder text from its time
REMINDER_PATTERN = re.compile(r"^(.*)\s+(?:in|at)\s+(.*)$", re.IGNORECASE | re.DOTALL)

BULLET = "•"
ARROW = "→"

EXAMPLES = (
    "Examples: \n"
    f"{BULLET} {{p}}reminder foo at 18:00 \n"
    f"{BULLET} With timezone: (ie. UTC-3) {{p}}reminder foo at 18:00-3:00 \n"
    f"{BULLET} {{p}}at 22:00 Grab a beer! \n"
    f"{BULLET} {{p}}reminder do something in 2 hours \n"
    f"{BULLET} {{p}}remind me to grab a beer in 2 hours \n"
    f"{BULLET} {{p}}remind everyone that strpbrk is a thing... in 12 hours \n"
    f"{BULLET} {{p}}remind @anAdmin to unpin that last xkcd in 2 days\n"
    f"{BULLET} {{p}}remind yourself that you are a bot... in 5 secs\n"
    f"{BULLET} {{p}}in 2 days 42 hours 42 minutes 42 seconds 42! \n"
    f"{BULLET} {{p}}reminder unset 32901146 \n"
    f"{BULLET} {{p}}reminder list \n"
)


class Delivery(ABC):
    """Outbound side of the chat transport."""

    @abstractmethod
    async def post_message(
        self, room_id: int, text: str, allow_mentions: bool = False
    ) -> None:
        ...

    @abstractmethod
    async def post_reply(self, command: Command, text: str) -> None:
        ...


class AuthorizationCheck(ABC):
    @abstractmethod
    async def is_admin(self, room_id: int, user_id: int) -> bool:
        ...


@dataclass
class Watcher:
    """An armed timer for one reminder id in one room."""

    room_id: int
    key: str
    delay: float
    kind: str  # "reminder" or "apology"
    task: asyncio.Task

    def cancel(self) -> None:
        self.task.cancel()


class WatcherRegistry:
    """
    Armed timers indexed by room and reminder id.

    At most one watcher exists per (room, id): arming an id again cancels the
    previous timer first. Watchers remove themselves once they have run.
    """

    def __init__(self):
        self._rooms: dict[int, dict[str, Watcher]] = {}

    def arm(
        self,
        room_id: int,
        key: str,
        delay: float,
        callback: Callable[[], Awaitable[None]],
        kind: str = "reminder",
    ) -> Watcher:
        self.cancel(room_id, key)
        delay = max(0.0, delay)
        task = asyncio.create_task(
            self._run(room_id, key, delay, callback),
            name=f"reminder:{room_id}:{key}",
        )
        watcher = Watcher(room_id=room_id, key=key, delay=delay, kind=kind, task=task)
        self._rooms.setdefault(room_id, {})[key] = watcher
        logger.debug(f"Armed {kind} {key} in room {room_id} for {delay:.0f}s")
        return watcher

    async def _run(
        self,
        room_id: int,
        key: str,
        delay: float,
        callback: Callable[[], Awaitable[None]],
    ) -> None:
        try:
            await asyncio.sleep(delay)
            await callback()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Reminder {key} in room {room_id} failed: {e}", exc_info=True)
            track(
                "reminder_delivery_error",
                "error",
                channel_id=room_id,
                properties={
                    "reminder_id": key,
                    "error_type": type(e).__name__,
                    "error_message": str(e)[:200],
                },
            )
        finally:
            room = self._rooms.get(room_id, {})
            current = room.get(key)
            if current is not None and current.task is asyncio.current_task():
                del room[key]
                if not room:
                    self._rooms.pop(room_id, None)

    def get(self, room_id: int, key: str) -> Optional[Watcher]:
        return self._rooms.get(room_id, {}).get(key)

    def keys(self, room_id: int) -> set[str]:
        return set(self._rooms.get(room_id, {}))

    def cancel(self, room_id: int, key: str) -> bool:
        watcher = self._rooms.get(room_id, {}).pop(key, None)
        if watcher is None:
            return False
        watcher.cancel()
        return True

    def cancel_room(self, room_id: int) -> int:
        """Cancel every watcher of a room. Returns how many were cancelled."""
        room = self._rooms.pop(room_id, {})
        for watcher in room.values():
            watcher.cancel()
        return len(room)

    def rooms(self) -> set[int]:
        return set(self._rooms)

    def __len__(self) -> int:
        return sum(len(room) for room in self._rooms.values())


class ReminderScheduler:
    """
    Entry point of the reminder engine.

    Parses reminder commands, persists them, arms their timers and delivers
    them when due. Every failure of a single command ends up as a chat reply.
    """

    def __init__(
        self,
        store: ReminderStore,
        delivery: Delivery,
        authorization: AuthorizationCheck,
        tagger: PartOfSpeechTagger,
        config: Optional[ReminderConfig] = None,
        composer: Optional[ReminderComposer] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the reminder scheduler.

        Args:
            store: Room-scoped reminder persistence
            delivery: Posts messages and replies to the chat
            authorization: Decides who is an admin in a room
            tagger: Part-of-speech tagger used to rewrite reminder text
            config: Engine settings (defaults if omitted)
            composer: Sentence composer; pass one with a seeded RNG for determinism
            clock: Returns the current unix time in seconds
        """
        self.store = store
        self.delivery = delivery
        self.authorization = authorization
        self.config = config or ReminderConfig()
        self.rewriter = PronounVerbRewriter(tagger)
        self.composer = composer or ReminderComposer(
            flourish_probability=self.config.flourish_probability
        )
        self.clock = clock
        self.watchers = WatcherRegistry()

    # =========================================================================
    # Command routing
    # =========================================================================

    async def handle_command(self, command: Command) -> None:
        """Route a reminder/in/at command and report failures to the requester."""
        try:
            await self._dispatch(command)
        except ReminderError as e:
            logger.info(
                f"Reminder command {command.id} in room {command.room_id} "
                f"rejected: {type(e).__name__}"
            )
            if e.as_reply:
                await self.delivery.post_reply(command, e.reply)
            else:
                await self.delivery.post_message(command.room_id, e.reply)

    async def _dispatch(self, command: Command) -> None:
        track(
            "command_used",
            "command",
            user_id=command.user_id,
            channel_id=command.room_id,
            properties={"command_name": command.name, "subcommand": command.parameter(0)},
        )

        if not command.has_parameters():
            await self.delivery.post_message(command.room_id, USAGE)
            return

        if command.name in ("in", "at"):
            await self.set_reminder(command, command.name)
            return

        first = command.parameter(0)
        if len(command.parameters) == 1:
            if first == "list":
                await self.list_reminders(command)
                return
            if first == "examples":
                await self.examples(command)
                return
            if first == "nuke":
                await self.nuke(command)
                return

        if first == "unset" and len(command.parameters) == 2:
            await self.unset(command)
            return

        await self.set_reminder(command, "reminder")

    # =========================================================================
    # Scheduling
    # =========================================================================

    async def _compose(self, command: Command) -> tuple[str, str, str, str]:
        """Split a ``reminder`` command into (time, text, target, raw target token)."""
        match = REMINDER_PATTERN.match(command.text)
        if not match:
            raise MissingText()

        body, time_expr = match.group(1), match.group(2)
        if not time_expr.strip():
            raise ParseFailure()
        if not body.strip():
            raise MissingText()

        set_by = command.username
        first_token = command.parameter(0) or ""
        resolved = resolve_target(first_token, body, set_by)

        if needs_admin(first_token, resolved.target, set_by):
            if not await self.authorization.is_admin(command.room_id, command.user_id):
                raise Unauthorized("Only an admin can set a reminder for someone else.")

        if not resolved.message.strip():
            raise MissingText()

        # Tagging may load model data from disk; keep it off the event loop
        rewritten = await asyncio.to_thread(
            self.rewriter.prepare, resolved.message.strip(), resolved.target, set_by
        )
        if not rewritten.strip():
            raise MissingText()

        text = self.composer.compose(resolved.target, rewritten, set_by)
        return normalize_expression(time_expr), text, resolved.target, resolved.for_

    async def set_reminder(self, command: Command, mode: str) -> Optional[ReminderRecord]:
        """
        Schedule a reminder from a command.

        Args:
            command: The originating chat command
            mode: "reminder", "in" or "at"

        Returns:
            The stored record, or None if the reminder was already due and
            delivered immediately

        Raises:
            ReminderError: On any user-facing failure; nothing is stored or armed
        """
        target, for_ = command.username, ""
        time_expr, text = "", ""

        if mode == "in":
            relative = parse_relative(command.text)
            if relative:
                time_expr, text = relative
        elif mode == "at":
            token = command.parameter(0) or ""
            if parse_absolute(token):
                time_expr = token
                text = " ".join(p for p in command.parameters if p != token)
        else:
            time_expr, text, target, for_ = await self._compose(command)

        if not time_expr:
            raise ParseFailure()
        if not text.strip():
            raise MissingText()

        now = self.clock()
        try:
            timestamp = resolve(time_expr, now, self.config.timezone)
        except TimeParseError as e:
            logger.info(f"Could not resolve time for {command.id}: {e}")
            raise ParseFailure() from e

        record = ReminderRecord(
            id=str(command.id),
            room_id=command.room_id,
            for_=for_,
            target=target,
            text=text.strip(),
            delay=time_expr,
            user_id=command.user_id,
            username=command.username,
            timestamp=timestamp,
        )

        if record.seconds_left(now) <= 0:
            logger.info(f"Reminder {record.id} is already due, delivering now")
            await self.delivery.post_reply(command, f"I guess I'm late: {record.text}")
            return None

        if not await self.store.set(record.id, record, record.room_id):
            raise StorageFailure()

        self._arm(record, command, now)
        await self.delivery.post_message(command.room_id, "Reminder set.")

        logger.info(
            f"Set reminder {record.id} in room {record.room_id} for {record.target}: "
            f"due={record.timestamp}, delay={record.delay!r}"
        )
        track(
            "reminder_set",
            "reminder",
            user_id=command.user_id,
            channel_id=command.room_id,
            properties={
                "reminder_id": record.id,
                "mode": mode,
                "for": record.for_,
                "seconds": record.seconds_left(now),
            },
        )
        return record

    def _arm(
        self,
        record: ReminderRecord,
        command: Optional[Command] = None,
        now: Optional[float] = None,
    ) -> Watcher:
        now = self.clock() if now is None else now
        return self.watchers.arm(
            record.room_id,
            record.id,
            record.timestamp - now,
            partial(self._fire, record, command),
        )

    async def _fire(self, record: ReminderRecord, command: Optional[Command] = None) -> None:
        """Deliver a due reminder. Does nothing if the record was unset meanwhile."""
        if not await self.store.unset(record.id, record.room_id):
            logger.info(
                f"Reminder {record.id} in room {record.room_id} no longer stored, skipping"
            )
            return

        if record.target in (EVERYONE, MYSELF):
            await self.delivery.post_message(record.room_id, record.text)
        elif record.target != record.username or command is None:
            await self.delivery.post_message(record.room_id, record.text, allow_mentions=True)
        else:
            await self.delivery.post_reply(command, record.text)

        logger.info(f"Delivered reminder {record.id} in room {record.room_id}")
        track(
            "reminder_delivered",
            "reminder",
            user_id=record.user_id,
            channel_id=record.room_id,
            properties={"reminder_id": record.id, "target": record.for_ or "setter"},
        )

    async def _apologize(self, record: ReminderRecord) -> None:
        if not await self.store.unset(record.id, record.room_id):
            return

        await self.delivery.post_message(
            record.room_id, f"I guess I'm late but, {record.text}", allow_mentions=True
        )
        logger.info(f"Delivered overdue reminder {record.id} in room {record.room_id}")
        track(
            "reminder_recovered",
            "reminder",
            user_id=record.user_id,
            channel_id=record.room_id,
            properties={"reminder_id": record.id, "overdue": True},
        )

    def _arm_apology(self, record: ReminderRecord) -> Watcher:
        return self.watchers.arm(
            record.room_id,
            record.id,
            self.config.apology_delay,
            partial(self._apologize, record),
            kind="apology",
        )

    # =========================================================================
    # Room lifecycle
    # =========================================================================

    async def activate_room(self, room_id: int) -> tuple[int, int]:
        """
        Rebuild the timers of a room from the store.

        Returns:
            (number of reminders re-armed, number of overdue reminders)
        """
        self.watchers.cancel_room(room_id)

        keys = await self.store.get_keys(room_id)
        now = self.clock()
        rescheduled = overdue = 0

        for key in sorted(keys):
            try:
                record = await self.store.get(key, room_id)
            except Exception as e:
                logger.error(
                    f"Skipping unreadable reminder {key} in room {room_id}: {e}",
                    exc_info=True,
                )
                continue
            if record is None:
                continue

            if record.seconds_left(now) <= 0:
                self._arm_apology(record)
                overdue += 1
            else:
                self._arm(record, None, now)
                rescheduled += 1

        if overdue:
            logger.warning(f"Room {room_id} has {overdue} overdue reminder(s)")
        logger.info(f"Activated room {room_id}: {rescheduled} reminder(s) re-armed")
        return rescheduled, overdue

    def deactivate_room(self, room_id: int) -> int:
        """Cancel the room's timers. Stored records are kept for the next activation."""
        cancelled = self.watchers.cancel_room(room_id)
        logger.info(f"Deactivated room {room_id}: {cancelled} timer(s) cancelled")
        return cancelled

    def shutdown(self) -> None:
        for room_id in self.watchers.rooms():
            self.deactivate_room(room_id)

    # =========================================================================
    # Administration and listing
    # =========================================================================

    async def unset(self, command: Command) -> None:
        """Remove one stored reminder. Its timer, if armed, will find nothing to deliver."""
        key = str(command.parameter(1))
        if not await self.authorization.is_admin(command.room_id, command.user_id):
            raise Unauthorized("Only an admin can unset a reminder.")

        if not await self.store.exists(key, command.room_id):
            raise KeyNotFound()

        await self.store.unset(key, command.room_id)
        await self.delivery.post_message(command.room_id, "Reminder unset.")

        logger.info(f"Reminder {key} in room {command.room_id} unset by {command.username}")
        track(
            "reminder_unset",
            "reminder",
            user_id=command.user_id,
            channel_id=command.room_id,
            properties={"reminder_id": key},
        )

    async def nuke(self, command: Command) -> None:
        if not await self.authorization.is_admin(command.room_id, command.user_id):
            raise Unauthorized("One cannot simply nuke the reminders without asking an admin.")

        keys = await self.store.get_keys(command.room_id)
        for key in keys:
            await self.store.unset(key, command.room_id)

        await self.delivery.post_message(command.room_id, "Reminders are gone.")
        logger.info(f"Room {command.room_id}: {len(keys)} reminder(s) nuked by {command.username}")
        track(
            "reminders_nuked",
            "reminder",
            user_id=command.user_id,
            channel_id=command.room_id,
            properties={"count": len(keys)},
        )

    async def list_reminders(self, command: Command) -> list[str]:
        """
        Post the pending reminders of the room.

        Overdue records are left out. Those without an armed timer get an
        apology scheduled so they are delivered and cleaned up.

        Returns:
            Ids of the overdue records
        """
        records = await self.store.get_all(command.room_id)
        if not records:
            await self.delivery.post_message(
                command.room_id, "There aren't any scheduled reminders."
            )
            return []

        now = self.clock()
        lines = ["Registered reminders are:"]
        overdue = []

        for key, record in sorted(records.items(), key=lambda item: item[1].timestamp):
            seconds = record.seconds_left(now)
            if seconds <= 0:
                overdue.append(key)
                continue

            lines.append(
                f"{BULLET} {record.text} {ARROW} Id: :{key} {ARROW} "
                f"{format_timestamp(record.timestamp, self.config.timezone)} - "
                f"Set by {record.username} - Seconds left: {seconds}"
            )

        for key in overdue:
            if self.watchers.get(command.room_id, key) is None:
                self._arm_apology(records[key])

        if len(lines) > 1:
            await self.delivery.post_message(command.room_id, "\n".join(lines))
        return overdue

    async def examples(self, command: Command) -> None:
        await self.delivery.post_message(
            command.room_id, EXAMPLES.format(p=self.config.command_prefix)
        )
