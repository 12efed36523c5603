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

"""Tests for the reminder scheduler and its timers."""

import asyncio
import sys
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from reminders.composer import ReminderComposer
from reminders.config import ReminderConfig
from reminders.errors import USAGE
from reminders.models import Command, ReminderRecord
from reminders.scheduler import (
    AuthorizationCheck,
    Delivery,
    ReminderScheduler,
    WatcherRegistry,
)
from reminders.store import InMemoryReminderStore
from reminders.tagger import PartOfSpeechTagger

# Thursday 2026-01-01 12:00:00 UTC
NOW = 1767268800
ROOM = 10
ALICE = 1


class WhitespaceTagger(PartOfSpeechTagger):
    TAGS = {"i": "PRP", "am": "VBP", "hate": "VBP"}

    def tag(self, text):
        return [(token, self.TAGS.get(token.lower(), "NN")) for token in text.split()]


class StubRandom:
    def random(self):
        return 0.99

    def choice(self, seq):
        return seq[1]


class FakeDelivery(Delivery):
    def __init__(self):
        self.messages = []
        self.replies = []

    async def post_message(self, room_id, text, allow_mentions=False):
        self.messages.append((room_id, text, allow_mentions))

    async def post_reply(self, command, text):
        self.replies.append((command.id, text))


class FakeAuth(AuthorizationCheck):
    def __init__(self, admins=()):
        self.admins = set(admins)

    async def is_admin(self, room_id, user_id):
        return user_id in self.admins


class FailingStore(InMemoryReminderStore):
    async def set(self, key, record, room_id):
        return False


class UnreadableStore(InMemoryReminderStore):
    """Raises on reading the given keys, like a malformed stored row."""

    def __init__(self, broken):
        super().__init__()
        self.broken = set(broken)

    async def get(self, key, room_id):
        if key in self.broken:
            raise KeyError("roomId")
        return await super().get(key, room_id)


@pytest.fixture(autouse=True)
def no_analytics():
    with patch("reminders.scheduler.track"):
        yield


@pytest.fixture
def delivery():
    return FakeDelivery()


@pytest.fixture
def store():
    return InMemoryReminderStore()


def make_scheduler(store, delivery, admins=()):
    return ReminderScheduler(
        store=store,
        delivery=delivery,
        authorization=FakeAuth(admins),
        tagger=WhitespaceTagger(),
        config=ReminderConfig(apology_delay=0.01),
        composer=ReminderComposer(rng=StubRandom()),
        clock=lambda: NOW,
    )


@pytest_asyncio.fixture
async def scheduler(store, delivery):
    scheduler = make_scheduler(store, delivery)
    yield scheduler
    scheduler.shutdown()


@pytest_asyncio.fixture
async def admin_scheduler(store, delivery):
    scheduler = make_scheduler(store, delivery, admins={ALICE})
    yield scheduler
    scheduler.shutdown()


def command(text, name="reminder", id="100", user_id=ALICE, username="alice"):
    return Command(
        id=id,
        room_id=ROOM,
        user_id=user_id,
        username=username,
        name=name,
        parameters=text.split(),
    )


def record(key, timestamp, text="@alice, stretch.", target="alice"):
    return ReminderRecord(
        id=key,
        room_id=ROOM,
        for_="me",
        target=target,
        text=text,
        delay="",
        user_id=ALICE,
        username="alice",
        timestamp=timestamp,
    )


class TestSetReminder:
    """Scheduling through the reminder command."""

    @pytest.mark.asyncio
    async def test_remind_me(self, scheduler, store, delivery):
        cmd = command("me to grab a beer in 2 hours")
        await scheduler.handle_command(cmd)

        stored = await store.get("100", ROOM)
        assert stored.text == "@alice, grab a beer."
        assert stored.target == "alice"
        assert stored.for_ == "me"
        assert stored.delay == "2 hours"
        assert stored.timestamp == NOW + 7200
        assert scheduler.watchers.get(ROOM, "100").delay == 7200
        assert delivery.messages == [(ROOM, "Reminder set.", False)]

    @pytest.mark.asyncio
    async def test_plain_text_reminds_setter(self, scheduler, store):
        await scheduler.handle_command(command("grab a beer in 2 hours"))

        stored = await store.get("100", ROOM)
        assert stored.text == "@alice, grab a beer."
        assert stored.for_ == ""

    @pytest.mark.asyncio
    async def test_fire_replies_once(self, scheduler, store, delivery):
        cmd = command("grab a beer in 2 hours")
        await scheduler.handle_command(cmd)
        stored = await store.get("100", ROOM)

        await scheduler._fire(stored, cmd)
        await scheduler._fire(stored, cmd)

        assert delivery.replies == [("100", "@alice, grab a beer.")]
        assert await store.exists("100", ROOM) is False

    @pytest.mark.asyncio
    async def test_already_due(self, scheduler, store, delivery):
        await scheduler.handle_command(command("me to stand up at 11:00"))

        assert delivery.replies == [("100", "I guess I'm late: @alice, stand up.")]
        assert await store.get_keys(ROOM) == set()
        assert len(scheduler.watchers) == 0

    @pytest.mark.asyncio
    async def test_someone_else_needs_admin(self, scheduler, store, delivery):
        await scheduler.handle_command(command("@bob to check logs in 1 hour"))

        assert delivery.replies == [
            ("100", "Only an admin can set a reminder for someone else.")
        ]
        assert await store.get_keys(ROOM) == set()

    @pytest.mark.asyncio
    async def test_admin_reminds_someone_else(self, admin_scheduler, store, delivery):
        cmd = command("@bob to check logs in 1 hour")
        await admin_scheduler.handle_command(cmd)

        stored = await store.get("100", ROOM)
        assert stored.text == "@bob, earlier alice asked me to remind you to check logs."
        assert stored.target == "bob"

        await admin_scheduler._fire(stored, cmd)
        assert delivery.messages[-1] == (ROOM, stored.text, True)
        assert delivery.replies == []

    @pytest.mark.asyncio
    async def test_everyone_is_not_pinged(self, scheduler, store, delivery):
        await scheduler.handle_command(command("everyone that strpbrk is a thing in 12 hours"))
        stored = await store.get("100", ROOM)
        assert stored.text == "o/ everyone, strpbrk is a thing."

        await scheduler._fire(stored)
        assert delivery.messages[-1] == (ROOM, "o/ everyone, strpbrk is a thing.", False)

    @pytest.mark.asyncio
    async def test_unparseable_time(self, scheduler, store, delivery):
        await scheduler.handle_command(command("me to grab a beer in flibbertigibbet"))

        assert delivery.messages == [(ROOM, "Have a look at the time again, yo!", False)]
        assert await store.get_keys(ROOM) == set()

    @pytest.mark.asyncio
    async def test_no_time_clause(self, scheduler, delivery):
        await scheduler.handle_command(command("grab a beer"))
        assert delivery.messages == [(ROOM, USAGE, False)]

    @pytest.mark.asyncio
    async def test_no_parameters(self, scheduler, delivery):
        await scheduler.handle_command(command(""))
        assert delivery.messages == [(ROOM, USAGE, False)]

    @pytest.mark.asyncio
    async def test_storage_failure_arms_nothing(self, delivery):
        scheduler = make_scheduler(FailingStore(), delivery)
        await scheduler.handle_command(command("me to grab a beer in 2 hours"))

        assert delivery.messages == [
            (ROOM, "Dunno what happened but I couldn't set the reminder.", False)
        ]
        assert len(scheduler.watchers) == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text,name", [
        ("99999 years grab a beer", "in"),
        ("me to grab a beer in 9999999999999 days", "reminder"),
    ])
    async def test_interval_out_of_range(self, scheduler, store, delivery, text, name):
        await scheduler.handle_command(command(text, name=name))

        assert delivery.messages == [(ROOM, "Have a look at the time again, yo!", False)]
        assert await store.get_keys(ROOM) == set()
        assert len(scheduler.watchers) == 0

    @pytest.mark.asyncio
    async def test_armed_timer_delivers_once(self, scheduler, store, delivery):
        with patch("reminders.scheduler.asyncio.sleep", new=AsyncMock()) as sleep:
            await scheduler.handle_command(command("grab a beer in 2 hours"))
            watcher = scheduler.watchers.get(ROOM, "100")
            await watcher.task

        sleep.assert_awaited_once_with(7200)
        assert delivery.replies == [("100", "@alice, grab a beer.")]
        assert await store.get_keys(ROOM) == set()
        assert len(scheduler.watchers) == 0


class TestShorthand:
    """The in/at commands remind the setter with the raw text."""

    @pytest.mark.asyncio
    async def test_in(self, scheduler, store):
        await scheduler.handle_command(command("2hrs grab a beer", name="in"))

        stored = await store.get("100", ROOM)
        assert stored.text == "grab a beer"
        assert stored.delay == "2 hours"
        assert stored.target == "alice"
        assert scheduler.watchers.get(ROOM, "100").delay == 7200

    @pytest.mark.asyncio
    async def test_in_without_interval(self, scheduler, delivery):
        await scheduler.handle_command(command("grab a beer", name="in"))
        assert delivery.messages == [(ROOM, "Have a look at the time again, yo!", False)]

    @pytest.mark.asyncio
    async def test_at(self, scheduler, store):
        await scheduler.handle_command(command("18:00 Grab a beer!", name="at"))

        stored = await store.get("100", ROOM)
        assert stored.text == "Grab a beer!"
        assert stored.timestamp == NOW + 6 * 3600

    @pytest.mark.asyncio
    async def test_at_invalid_clock(self, scheduler, delivery):
        await scheduler.handle_command(command("25:00 Grab a beer!", name="at"))
        assert delivery.messages == [(ROOM, "Have a look at the time again, yo!", False)]

    @pytest.mark.asyncio
    async def test_at_without_text(self, scheduler, delivery):
        await scheduler.handle_command(command("18:00", name="at"))
        assert delivery.messages == [(ROOM, USAGE, False)]


class TestRoomLifecycle:
    """Rebuilding timers from the store."""

    @pytest.mark.asyncio
    async def test_activation_recovers_and_apologizes(self, scheduler, store, delivery):
        await store.set("1", record("1", NOW - 60), ROOM)
        await store.set("2", record("2", NOW + 3600), ROOM)

        assert await scheduler.activate_room(ROOM) == (1, 1)

        future = scheduler.watchers.get(ROOM, "2")
        assert future.kind == "reminder"
        assert future.delay == pytest.approx(3600)

        apology = scheduler.watchers.get(ROOM, "1")
        assert apology.kind == "apology"
        await apology.task

        assert delivery.messages == [(ROOM, "I guess I'm late but, @alice, stretch.", True)]
        assert await store.get_keys(ROOM) == {"2"}

    @pytest.mark.asyncio
    async def test_reactivation_replaces_timers(self, scheduler, store):
        await store.set("2", record("2", NOW + 3600), ROOM)
        await scheduler.activate_room(ROOM)
        old = scheduler.watchers.get(ROOM, "2")

        await scheduler.activate_room(ROOM)

        with pytest.raises(asyncio.CancelledError):
            await old.task
        assert scheduler.watchers.get(ROOM, "2") is not old
        assert len(scheduler.watchers) == 1

    @pytest.mark.asyncio
    async def test_deactivation_keeps_records(self, scheduler, store):
        await store.set("2", record("2", NOW + 3600), ROOM)
        await scheduler.activate_room(ROOM)

        assert scheduler.deactivate_room(ROOM) == 1
        assert len(scheduler.watchers) == 0
        assert await store.exists("2", ROOM) is True

    @pytest.mark.asyncio
    async def test_unreadable_record_is_skipped(self, delivery):
        store = UnreadableStore({"1"})
        scheduler = make_scheduler(store, delivery)
        await store.set("1", record("1", NOW + 60), ROOM)
        await store.set("2", record("2", NOW + 3600), ROOM)

        assert await scheduler.activate_room(ROOM) == (1, 0)
        assert scheduler.watchers.keys(ROOM) == {"2"}
        scheduler.shutdown()


class TestAdministration:
    @pytest.mark.asyncio
    async def test_unset_requires_admin(self, scheduler, store, delivery):
        await store.set("5", record("5", NOW + 60), ROOM)
        await scheduler.handle_command(command("unset 5"))

        assert delivery.replies == [("100", "Only an admin can unset a reminder.")]
        assert await store.exists("5", ROOM) is True

    @pytest.mark.asyncio
    async def test_unset_unknown_key(self, admin_scheduler, delivery):
        await admin_scheduler.handle_command(command("unset 5"))
        assert delivery.replies == [("100", "I'm sorry, I couldn't find that key.")]

    @pytest.mark.asyncio
    async def test_unset_silences_armed_timer(self, admin_scheduler, store, delivery):
        stored = record("5", NOW + 60)
        await store.set("5", stored, ROOM)
        await admin_scheduler.activate_room(ROOM)

        await admin_scheduler.handle_command(command("unset 5"))
        assert delivery.messages == [(ROOM, "Reminder unset.", False)]

        await admin_scheduler._fire(stored)
        assert delivery.messages == [(ROOM, "Reminder unset.", False)]

    @pytest.mark.asyncio
    async def test_nuke_requires_admin(self, scheduler, delivery):
        await scheduler.handle_command(command("nuke"))
        assert delivery.replies == [
            ("100", "One cannot simply nuke the reminders without asking an admin.")
        ]

    @pytest.mark.asyncio
    async def test_nuke(self, admin_scheduler, store, delivery):
        await store.set("5", record("5", NOW + 60), ROOM)
        await store.set("6", record("6", NOW + 120), ROOM)

        await admin_scheduler.handle_command(command("nuke"))

        assert await store.get_keys(ROOM) == set()
        assert delivery.messages == [(ROOM, "Reminders are gone.", False)]


class TestListing:
    @pytest.mark.asyncio
    async def test_empty(self, scheduler, delivery):
        assert await scheduler.list_reminders(command("list")) == []
        assert delivery.messages == [(ROOM, "There aren't any scheduled reminders.", False)]

    @pytest.mark.asyncio
    async def test_lists_pending_in_due_order(self, scheduler, store, delivery):
        await store.set("7", record("7", NOW + 7200, text="@alice, later."), ROOM)
        await store.set("6", record("6", NOW + 60, text="@alice, sooner."), ROOM)

        await scheduler.handle_command(command("list"))

        lines = delivery.messages[-1][1].split("\n")
        assert lines[0] == "Registered reminders are:"
        assert lines[1] == (
            "• @alice, sooner. → Id: :6 → Thursday, 01st January 2026 12:01 (UTC)"
            " - Set by alice - Seconds left: 60"
        )
        assert lines[2].startswith("• @alice, later. → Id: :7")

    @pytest.mark.asyncio
    async def test_overdue_records_get_delivered(self, scheduler, store, delivery):
        await store.set("8", record("8", NOW - 5), ROOM)

        assert await scheduler.list_reminders(command("list")) == ["8"]
        # nothing pending, so no listing is posted
        assert delivery.messages == []

        watcher = scheduler.watchers.get(ROOM, "8")
        assert watcher.kind == "apology"
        await watcher.task
        assert delivery.messages == [(ROOM, "I guess I'm late but, @alice, stretch.", True)]

    @pytest.mark.asyncio
    async def test_examples(self, scheduler, delivery):
        await scheduler.handle_command(command("examples"))
        text = delivery.messages[0][1]
        assert text.startswith("Examples:")
        assert "!!reminder foo at 18:00" in text
        assert "!!remind yourself that you are a bot... in 5 secs" in text


class TestWatcherRegistry:
    @pytest.mark.asyncio
    async def test_runs_callback_and_removes_itself(self):
        registry = WatcherRegistry()
        callback = AsyncMock()

        watcher = registry.arm(ROOM, "1", 0, callback)
        await watcher.task

        callback.assert_awaited_once()
        assert registry.get(ROOM, "1") is None
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_negative_delay_is_clamped(self):
        registry = WatcherRegistry()
        watcher = registry.arm(ROOM, "1", -30, AsyncMock())
        assert watcher.delay == 0
        await watcher.task

    @pytest.mark.asyncio
    async def test_rearm_cancels_previous(self):
        registry = WatcherRegistry()
        first = registry.arm(ROOM, "1", 3600, AsyncMock())
        second = registry.arm(ROOM, "1", 3600, AsyncMock())

        with pytest.raises(asyncio.CancelledError):
            await first.task
        assert registry.get(ROOM, "1") is second
        assert len(registry) == 1
        registry.cancel_room(ROOM)

    @pytest.mark.asyncio
    async def test_cancel_room(self):
        registry = WatcherRegistry()
        registry.arm(ROOM, "1", 3600, AsyncMock())
        registry.arm(ROOM, "2", 3600, AsyncMock())
        registry.arm(20, "3", 3600, AsyncMock())

        assert registry.cancel_room(ROOM) == 2
        assert registry.rooms() == {20}
        assert registry.cancel(20, "3") is True
        assert registry.cancel(20, "3") is False

    @pytest.mark.asyncio
    async def test_callback_error_is_contained(self):
        registry = WatcherRegistry()
        watcher = registry.arm(ROOM, "1", 0, AsyncMock(side_effect=RuntimeError("boom")))

        await watcher.task

        assert not watcher.task.cancelled()
        assert len(registry) == 0
