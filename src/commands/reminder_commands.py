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
Reminder Chat Commands

Discord prefix commands feeding the reminder engine, plus the Discord side of
its delivery and authorization collaborators. A room is a text channel.
"""

import asyncio
import logging
import re
from typing import Optional

import discord
from discord.ext import commands

from reminders import AuthorizationCheck, Command, Delivery, ReminderScheduler

logger = logging.getLogger("remindbot.commands.reminder")

# Discord message length limit
DISCORD_MAX_LENGTH = 2000

_NAME_MENTION = re.compile(r"@([\w.\-]+)")

# Mentions render as @username; display names may contain spaces
_TEXT = commands.clean_content(use_nicknames=False)


def _truncate(text: str) -> str:
    if len(text) <= DISCORD_MAX_LENGTH:
        return text
    return text[: DISCORD_MAX_LENGTH - 3] + "..."


def link_mentions(channel: discord.abc.Messageable, text: str) -> str:
    """Turn ``@name`` into real member mentions where the guild knows the name."""
    guild = getattr(channel, "guild", None)
    if guild is None:
        return text

    def link(match: re.Match) -> str:
        member = guild.get_member_named(match.group(1))
        return member.mention if member else match.group(0)

    return _NAME_MENTION.sub(link, text)


class DiscordDelivery(Delivery):
    """Posts reminder output to Discord channels."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot

    async def _channel(self, room_id: int) -> discord.abc.Messageable:
        channel = self.bot.get_channel(room_id)
        if channel is None:
            channel = await self.bot.fetch_channel(room_id)
        return channel

    async def post_message(
        self, room_id: int, text: str, allow_mentions: bool = False
    ) -> None:
        channel = await self._channel(room_id)
        if allow_mentions:
            text = link_mentions(channel, text)
            mentions = discord.AllowedMentions(users=True, everyone=False, roles=False)
        else:
            mentions = discord.AllowedMentions.none()
        await channel.send(_truncate(text), allowed_mentions=mentions)

    async def post_reply(self, command: Command, text: str) -> None:
        message: Optional[discord.Message] = command.origin
        if message is None:
            await self.post_message(command.room_id, text, allow_mentions=True)
            return
        try:
            await message.reply(_truncate(text), mention_author=True)
        except discord.HTTPException as e:
            # The original message may have been deleted meanwhile
            logger.warning(f"Reply to {command.id} failed ({e}), posting instead")
            await self.post_message(command.room_id, text, allow_mentions=True)


class DiscordAuthorization(AuthorizationCheck):
    """The bot owner and guild administrators are reminder admins."""

    def __init__(self, bot: commands.Bot, owner_id: Optional[int] = None):
        self.bot = bot
        self.owner_id = owner_id

    async def is_admin(self, room_id: int, user_id: int) -> bool:
        if self.owner_id and user_id == self.owner_id:
            return True

        channel = self.bot.get_channel(room_id)
        guild = getattr(channel, "guild", None)
        if guild is None:
            return False

        member = guild.get_member(user_id)
        if member is None:
            try:
                member = await guild.fetch_member(user_id)
            except discord.NotFound:
                return False

        return channel.permissions_for(member).administrator


class ReminderCommands(commands.Cog):
    """
    Prefix commands for reminders.

    Commands:
    - !!reminder <text> in <interval> / at <time> - Set a reminder (alias: remind)
    - !!reminder list | examples | nuke | unset <id>
    - !!in <interval> <text> - Shorthand, reminds the setter
    - !!at <HH:MM[±HH:MM]> <text> - Shorthand, reminds the setter
    """

    def __init__(self, bot: commands.Bot, scheduler: ReminderScheduler):
        self.bot = bot
        self.scheduler = scheduler
        self._activation: Optional[asyncio.Task] = None

    async def cog_load(self) -> None:
        self._activation = asyncio.create_task(self._activate_rooms())

    async def cog_unload(self) -> None:
        if self._activation is not None:
            self._activation.cancel()
        self.scheduler.shutdown()

    async def _activate_rooms(self) -> None:
        """Rebuild pending timers once the bot can talk to Discord."""
        await self.bot.wait_until_ready()
        rooms = await self.scheduler.store.rooms()
        for room_id in sorted(rooms):
            try:
                await self.scheduler.activate_room(room_id)
            except Exception as e:
                logger.error(f"Failed to restore reminders of room {room_id}: {e}", exc_info=True)
        logger.info(f"Reminder timers restored for {len(rooms)} room(s)")

    @staticmethod
    def _command(ctx: commands.Context, name: str, text: str) -> Command:
        return Command(
            id=str(ctx.message.id),
            room_id=ctx.channel.id,
            user_id=ctx.author.id,
            username=ctx.author.name,
            name=name,
            parameters=str(text).split(),
            origin=ctx.message,
        )

    @commands.command(name="reminder", aliases=["remind"])
    async def reminder(self, ctx: commands.Context, *, text: _TEXT = ""):
        """Set, list or manage reminders."""
        await self.scheduler.handle_command(self._command(ctx, "reminder", text))

    @commands.command(name="in")
    async def in_(self, ctx: commands.Context, *, text: _TEXT = ""):
        """Remind yourself after an interval."""
        await self.scheduler.handle_command(self._command(ctx, "in", text))

    @commands.command(name="at")
    async def at(self, ctx: commands.Context, *, text: _TEXT = ""):
        """Remind yourself at a clock time."""
        await self.scheduler.handle_command(self._command(ctx, "at", text))
