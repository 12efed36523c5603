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
remindbot Discord Bot

Maintains the Discord connection and hosts the reminder engine. Pending
reminders are kept in Postgres when DATABASE_URL is set, so they survive
restarts.
"""

import asyncio
import os
from typing import Optional

import asyncpg
import discord
from discord.ext import commands
from dotenv import load_dotenv

import analytics
from commands.reminder_commands import (
    DiscordAuthorization,
    DiscordDelivery,
    ReminderCommands,
)
from reminders import (
    InMemoryReminderStore,
    NltkTagger,
    PostgresReminderStore,
    ReminderConfig,
    ReminderScheduler,
    ReminderStore,
)

load_dotenv()

import logging

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("remindbot")


class ReminderBot(commands.Bot):
    """Discord bot running the deferred reminder engine."""

    def __init__(self, config: Optional[ReminderConfig] = None):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True
        intents.messages = True
        intents.members = True  # resolve @name mentions on delivery

        self.config = config or ReminderConfig.from_env()
        super().__init__(
            command_prefix=self.config.command_prefix,
            intents=intents,
            owner_id=self.config.owner_id,
        )

        self.db_pool: Optional[asyncpg.Pool] = None
        self.scheduler: Optional[ReminderScheduler] = None

    async def _create_store(self) -> ReminderStore:
        if not self.config.database_url:
            logger.warning("No DATABASE_URL, reminders will not survive a restart")
            return InMemoryReminderStore()

        try:
            self.db_pool = await asyncpg.create_pool(self.config.database_url)
            store = PostgresReminderStore(self.db_pool, self.config.table)
            await store.ensure_schema()
            logger.info("Reminder store initialized successfully")
            return store
        except (OSError, asyncpg.PostgresError) as e:
            logger.error(f"Failed to initialize reminder store: {e}", exc_info=True)
            logger.warning("Falling back to in-memory reminder store")
            return InMemoryReminderStore()

    async def setup_hook(self):
        """Called when the bot is starting up."""
        logger.info(f"Setup: DATABASE_URL={'set' if self.config.database_url else 'missing'}")
        logger.info(f"Setup: REMINDER_TIMEZONE={self.config.timezone}")
        logger.info(f"Setup: COMMAND_PREFIX={self.config.command_prefix}")

        store = await self._create_store()
        self.scheduler = ReminderScheduler(
            store=store,
            delivery=DiscordDelivery(self),
            authorization=DiscordAuthorization(self, self.config.owner_id),
            tagger=NltkTagger(),
            config=self.config,
        )
        await self.add_cog(ReminderCommands(self, self.scheduler))

    async def on_ready(self):
        """Called when the bot has connected to Discord."""
        logger.info(f"Logged in as {self.user} (ID: {self.user.id})")
        logger.info(f"Connected to {len(self.guilds)} guild(s)")

    async def close(self):
        """Clean up resources on shutdown."""
        if self.scheduler:
            self.scheduler.shutdown()
        await analytics.shutdown()
        if self.db_pool:
            await self.db_pool.close()
        await super().close()


async def main():
    """Run the bot."""
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        print("Error: DISCORD_BOT_TOKEN environment variable not set")
        print("Please set it in your .env file")
        return

    bot = ReminderBot()
    async with bot:
        await bot.start(token)


def run():
    """Console entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
