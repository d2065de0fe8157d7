"""Our custom instance of disnake.ext.commands.Bot."""

from __future__ import annotations

from asyncio import get_event_loop
from typing import Optional

import aiohttp
from disnake import Activity, ActivityType, AllowedMentions, Embed, HTTPException, Intents, Webhook
from disnake.ext import commands
from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient

from warden import constants, errors
from warden.database import MongoInfractionStore, init_database
from warden.moderation.platform import DiscordEnforcementActions, DiscordNotificationDispatch
from warden.moderation.reconciler import ExternalActionReconciler
from warden.moderation.service import ModerationService
from warden.utils.scheduling import WorkerPool, create_task


class WardenBot(commands.Bot):
    """Our custom instance of disnake.ext.commands.Bot."""

    # pylint: disable=abstract-method,too-many-ancestors

    def __init__(self, *args, http_session: aiohttp.ClientSession, **kwargs):
        super().__init__(*args, **kwargs)

        self.http_session = http_session
        self.database: Optional[AsyncIOMotorClient] = None

        self.moderation_pool = WorkerPool("moderation", size=constants.Moderation.worker_count)
        self.moderation = ModerationService(
            MongoInfractionStore(),
            DiscordEnforcementActions(self, constants.Server.id),
            DiscordNotificationDispatch(self, {constants.Server.id: constants.Channels.mod_log}),
            community_id=constants.Server.id,
            mod_log_channel_id=constants.Channels.mod_log,
            thresholds=constants.get_thresholds,
            pool=self.moderation_pool,
            ban_message=constants.Moderation.ban_message,
            consistency=constants.Moderation.consistency,
        )
        self.reconciler: Optional[ExternalActionReconciler] = None

        errors.set_reporter(self._report_fault)

        self._db_init_task = create_task(self._init_db(), event_loop=self.loop)

    async def _init_db(self) -> None:
        """Initializes the database."""
        self.database = await init_database(constants.Database.uri, constants.Database.name)

    @classmethod
    def create(cls) -> WardenBot:
        """Creates an instance of the Warden bot."""
        loop = get_event_loop()
        activity = Activity(name="the warn ledger", type=ActivityType.watching)

        intents = Intents.default()
        intents.members = True
        intents.message_content = True

        return cls(
            http_session=aiohttp.ClientSession(),
            loop=loop,
            command_prefix=commands.when_mentioned_or(constants.Bot.prefix),
            activity=activity,
            case_insensitive=True,
            allowed_mentions=AllowedMentions(everyone=False),
            intents=intents,
        )

    def load_extensions(self) -> None:
        """Loads all extensions."""
        # This is done here to avoid circular imports.
        from warden.utils.extensions import EXTENSIONS  # pylint: disable=import-outside-toplevel

        for extension in EXTENSIONS:
            logger.debug(f"Loading extension {extension}")
            self.load_extension(extension)

    def _report_fault(self, error: BaseException, component: str) -> None:
        """Forwards a captured fault to the dev log webhook without waiting for it."""
        if not constants.Webhooks.dev_log or self.is_closed():
            return
        create_task(self._send_fault(error, component), name=f"report_fault_{component}")

    async def _send_fault(self, error: BaseException, component: str) -> None:
        embed = Embed(
            title=f"{component}: {error.__class__.__name__}",
            description=f"```{str(error)[:4000]}```",
            color=constants.Colors.red,
        )

        try:
            webhook = Webhook.from_url(constants.Webhooks.dev_log, session=self.http_session)
            await webhook.send(content=f"<@&{constants.Roles.admins}>", embed=embed)
        except HTTPException as http_error:
            logger.error(f"Failed to report fault from {component} to the dev log: status {http_error.status}")

    async def on_connect(self):
        """Logs when the bot connects to Discord."""
        logger.info(f"Connected to Discord as {self.user}")

    async def on_ready(self) -> None:
        """Creates the reconciler once the bot knows its own user."""
        if self.reconciler is None:
            self.reconciler = ExternalActionReconciler(
                self.moderation.dispatch, community_id=constants.Server.id, self_id=self.user.id
            )

        self.moderation_pool.start()
        logger.info("Bot is ready")

    async def on_disconnect(self) -> None:
        """Logs when the bot disconnects from Discord."""
        logger.critical("Disconnected from Discord")

    async def close(self) -> None:
        """Stops the moderation workers and closes the HTTP session before logging out."""
        await self.moderation_pool.close()
        await self.http_session.close()
        await super().close()
