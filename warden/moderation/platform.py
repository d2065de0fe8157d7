"""Discord implementations of enforcement actions and notice delivery."""

from datetime import timedelta
from typing import Optional

import disnake
from disnake import Embed, Guild
from loguru import logger

from warden.errors import NotificationFault, RemoteActionFault


class DiscordEnforcementActions:
    """Carries out punishments in a single guild."""

    def __init__(self, bot: disnake.Client, guild_id: int):
        self.bot = bot
        self.guild_id = guild_id

    @property
    def guild(self) -> Guild:
        guild = self.bot.get_guild(self.guild_id)
        if guild is None:
            raise RemoteActionFault("reach guild", self.guild_id, "guild is not available")
        return guild

    async def _run(self, action: str, subject_id: int, coroutine) -> None:
        """Awaits a Discord request, translating its failures into `RemoteActionFault`."""
        try:
            await coroutine
        except disnake.Forbidden as error:
            logger.warning(f"Failed to {action} user {subject_id}: bot lacks permissions.")
            raise RemoteActionFault(action, subject_id, "missing permissions") from error
        except disnake.HTTPException as error:
            if error.code == 10007 or error.status == 404:
                logger.info(f"Can't {action} user {subject_id} because they left the guild.")
            raise RemoteActionFault(action, subject_id, str(error)) from error

    async def timeout_user(self, subject_id: int, duration: timedelta, reason: str) -> None:
        user = disnake.Object(id=subject_id)
        await self._run("timeout", subject_id, self.guild.timeout(user, duration=duration, reason=reason))

    async def remove_timeout(self, subject_id: int, reason: str) -> None:
        user = disnake.Object(id=subject_id)
        await self._run("remove the timeout of", subject_id, self.guild.timeout(user, duration=None, reason=reason))

    async def ban_user(self, subject_id: int, reason: str, history_deletion_days: int) -> None:
        user = disnake.Object(id=subject_id)
        await self._run(
            "ban",
            subject_id,
            self.guild.ban(user, clean_history_duration=timedelta(days=history_deletion_days), reason=reason),
        )

    async def unban_user(self, subject_id: int, reason: str) -> None:
        await self._run("unban", subject_id, self.guild.unban(disnake.Object(id=subject_id), reason=reason))

    async def kick_user(self, subject_id: int, reason: str) -> None:
        await self._run("kick", subject_id, self.guild.kick(disnake.Object(id=subject_id), reason=reason))

    async def is_currently_banned(self, subject_id: int) -> bool:
        try:
            await self.guild.fetch_ban(disnake.Object(id=subject_id))
        except disnake.NotFound:
            return False
        except disnake.HTTPException as error:
            raise RemoteActionFault("look up the ban of", subject_id, str(error)) from error
        return True


class DiscordNotificationDispatch:
    """Delivers notices through DMs and guild channels."""

    def __init__(self, bot: disnake.Client, mod_log_channels: dict[int, int]):
        self.bot = bot
        self.mod_log_channels = mod_log_channels

    async def send_direct(self, user_id: int, embed: Embed, content: Optional[str] = None) -> bool:
        """Sends an embed to a user's DMs and returns whether the DM was successful."""
        try:
            user = self.bot.get_user(user_id) or await self.bot.fetch_user(user_id)
            await user.send(content=content, embed=embed)
        except disnake.HTTPException:
            logger.debug(
                f"Moderation notice could not be sent to user {user_id}. "
                "The user either could not be retrieved or probably disabled their DMs."
            )
            return False
        return True

    async def _send(self, channel_id: int, embed: Embed) -> None:
        channel = self.bot.get_channel(channel_id)
        if channel is None:
            raise NotificationFault(f"Channel {channel_id} is not available")

        try:
            await channel.send(embed=embed)
        except disnake.HTTPException as error:
            raise NotificationFault(f"Could not send notice to channel {channel_id}: {error}") from error

    async def send_to_moderation_log(self, community_id: int, embed: Embed) -> None:
        try:
            channel_id = self.mod_log_channels[community_id]
        except KeyError as error:
            raise NotificationFault(f"No mod log configured for guild {community_id}") from error

        await self._send(channel_id, embed)

    async def send_to_channel(self, channel_id: int, embed: Embed) -> None:
        await self._send(channel_id, embed)
