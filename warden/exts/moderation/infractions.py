"""Infractions and related utilities."""

from datetime import timedelta
from typing import Optional

from disnake import Embed, Member, User
from disnake.ext.commands import Cog, Context, command, has_any_role
from loguru import logger

from warden.bot import WardenBot
from warden.constants import Colors, Roles
from warden.converters import Duration, Severity
from warden.moderation.service import ModerationService
from warden.utils.messages import format_user_id, send_denial

DEFAULT_REASON = "No reason provided."
MAX_LISTED_WARNS = 15


class Infractions(Cog):
    """Commands for warning and punishing members."""

    def __init__(self, bot: WardenBot):
        self.bot = bot

    @property
    def service(self) -> ModerationService:
        return self.bot.moderation

    @command()
    async def warn(self, ctx: Context, user: Member, severity: Severity, *, reason: str) -> None:
        """Warns a member. Severity is one of `low`, `medium` or `high`."""
        self.service.warn(user.id, ctx.author.id, severity, reason, ctx.channel.id)
        logger.debug(f"{ctx.author} queued a {severity.name} warn for {user}.")
        await ctx.message.add_reaction("\N{OK HAND SIGN}")

    @command(aliases=["warnings", "severity"])
    async def warns(self, ctx: Context, user: User) -> None:
        """Shows a user's active warns and their current severity."""
        severity = await self.service.get_severity(user.id)
        active = await self.service.get_warns(user.id)
        contributing = {infraction.id for infraction in severity.contributing_infractions}

        lines = [
            f"{'**' if infraction.id in contributing else ''}`{infraction.id}` "
            f"{infraction.severity_class.name} ({infraction.weight}): {infraction.reason}"
            f"{'**' if infraction.id in contributing else ''}"
            for infraction in active[-MAX_LISTED_WARNS:]
        ]

        thresholds = self.service.thresholds
        embed = Embed(
            title=f"Severity {severity.total_severity}/{thresholds.ban_threshold}",
            description="\n".join(lines) or "No active warns.",
            color=Colors.yellow,
        )
        embed.add_field(name="User", value=format_user_id(user.id), inline=True)
        embed.add_field(name="Decayed", value=str(severity.applied_decay), inline=True)
        await ctx.send(embed=embed)

    @command(aliases=["clearwarns"])
    async def clear_warns(self, ctx: Context, user: User) -> None:
        """Clears every warn of a user."""
        self.service.discard_all(user.id, ctx.author.id)
        await ctx.message.add_reaction("\N{OK HAND SIGN}")

    @command(aliases=["unwarn"])
    async def clear_warn(self, ctx: Context, infraction_id: str) -> None:
        """Clears a single warn by its ID."""
        if await self.service.discard_one(infraction_id, ctx.author.id):
            await ctx.send(f":ok_hand: cleared warn `{infraction_id}`.")
        else:
            await send_denial(ctx, f"There's no warn with the ID `{infraction_id}`.")

    @command(aliases=["mute"])
    async def timeout(
        self, ctx: Context, user: Member, duration: Optional[Duration] = None, *, reason: Optional[str] = None
    ) -> None:
        """Temporarily timeouts a user for the given reason and duration.

        A unit of time should be appended to the duration.

        If no duration is given, a one-hour duration is used by default.
        """
        if duration is None:
            duration = timedelta(hours=1)

        if user.current_timeout:
            await ctx.send(f":x: {user.mention} is already timed out.")
            return

        succeeded = await self.service.timeout(
            user.id, reason or DEFAULT_REASON, ctx.author.id, duration, ctx.channel.id
        )
        await self._confirm(ctx, "time out", user, succeeded)

    @command(aliases=["unmute"])
    async def untimeout(self, ctx: Context, user: Member, *, reason: Optional[str] = None) -> None:
        """Removes a user's timeout."""
        succeeded = await self.service.remove_timeout(user.id, reason or DEFAULT_REASON, ctx.author.id, ctx.channel.id)
        await self._confirm(ctx, "remove the timeout of", user, succeeded)

    @command()
    async def kick(self, ctx: Context, user: Member, *, reason: Optional[str] = None) -> None:
        """Kicks a member."""
        succeeded = await self.service.kick(user.id, reason or DEFAULT_REASON, ctx.author.id, ctx.channel.id)
        await self._confirm(ctx, "kick", user, succeeded)

    @command()
    async def ban(self, ctx: Context, user: User, *, reason: Optional[str] = None) -> None:
        """Bans a user."""
        succeeded = await self.service.ban(user.id, reason or DEFAULT_REASON, ctx.author.id, ctx.channel.id)
        await self._confirm(ctx, "ban", user, succeeded)

    @command()
    async def unban(self, ctx: Context, user: User, *, reason: Optional[str] = None) -> None:
        """Revokes a user's ban."""
        if not await self.service.unban(user.id, reason or DEFAULT_REASON, ctx.author.id, ctx.channel.id):
            await send_denial(ctx, f"{user.mention} is not banned.")

    @staticmethod
    async def _confirm(ctx: Context, action: str, user: User, succeeded: bool) -> None:
        """Reports failures in the invoking channel. Successes are echoed by the service."""
        if not succeeded:
            await ctx.send(f":x: failed to {action} {user.mention}.")

    async def cog_check(self, ctx: Context) -> bool:
        """Only allow moderators to invoke the commands in this cog."""
        # pylint: disable=invalid-overridden-method

        return await has_any_role(Roles.moderators, Roles.admins).predicate(ctx)


def setup(bot: WardenBot) -> None:
    """Loads the infractions cog."""
    bot.add_cog(Infractions(bot))
