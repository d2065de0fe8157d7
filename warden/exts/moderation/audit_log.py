"""Mod log reports for moderation done directly through Discord."""

from disnake import AuditLogAction, AuditLogEntry
from disnake.ext.commands import Cog
from loguru import logger

from warden.bot import WardenBot
from warden.constants import Event, Server
from warden.moderation.reconciler import TIMEOUT_KEY

REPORTED_ACTIONS = {
    AuditLogAction.kick: Event.kick,
    AuditLogAction.ban: Event.ban,
    AuditLogAction.unban: Event.unban,
    AuditLogAction.member_update: Event.member_update,
}


class AuditLog(Cog):
    """Forwards kicks, bans, unbans and timeouts from the audit log to the mod log."""

    def __init__(self, bot: WardenBot):
        self.bot = bot

    @staticmethod
    def extract_changes(entry: AuditLogEntry) -> dict:
        """Returns the changed values the reconciler cares about.

        disnake exposes `communication_disabled_until` as `timeout`.
        """
        changes = dict(entry.after)
        if "timeout" in changes:
            return {TIMEOUT_KEY: changes["timeout"]}
        return {}

    @Cog.listener()
    async def on_audit_log_entry_create(self, entry: AuditLogEntry) -> None:
        """Reports moderation audit log entries that weren't made through the bot."""
        if entry.guild.id != Server.id or entry.action not in REPORTED_ACTIONS:
            return

        if entry.user is None or getattr(entry.target, "id", None) is None:
            logger.debug(f"Skipping {entry.action} audit log entry {entry.id} without a known actor or target.")
            return

        if self.bot.reconciler is None:
            logger.warning(f"Audit log entry {entry.id} arrived before the bot was ready; it won't be reported.")
            return

        await self.bot.reconciler.on_external_action(
            REPORTED_ACTIONS[entry.action].value,
            entry.target.id,
            entry.user.id,
            entry.reason,
            self.extract_changes(entry),
        )


def setup(bot: WardenBot) -> None:
    """Loads the audit log cog."""
    bot.add_cog(AuditLog(bot))
