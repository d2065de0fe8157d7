"""Embeds announcing enforcement actions."""

import textwrap
from typing import Callable

import arrow
from discord_timestamps import TimestampType, format_timestamp
from disnake import Embed

from warden.constants import Colors
from warden.moderation.models import ActionKind, EnforcementEvent, Infraction
from warden.utils.messages import format_user_id
from warden.utils.time import humanize_timedelta

EXTERNAL_SOURCE_TEXT = "This action was executed manually without a bot command."


def _moderation_embed(event: EnforcementEvent, title: str, color) -> Embed:
    """Builds the fields every member-targeted notice shares."""
    embed = Embed(title=title, color=color, timestamp=event.timestamp)

    embed.add_field(name="Member", value=format_user_id(event.subject_id), inline=True)
    embed.add_field(name="Moderator", value=format_user_id(event.issuer_id), inline=True)
    embed.add_field(name="Reason", value=textwrap.shorten(event.reason, width=1024, placeholder="..."), inline=True)
    embed.set_footer(text=f"User ID: {event.subject_id}")

    return embed


def build_warn_notice(event: EnforcementEvent) -> Embed:
    embed = _moderation_embed(
        event, f"Warn Added ({event.total_severity}/{event.max_severity})", Colors.yellow
    )
    severity = event.severity_class
    embed.add_field(name="Severity", value=f"`{severity.name} ({severity.weight})`", inline=True)
    return embed


def build_timeout_notice(event: EnforcementEvent) -> Embed:
    embed = _moderation_embed(event, "Timeout", Colors.red)
    end = arrow.get(event.timestamp) + event.duration

    embed.add_field(name="Duration", value=humanize_timedelta(event.duration), inline=True)
    embed.add_field(name="End", value=format_timestamp(int(end.timestamp()), TimestampType.RELATIVE), inline=True)
    return embed


def build_timeout_removed_notice(event: EnforcementEvent) -> Embed:
    return _moderation_embed(event, "Timeout Removed", Colors.green)


def build_ban_notice(event: EnforcementEvent) -> Embed:
    return _moderation_embed(event, "Ban", Colors.red)


def build_kick_notice(event: EnforcementEvent) -> Embed:
    return _moderation_embed(event, "Kick", Colors.red)


def build_unban_notice(event: EnforcementEvent) -> Embed:
    """The unbanned user isn't necessarily cached, so only their ID is shown."""
    embed = Embed(title="Ban Revoked", color=Colors.red, timestamp=event.timestamp)

    embed.add_field(name="Moderator", value=format_user_id(event.issuer_id), inline=True)
    embed.add_field(name="Reason", value=textwrap.shorten(event.reason, width=1024, placeholder="..."), inline=True)
    embed.add_field(name="User ID", value=f"```{event.subject_id}```", inline=False)
    return embed


NOTICE_BUILDERS: dict[ActionKind, Callable[[EnforcementEvent], Embed]] = {
    ActionKind.WARN: build_warn_notice,
    ActionKind.TIMEOUT: build_timeout_notice,
    ActionKind.REMOVE_TIMEOUT: build_timeout_removed_notice,
    ActionKind.BAN: build_ban_notice,
    ActionKind.UNBAN: build_unban_notice,
    ActionKind.KICK: build_kick_notice,
}


def build_notice(event: EnforcementEvent) -> Embed:
    """Builds the notice for `event`.

    Events that were observed rather than performed by the bot get an extra
    field saying so.
    """
    embed = NOTICE_BUILDERS[event.kind](event)

    if event.external:
        embed.add_field(name="Source", value=EXTERNAL_SOURCE_TEXT, inline=False)

    return embed


def build_clear_warns_notice(subject_id: int, cleared_by: int) -> Embed:
    embed = Embed(
        title="Warns Cleared",
        color=Colors.yellow,
        description=f"All warns have been cleared from {format_user_id(subject_id)}'s record.",
        timestamp=arrow.utcnow().datetime,
    )
    embed.add_field(name="Moderator", value=format_user_id(cleared_by), inline=True)
    embed.set_footer(text=f"User ID: {subject_id}")
    return embed


def build_clear_warn_notice(infraction: Infraction, cleared_by: int) -> Embed:
    created_at = format_timestamp(int(infraction.created_at.timestamp()), TimestampType.LONG_DATETIME)

    description = textwrap.dedent(
        f"""
        Cleared the following warn from {format_user_id(infraction.subject_id)}'s record:

        `{infraction.id}` {created_at}
        Warned by: {format_user_id(infraction.issuer_id)}
        Severity: `{infraction.severity_class.name} ({infraction.weight})`
        Reason: {infraction.reason}
        """
    ).strip()

    embed = Embed(
        title="Warn Cleared",
        color=Colors.yellow,
        description=description,
        timestamp=arrow.utcnow().datetime,
    )
    embed.add_field(name="Moderator", value=format_user_id(cleared_by), inline=True)
    return embed
