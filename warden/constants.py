"""Constant values for the bot."""

from enum import Enum
from os import environ

from disnake import Color

from warden.moderation.models import ConsistencyMode, EnforcementThresholds


class Bot:
    """Bot-related settings."""

    prefix: str = environ.get("PREFIX", "!")
    token: str = environ.get("TOKEN", "")


class Server:
    """Server-related constants."""

    id: int = int(environ.get("SERVER_ID", 854165018866483240))


class Roles:
    """Role IDs."""

    moderators: int = int(environ.get("ROLE_MODERATORS", 926638942361628721))
    admins: int = int(environ.get("ROLE_ADMINS", 938280082231922749))


class Channels:
    """Channel IDs."""

    mod_log: int = int(environ.get("CHANNEL_MOD_LOG", 854357156861968464))


class Database:
    """Database settings."""

    uri: str = environ.get("DATABASE_URI", "mongodb://localhost:27017")
    name: str = environ.get("DATABASE_NAME", "warden")


def _get_color_env(name: str, default: tuple[int, int, int]) -> Color:
    """Gets an RGB color value from the environment."""
    color_str = environ.get(name, None)

    rgb = default if color_str is None else tuple(map(int, color_str.split(",")))

    return Color.from_rgb(*rgb)


class Colors:
    """Color objects."""

    red: Color = _get_color_env("COLOR_RED", (237, 66, 69))
    green: Color = _get_color_env("COLOR_GREEN", (87, 242, 135))
    yellow: Color = _get_color_env("COLOR_YELLOW", (254, 231, 92))
    blurple: Color = _get_color_env("COLOR_BLURPLE", (88, 101, 242))


class Webhooks:
    """Webhook URLs."""

    dev_log: str = environ.get("WEBHOOK_DEV_LOG", "")


class Moderation:
    """Warn decay and escalation settings."""

    validity_window_days: int = int(environ.get("WARN_VALIDITY_DAYS", 30))
    decay_interval_days: int = int(environ.get("WARN_DECAY_DAYS", 14))
    decay_amount: int = int(environ.get("WARN_DECAY_AMOUNT", 10))
    timeout_threshold: int = int(environ.get("WARN_TIMEOUT_SEVERITY", 50))
    ban_threshold: int = int(environ.get("WARN_BAN_SEVERITY", 100))
    timeout_duration_hours: int = int(environ.get("WARN_TIMEOUT_HOURS", 2))

    ban_message: str = environ.get(
        "BAN_MESSAGE",
        "You have been banned from the server. To appeal this ban, email appeals@bsoyka.me.",
    )
    consistency: ConsistencyMode = ConsistencyMode(environ.get("WARN_CONSISTENCY", "eventual"))
    worker_count: int = int(environ.get("MODERATION_WORKERS", 4))


def get_thresholds(community_id: int) -> EnforcementThresholds:
    """Returns the escalation settings of a server.

    Every server currently shares the environment-configured values.
    """
    # pylint: disable=unused-argument

    return EnforcementThresholds(
        validity_window_days=Moderation.validity_window_days,
        decay_interval_days=Moderation.decay_interval_days,
        decay_amount=Moderation.decay_amount,
        timeout_threshold=Moderation.timeout_threshold,
        ban_threshold=Moderation.ban_threshold,
        timeout_duration_hours=Moderation.timeout_duration_hours,
    )


class Event(Enum):
    """Audit log actions that are reported to the mod log."""

    # pylint: disable=invalid-name

    kick = "kick"
    ban = "ban"
    unban = "unban"
    member_update = "member_update"
