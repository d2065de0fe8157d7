"""Interfaces of the services the moderation core relies on."""

from datetime import datetime, timedelta
from typing import Optional, Protocol

from disnake import Embed

from warden.moderation.models import Infraction


class InfractionStore(Protocol):
    """Durable warn storage. Every method raises `DataAccessFault` on failure."""

    async def insert(self, infraction: Infraction) -> str:
        """Saves a new warn and returns its ID."""

    async def get_active(self, subject_id: int, since: datetime) -> list[Infraction]:
        """Returns non-discarded warns created at or after `since`, oldest first."""

    async def get_all(self, subject_id: int) -> list[Infraction]:
        """Returns every warn of the user, discarded ones included."""

    async def find_by_id(self, infraction_id: str) -> Optional[Infraction]:
        ...

    async def discard_by_id(self, infraction_id: str) -> None:
        ...

    async def discard_all_by_subject(self, subject_id: int) -> None:
        ...


class EnforcementActions(Protocol):
    """Platform-side punishments. Every method raises `RemoteActionFault` on failure."""

    async def timeout_user(self, subject_id: int, duration: timedelta, reason: str) -> None:
        ...

    async def remove_timeout(self, subject_id: int, reason: str) -> None:
        ...

    async def ban_user(self, subject_id: int, reason: str, history_deletion_days: int) -> None:
        ...

    async def unban_user(self, subject_id: int, reason: str) -> None:
        ...

    async def kick_user(self, subject_id: int, reason: str) -> None:
        ...

    async def is_currently_banned(self, subject_id: int) -> bool:
        ...


class NotificationDispatch(Protocol):
    """Delivery of rendered notices. Methods raise `NotificationFault` on failure."""

    async def send_direct(self, user_id: int, embed: Embed, content: Optional[str] = None) -> bool:
        """DMs the user and returns whether the DM went through."""

    async def send_to_moderation_log(self, community_id: int, embed: Embed) -> None:
        ...

    async def send_to_channel(self, channel_id: int, embed: Embed) -> None:
        ...
