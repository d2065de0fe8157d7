"""Warns, automatic escalation, and the enforcement actions behind them."""

import asyncio
from contextlib import nullcontext
from datetime import datetime, timedelta
from typing import Callable, Optional

import arrow
from disnake import Embed
from loguru import logger

from warden.errors import DataAccessFault, NotificationFault, RemoteActionFault, ValidationFault, capture
from warden.moderation.models import (
    MAX_TIMEOUT_HOURS,
    ActionKind,
    ConsistencyMode,
    EnforcementEvent,
    EnforcementThresholds,
    Infraction,
    SeverityClass,
    SeverityResult,
)
from warden.moderation.notices import build_clear_warn_notice, build_clear_warns_notice, build_notice
from warden.moderation.ports import EnforcementActions, InfractionStore, NotificationDispatch
from warden.moderation.severity import compute_severity, crossed_threshold
from warden.utils.scheduling import KeyedLock, WorkerPool

COMPONENT = "ModerationService"

BAN_HISTORY_DELETION_DAYS = 7
BAN_DIRECT_MESSAGE_TIMEOUT = 5
MAX_TIMEOUT_DURATION = timedelta(hours=MAX_TIMEOUT_HOURS)
ESCALATION_REASON = "Too many warns"


class ModerationService:
    """Issues warns and carries out the enforcement actions they lead to.

    Warns and clearing all warns of a user are queued on the worker pool and
    return right away. The other actions are coroutines which report whether
    the platform accepted the action. Nothing here raises for store, platform,
    or delivery faults; those are captured for operators instead.
    """

    # pylint: disable=too-many-arguments,too-many-instance-attributes

    def __init__(
        self,
        store: InfractionStore,
        actions: EnforcementActions,
        dispatch: NotificationDispatch,
        *,
        community_id: int,
        mod_log_channel_id: int,
        thresholds: Callable[[int], EnforcementThresholds],
        pool: WorkerPool,
        ban_message: Optional[str] = None,
        consistency: ConsistencyMode = ConsistencyMode.EVENTUAL,
        clock: Callable[[], arrow.Arrow] = arrow.utcnow,
    ):
        self.store = store
        self.actions = actions
        self.dispatch = dispatch
        self.community_id = community_id
        self.mod_log_channel_id = mod_log_channel_id
        self.ban_message = ban_message
        self.consistency = consistency

        self._thresholds = thresholds
        self._pool = pool
        self._clock = clock
        self._subject_locks = KeyedLock()

    @property
    def thresholds(self) -> EnforcementThresholds:
        return self._thresholds(self.community_id)

    def _now(self) -> datetime:
        return self._clock().datetime

    def _event(self, kind: ActionKind, subject_id: int, issuer_id: int, reason: str, quiet: bool, **details):
        return EnforcementEvent(
            subject_id=subject_id,
            issuer_id=issuer_id,
            kind=kind,
            reason=reason,
            quiet=quiet,
            timestamp=self._now(),
            **details,
        )

    def _subject_guard(self, subject_id: int):
        if self.consistency is ConsistencyMode.SERIALIZED:
            return self._subject_locks.hold(subject_id)
        return nullcontext()

    # region: delivery

    async def _send_direct(self, user_id: int, embed: Embed, content: Optional[str] = None) -> bool:
        """DMs a notice to the user. A failed DM is expected and only logged."""
        try:
            sent = await self.dispatch.send_direct(user_id, embed, content)
        except NotificationFault as error:
            logger.debug(f"Could not DM user {user_id}: {error}")
            return False

        if not sent:
            logger.debug(f"User {user_id} could not be DMed; they probably disabled their DMs.")
        return sent

    async def _send_to_moderation_log(self, embed: Embed) -> None:
        try:
            await self.dispatch.send_to_moderation_log(self.community_id, embed)
        except NotificationFault as error:
            capture(error, COMPONENT)

    async def _echo(self, channel_id: Optional[int], embed: Embed, quiet: bool) -> None:
        """Repeats a notice in the channel the action was issued in, unless quiet."""
        if quiet or channel_id is None or channel_id == self.mod_log_channel_id:
            return

        try:
            await self.dispatch.send_to_channel(channel_id, embed)
        except NotificationFault as error:
            capture(error, COMPONENT)

    async def _announce(self, event: EnforcementEvent, embed: Embed, channel_id: Optional[int]) -> None:
        await self._send_direct(event.subject_id, embed)
        await self._send_to_moderation_log(embed)
        await self._echo(channel_id, embed, event.quiet)

    # endregion
    # region: warns

    def warn(
        self,
        subject_id: int,
        issuer_id: int,
        severity_class: SeverityClass,
        reason: str,
        channel_id: Optional[int] = None,
        quiet: bool = False,
    ) -> Infraction:
        """Queues a warn for the user and returns the unsaved infraction.

        Raises `ValidationFault` if the warn is invalid; nothing is queued then.
        """
        infraction = Infraction.new(subject_id, issuer_id, severity_class, reason, created_at=self._now())
        self._pool.submit(self.apply_warn(infraction, channel_id, quiet), component=COMPONENT)
        return infraction

    async def apply_warn(self, infraction: Infraction, channel_id: Optional[int], quiet: bool) -> None:
        """Records the warn, announces it, and escalates if it crossed a threshold."""
        async with self._subject_guard(infraction.subject_id):
            thresholds = self.thresholds

            try:
                infraction = infraction.with_id(await self.store.insert(infraction))
                severity = await self._compute_severity(infraction.subject_id, thresholds)
            except DataAccessFault as error:
                capture(error, COMPONENT)
                return

            total = severity.total_severity
            should_timeout = crossed_threshold(total, infraction.weight, thresholds.timeout_threshold)
            should_ban = total > thresholds.ban_threshold

            logger.info(
                f"Warned user {infraction.subject_id} (#{infraction.id}, {infraction.severity_class.name}); "
                f"severity is now {total}."
            )

            event = self._event(
                ActionKind.WARN,
                infraction.subject_id,
                infraction.issuer_id,
                infraction.reason,
                quiet,
                severity_class=infraction.severity_class,
                total_severity=total,
                max_severity=thresholds.ban_threshold,
            )
            await self._announce(event, build_notice(event), channel_id)

            if should_timeout:
                logger.info(f"User {infraction.subject_id} crossed the timeout threshold.")
                try:
                    await self.timeout(
                        infraction.subject_id,
                        ESCALATION_REASON,
                        infraction.issuer_id,
                        thresholds.timeout_duration,
                        channel_id,
                        quiet,
                    )
                except ValidationFault as error:
                    capture(error, COMPONENT)

            if should_ban:
                logger.info(f"User {infraction.subject_id} exceeded the ban threshold.")
                await self.ban(infraction.subject_id, ESCALATION_REASON, infraction.issuer_id, channel_id, quiet)

    async def _compute_severity(self, subject_id: int, thresholds: EnforcementThresholds) -> SeverityResult:
        """Reads the active warns and computes the severity. Raises `DataAccessFault`."""
        now = self._now()
        since = now - timedelta(days=thresholds.validity_window_days)

        active = await self.store.get_active(subject_id, since)
        return compute_severity(subject_id, now, thresholds, active)

    def discard_all(self, subject_id: int, issuer_id: int) -> None:
        """Queues clearing every warn of the user."""
        self._pool.submit(self.apply_discard_all(subject_id, issuer_id), component=COMPONENT)

    async def apply_discard_all(self, subject_id: int, issuer_id: int) -> None:
        try:
            await self.store.discard_all_by_subject(subject_id)
        except DataAccessFault as error:
            capture(error, COMPONENT)
            return

        logger.info(f"Cleared all warns of user {subject_id}.")

        embed = build_clear_warns_notice(subject_id, issuer_id)
        await self._send_direct(subject_id, embed)
        await self._send_to_moderation_log(embed)

    async def discard_one(self, infraction_id: str, issuer_id: int) -> bool:
        """Clears a single warn. Returns whether a warn with that ID existed."""
        try:
            infraction = await self.store.find_by_id(infraction_id)
            if infraction is None:
                return False
            await self.store.discard_by_id(infraction_id)
        except DataAccessFault as error:
            capture(error, COMPONENT)
            return False

        logger.info(f"Cleared warn #{infraction_id} of user {infraction.subject_id}.")

        await self._send_to_moderation_log(build_clear_warn_notice(infraction, issuer_id))
        return True

    async def get_severity(self, subject_id: int) -> SeverityResult:
        """Returns the user's current severity, or zero if the store is unavailable."""
        try:
            return await self._compute_severity(subject_id, self.thresholds)
        except DataAccessFault as error:
            capture(error, COMPONENT)
            return SeverityResult.empty()

    async def get_warns(self, subject_id: int) -> list[Infraction]:
        """Returns the user's active warns within the validity window."""
        since = self._now() - timedelta(days=self.thresholds.validity_window_days)

        try:
            return await self.store.get_active(subject_id, since)
        except DataAccessFault as error:
            capture(error, COMPONENT)
            return []

    async def get_all_warns(self, subject_id: int) -> list[Infraction]:
        """Returns every warn the user ever received, cleared ones included."""
        try:
            return await self.store.get_all(subject_id)
        except DataAccessFault as error:
            capture(error, COMPONENT)
            return []

    # endregion
    # region: enforcement actions

    async def _enforce(self, event: EnforcementEvent, action) -> bool:
        """Awaits the platform `action` and returns whether it succeeded."""
        logger.trace(f"Applying {event.kind.value} to user {event.subject_id}.")

        try:
            await action
        except RemoteActionFault as error:
            capture(error, COMPONENT)
            return False

        logger.info(f"Applied {event.kind.value} to user {event.subject_id} (actor {event.issuer_id}).")
        return True

    async def timeout(
        self,
        subject_id: int,
        reason: str,
        issuer_id: int,
        duration: timedelta,
        channel_id: Optional[int] = None,
        quiet: bool = False,
    ) -> bool:
        """Times out the user for `duration`. Raises `ValidationFault` for an invalid duration."""
        if not timedelta(0) < duration <= MAX_TIMEOUT_DURATION:
            raise ValidationFault(f"Timeout duration must be positive and at most {MAX_TIMEOUT_DURATION.days} days.")

        event = self._event(ActionKind.TIMEOUT, subject_id, issuer_id, reason, quiet, duration=duration)
        embed = build_notice(event)

        if not await self._enforce(event, self.actions.timeout_user(subject_id, duration, reason)):
            return False

        await self._announce(event, embed, channel_id)
        return True

    async def remove_timeout(
        self, subject_id: int, reason: str, issuer_id: int, channel_id: Optional[int] = None, quiet: bool = False
    ) -> bool:
        event = self._event(ActionKind.REMOVE_TIMEOUT, subject_id, issuer_id, reason, quiet)
        embed = build_notice(event)

        if not await self._enforce(event, self.actions.remove_timeout(subject_id, reason)):
            return False

        await self._announce(event, embed, channel_id)
        return True

    async def kick(
        self, subject_id: int, reason: str, issuer_id: int, channel_id: Optional[int] = None, quiet: bool = False
    ) -> bool:
        event = self._event(ActionKind.KICK, subject_id, issuer_id, reason, quiet)
        embed = build_notice(event)

        if not await self._enforce(event, self.actions.kick_user(subject_id, reason)):
            return False

        await self._announce(event, embed, channel_id)
        return True

    async def ban(
        self, subject_id: int, reason: str, issuer_id: int, channel_id: Optional[int] = None, quiet: bool = False
    ) -> bool:
        """Bans the user.

        The DM goes out first since it can't be delivered once the user is
        gone. The ban happens whether or not the DM succeeds.
        """
        event = self._event(ActionKind.BAN, subject_id, issuer_id, reason, quiet)
        embed = build_notice(event)

        try:
            await asyncio.wait_for(
                self._send_direct(subject_id, embed, self.ban_message), timeout=BAN_DIRECT_MESSAGE_TIMEOUT
            )
        except asyncio.TimeoutError:
            logger.debug(f"Gave up sending the ban DM to user {subject_id}.")

        action = self.actions.ban_user(subject_id, reason, BAN_HISTORY_DELETION_DAYS)
        if not await self._enforce(event, action):
            return False

        await self._send_to_moderation_log(embed)
        await self._echo(channel_id, embed, quiet)
        return True

    async def unban(
        self, subject_id: int, reason: str, issuer_id: int, channel_id: Optional[int] = None, quiet: bool = False
    ) -> bool:
        """Unbans the user. Returns whether they were banned in the first place."""
        try:
            banned = await self.actions.is_currently_banned(subject_id)
        except RemoteActionFault as error:
            capture(error, COMPONENT)
            return False

        if not banned:
            logger.debug(f"User {subject_id} is not banned; nothing to revoke.")
            return False

        event = self._event(ActionKind.UNBAN, subject_id, issuer_id, reason, quiet)
        embed = build_notice(event)

        if await self._enforce(event, self.actions.unban_user(subject_id, reason)):
            await self._send_to_moderation_log(embed)
            await self._echo(channel_id, embed, quiet)

        return True

    # endregion
