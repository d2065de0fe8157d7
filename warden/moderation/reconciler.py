"""Reports moderation actions that were taken without the bot."""

from datetime import datetime
from typing import Any, Callable, Mapping, Optional

import arrow
from arrow.parser import ParserError
from loguru import logger

from warden.constants import Event
from warden.errors import NotificationFault, UnexpectedStateFault, capture
from warden.moderation.models import ActionKind, EnforcementEvent
from warden.moderation.notices import build_notice
from warden.moderation.ports import NotificationDispatch

COMPONENT = "ExternalActionReconciler"

NO_REASON = "<no reason provided>"
TIMEOUT_KEY = "timeout_until"

_DIRECT_KINDS = {
    Event.kick: ActionKind.KICK,
    Event.ban: ActionKind.BAN,
    Event.unban: ActionKind.UNBAN,
}


class ExternalActionReconciler:
    """Turns audit log entries into the same notices the bot sends for its own actions.

    Only notices are sent: no warn is recorded, no action is executed again,
    and nothing escalates. Entries made by the bot itself are skipped, since
    their notices were already sent when the action was carried out.
    """

    def __init__(
        self,
        dispatch: NotificationDispatch,
        *,
        community_id: int,
        self_id: int,
        clock: Callable[[], arrow.Arrow] = arrow.utcnow,
    ):
        self.dispatch = dispatch
        self.community_id = community_id
        self.self_id = self_id
        self._clock = clock

    async def on_external_action(
        self,
        action_kind: str,
        subject_id: int,
        actor_id: int,
        reason: Optional[str] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Reports an observed action to the mod log. Returns whether a notice was sent."""
        # pylint: disable=too-many-arguments

        if actor_id == self.self_id:
            logger.trace(f"Ignoring {action_kind} of user {subject_id}; the bot did it itself.")
            return False

        try:
            kind = Event(action_kind)
        except ValueError:
            capture(UnexpectedStateFault(f"Unexpected audit log entry: {action_kind}"), COMPONENT)
            return False

        reason = reason or NO_REASON
        extra = extra or {}
        now = self._clock().datetime

        if kind is Event.member_update:
            try:
                event = self._timeout_event(subject_id, actor_id, reason, extra, now)
            except UnexpectedStateFault as error:
                capture(error, COMPONENT)
                return False
            if event is None:
                return False
        else:
            event = EnforcementEvent(
                subject_id=subject_id,
                issuer_id=actor_id,
                kind=_DIRECT_KINDS[kind],
                reason=reason,
                timestamp=now,
                external=True,
            )

        logger.info(f"Reporting manual {event.kind.value} of user {subject_id} by {actor_id}.")

        try:
            await self.dispatch.send_to_moderation_log(self.community_id, build_notice(event))
        except NotificationFault as error:
            capture(error, COMPONENT)
            return False

        return True

    @staticmethod
    def _timeout_event(
        subject_id: int, actor_id: int, reason: str, extra: Mapping[str, Any], now: datetime
    ) -> Optional[EnforcementEvent]:
        """Maps a member update to a timeout or timeout removal, if it changed the timeout at all."""
        if TIMEOUT_KEY not in extra:
            logger.trace(f"Member update of user {subject_id} didn't touch their timeout.")
            return None

        expiry = extra[TIMEOUT_KEY]

        if expiry is None:
            return EnforcementEvent(
                subject_id=subject_id,
                issuer_id=actor_id,
                kind=ActionKind.REMOVE_TIMEOUT,
                reason=reason,
                timestamp=now,
                external=True,
            )

        try:
            expires_at = arrow.get(expiry).datetime
        except (ParserError, TypeError, ValueError) as error:
            raise UnexpectedStateFault(f"Unreadable timeout expiry {expiry!r} for user {subject_id}") from error

        return EnforcementEvent(
            subject_id=subject_id,
            issuer_id=actor_id,
            kind=ActionKind.TIMEOUT,
            reason=reason,
            timestamp=now,
            duration=expires_at - now,
            external=True,
        )
