"""
Pytest fixtures and in-memory stand-ins for the moderation core's collaborators.
"""

import asyncio
import itertools
from datetime import datetime, timedelta
from typing import Optional

import arrow
import pytest
import pytest_asyncio

from warden import errors
from warden.errors import DataAccessFault, NotificationFault, RemoteActionFault
from warden.moderation.models import ConsistencyMode, EnforcementThresholds, Infraction, SeverityClass
from warden.moderation.service import ModerationService
from warden.utils.scheduling import WorkerPool

COMMUNITY_ID = 1000
MOD_LOG_CHANNEL_ID = 2000
COMMAND_CHANNEL_ID = 3000
BOT_ID = 4000
MODERATOR_ID = 99
BAN_MESSAGE = "You have been banned."


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, now: arrow.Arrow):
        self.now = now

    def __call__(self) -> arrow.Arrow:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now.shift(**kwargs)


class FakeInfractionStore:
    """Keeps warns in a dict. Operations named in `failing` raise DataAccessFault."""

    def __init__(self, journal: list):
        self.records: dict[str, Infraction] = {}
        self.failing: set[str] = set()
        self.journal = journal
        self._ids = itertools.count(1)

    async def _enter(self, operation: str) -> None:
        # Yield to the loop like a real driver would.
        await asyncio.sleep(0)
        if operation in self.failing:
            raise DataAccessFault(f"{operation} failed")
        self.journal.append(("store", operation))

    def seed(self, subject_id: int, severity_class: SeverityClass, created_at: datetime, **kwargs) -> Infraction:
        infraction = Infraction.new(subject_id, MODERATOR_ID, severity_class, "earlier warn", created_at=created_at)
        id_ = str(next(self._ids))
        self.records[id_] = infraction.model_copy(update={"id": id_, **kwargs})
        return self.records[id_]

    async def insert(self, infraction: Infraction) -> str:
        await self._enter("insert")
        id_ = str(next(self._ids))
        self.records[id_] = infraction.with_id(id_)
        return id_

    async def get_active(self, subject_id: int, since: datetime) -> list[Infraction]:
        await self._enter("get_active")
        active = [
            infraction
            for infraction in self.records.values()
            if infraction.subject_id == subject_id and not infraction.discarded and infraction.created_at >= since
        ]
        return sorted(active, key=lambda infraction: infraction.created_at)

    async def get_all(self, subject_id: int) -> list[Infraction]:
        await self._enter("get_all")
        return [infraction for infraction in self.records.values() if infraction.subject_id == subject_id]

    async def find_by_id(self, infraction_id: str) -> Optional[Infraction]:
        await self._enter("find_by_id")
        return self.records.get(infraction_id)

    async def discard_by_id(self, infraction_id: str) -> None:
        await self._enter("discard_by_id")
        if infraction_id in self.records:
            self.records[infraction_id] = self.records[infraction_id].as_discarded()

    async def discard_all_by_subject(self, subject_id: int) -> None:
        await self._enter("discard_all_by_subject")
        for id_, infraction in self.records.items():
            if infraction.subject_id == subject_id:
                self.records[id_] = infraction.as_discarded()


class RecordingActions:
    """Records enforcement actions. Actions named in `failing` raise RemoteActionFault."""

    def __init__(self, journal: list):
        self.calls: list[tuple] = []
        self.failing: set[str] = set()
        self.banned: set[int] = set()
        self.journal = journal

    async def _run(self, action: str, subject_id: int, *args) -> None:
        await asyncio.sleep(0)
        if action in self.failing:
            raise RemoteActionFault(action, subject_id, "missing permissions")
        self.calls.append((action, subject_id, *args))
        self.journal.append(("action", action))

    async def timeout_user(self, subject_id: int, duration: timedelta, reason: str) -> None:
        await self._run("timeout", subject_id, duration, reason)

    async def remove_timeout(self, subject_id: int, reason: str) -> None:
        await self._run("remove_timeout", subject_id, reason)

    async def ban_user(self, subject_id: int, reason: str, history_deletion_days: int) -> None:
        await self._run("ban", subject_id, reason, history_deletion_days)
        self.banned.add(subject_id)

    async def unban_user(self, subject_id: int, reason: str) -> None:
        await self._run("unban", subject_id, reason)
        self.banned.discard(subject_id)

    async def kick_user(self, subject_id: int, reason: str) -> None:
        await self._run("kick", subject_id, reason)

    async def is_currently_banned(self, subject_id: int) -> bool:
        return subject_id in self.banned


class RecordingDispatch:
    """Records delivered notices.

    `direct_result` is what DMs report; `direct_error`, `mod_log_error` and
    `channel_error` make the respective delivery raise instead.
    """

    def __init__(self, journal: list):
        self.direct: list[tuple] = []
        self.mod_log: list[tuple] = []
        self.channel: list[tuple] = []
        self.direct_result = True
        self.direct_error: Optional[Exception] = None
        self.mod_log_error: Optional[Exception] = None
        self.channel_error: Optional[Exception] = None
        self.journal = journal

    async def send_direct(self, user_id, embed, content=None) -> bool:
        await asyncio.sleep(0)
        self.journal.append(("direct", embed.title))
        if self.direct_error:
            raise self.direct_error
        if self.direct_result:
            self.direct.append((user_id, embed, content))
        return self.direct_result

    async def send_to_moderation_log(self, community_id, embed) -> None:
        await asyncio.sleep(0)
        if self.mod_log_error:
            raise self.mod_log_error
        self.mod_log.append((community_id, embed))
        self.journal.append(("mod_log", embed.title))

    async def send_to_channel(self, channel_id, embed) -> None:
        await asyncio.sleep(0)
        if self.channel_error:
            raise self.channel_error
        self.channel.append((channel_id, embed))
        self.journal.append(("channel", embed.title))

    def mod_log_titles(self) -> list[str]:
        return [embed.title for _, embed in self.mod_log]


@pytest.fixture
def journal() -> list:
    return []


@pytest.fixture
def store(journal) -> FakeInfractionStore:
    return FakeInfractionStore(journal)


@pytest.fixture
def actions(journal) -> RecordingActions:
    return RecordingActions(journal)


@pytest.fixture
def dispatch(journal) -> RecordingDispatch:
    return RecordingDispatch(journal)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(arrow.get(2024, 3, 1, 12, 0))


@pytest.fixture
def thresholds() -> EnforcementThresholds:
    return EnforcementThresholds(
        validity_window_days=30,
        decay_interval_days=14,
        decay_amount=10,
        timeout_threshold=50,
        ban_threshold=100,
        timeout_duration_hours=2,
    )


@pytest.fixture
def captured():
    """Collects faults passed to `errors.capture`."""
    faults = []
    errors.set_reporter(lambda error, component: faults.append((component, error)))
    yield faults
    errors.set_reporter(None)


@pytest_asyncio.fixture
async def pool():
    pool = WorkerPool("test-moderation", size=2)
    yield pool
    await pool.close()


@pytest.fixture
def make_service(store, actions, dispatch, clock, thresholds, pool):
    """Builds a ModerationService, optionally with different thresholds or consistency."""

    def factory(consistency: ConsistencyMode = ConsistencyMode.EVENTUAL, **threshold_overrides) -> ModerationService:
        configured = thresholds.model_copy(update=threshold_overrides)
        return ModerationService(
            store,
            actions,
            dispatch,
            community_id=COMMUNITY_ID,
            mod_log_channel_id=MOD_LOG_CHANNEL_ID,
            thresholds=lambda community_id: configured,
            pool=pool,
            ban_message=BAN_MESSAGE,
            consistency=consistency,
            clock=clock,
        )

    return factory


@pytest.fixture
def service(make_service) -> ModerationService:
    return make_service()
