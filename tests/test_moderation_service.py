import asyncio
from datetime import timedelta

import pytest

from tests.conftest import BAN_MESSAGE, COMMAND_CHANNEL_ID, COMMUNITY_ID, MOD_LOG_CHANNEL_ID, MODERATOR_ID
from warden.errors import DataAccessFault, NotificationFault, RemoteActionFault, ValidationFault
from warden.moderation.models import ConsistencyMode, SeverityClass
from warden.moderation.service import BAN_HISTORY_DELETION_DAYS, ESCALATION_REASON

USER_ID = 42


def seed_severity(store, clock, *severities: SeverityClass) -> None:
    """Gives USER_ID fresh warns, so their severity is the plain sum of the weights."""
    for severity in severities:
        store.seed(USER_ID, severity, clock.now.shift(hours=-1).datetime)


@pytest.mark.asyncio
async def test_warn_records_and_announces(service, store, dispatch, actions, pool):
    service.warn(USER_ID, MODERATOR_ID, SeverityClass.LOW, "spamming", COMMAND_CHANNEL_ID)
    await pool.join()

    assert len(store.records) == 1
    (infraction,) = store.records.values()
    assert infraction.subject_id == USER_ID
    assert infraction.weight == SeverityClass.LOW.weight
    assert not infraction.discarded

    assert [user_id for user_id, _, _ in dispatch.direct] == [USER_ID]
    assert dispatch.mod_log_titles() == ["Warn Added (10/100)"]
    assert [channel_id for channel_id, _ in dispatch.channel] == [COMMAND_CHANNEL_ID]
    assert dispatch.mod_log[0][0] == COMMUNITY_ID
    assert actions.calls == []


@pytest.mark.asyncio
async def test_warn_returns_before_it_is_recorded(service, store, pool):
    infraction = service.warn(USER_ID, MODERATOR_ID, SeverityClass.LOW, "spamming")

    assert infraction.id is None
    assert store.records == {}

    await pool.join()
    assert len(store.records) == 1


@pytest.mark.asyncio
async def test_quiet_warn_is_not_echoed(service, dispatch, pool):
    service.warn(USER_ID, MODERATOR_ID, SeverityClass.LOW, "spamming", COMMAND_CHANNEL_ID, quiet=True)
    await pool.join()

    assert dispatch.channel == []
    assert len(dispatch.mod_log) == 1


@pytest.mark.asyncio
async def test_warn_in_mod_log_channel_is_not_echoed_twice(service, dispatch, pool):
    service.warn(USER_ID, MODERATOR_ID, SeverityClass.LOW, "spamming", MOD_LOG_CHANNEL_ID)
    await pool.join()

    assert dispatch.channel == []
    assert len(dispatch.mod_log) == 1


@pytest.mark.asyncio
async def test_invalid_warn_is_rejected_before_queueing(service, store):
    with pytest.raises(ValidationFault):
        service.warn(USER_ID, MODERATOR_ID, SeverityClass.LOW, "")

    with pytest.raises(ValidationFault):
        service.warn(USER_ID, MODERATOR_ID, SeverityClass.LOW, "x" * 5000)

    assert store.records == {}


@pytest.mark.asyncio
async def test_timeout_fires_once_when_threshold_is_crossed(make_service, store, actions, clock, pool):
    service = make_service(timeout_threshold=50, ban_threshold=65)
    seed_severity(store, clock, SeverityClass.MEDIUM, SeverityClass.MEDIUM)

    # 40 + 20 = 60 crosses 50, and 60 - 20 = 40 was below it.
    service.warn(USER_ID, MODERATOR_ID, SeverityClass.MEDIUM, "again")
    await pool.join()

    assert actions.calls == [("timeout", USER_ID, timedelta(hours=2), ESCALATION_REASON)]

    # 60 + 10 = 70 was already over the timeout line, but crosses the ban line.
    service.warn(USER_ID, MODERATOR_ID, SeverityClass.LOW, "and again")
    await pool.join()

    assert [call[0] for call in actions.calls] == ["timeout", "ban"]
    assert actions.calls[1] == ("ban", USER_ID, ESCALATION_REASON, BAN_HISTORY_DELETION_DAYS)


@pytest.mark.asyncio
async def test_one_warn_can_trigger_timeout_and_ban(make_service, store, actions, dispatch, clock, pool):
    service = make_service(timeout_threshold=50, ban_threshold=75)
    seed_severity(store, clock, SeverityClass.MEDIUM, SeverityClass.MEDIUM)

    service.warn(USER_ID, MODERATOR_ID, SeverityClass.HIGH, "very bad", COMMAND_CHANNEL_ID)
    await pool.join()

    assert [call[0] for call in actions.calls] == ["timeout", "ban"]
    assert dispatch.mod_log_titles() == ["Warn Added (80/75)", "Timeout", "Ban"]


@pytest.mark.asyncio
async def test_warn_pipeline_order(make_service, store, journal, clock, pool):
    service = make_service(timeout_threshold=50)
    seed_severity(store, clock, SeverityClass.MEDIUM, SeverityClass.MEDIUM)

    service.warn(USER_ID, MODERATOR_ID, SeverityClass.MEDIUM, "again")
    await pool.join()

    assert journal == [
        ("store", "insert"),
        ("store", "get_active"),
        ("direct", "Warn Added (60/100)"),
        ("mod_log", "Warn Added (60/100)"),
        ("action", "timeout"),
        ("direct", "Timeout"),
        ("mod_log", "Timeout"),
    ]


@pytest.mark.asyncio
async def test_old_warns_decay(service, store, clock):
    for _ in range(3):
        store.seed(USER_ID, SeverityClass.MEDIUM, clock.now.shift(days=-29).datetime)

    severity = await service.get_severity(USER_ID)

    # 29 days is two decay steps of 10.
    assert severity.total_severity == 40
    assert severity.applied_decay == 20


@pytest.mark.asyncio
async def test_new_warn_revives_decayed_history(make_service, store, actions, clock, pool):
    service = make_service(timeout_threshold=50)
    for _ in range(3):
        store.seed(USER_ID, SeverityClass.MEDIUM, clock.now.shift(days=-29).datetime)

    # Decay is measured up to the newest warn, which is fresh: 60 + 10 = 70.
    service.warn(USER_ID, MODERATOR_ID, SeverityClass.LOW, "minor")
    await pool.join()

    assert (await service.get_severity(USER_ID)).total_severity == 70
    # The crossing check compares against the undecayed history, 60, which was already past 50.
    assert actions.calls == []


@pytest.mark.asyncio
async def test_failed_insert_aborts_everything(service, store, actions, dispatch, captured, pool):
    store.failing.add("insert")

    service.warn(USER_ID, MODERATOR_ID, SeverityClass.HIGH, "very bad")
    await pool.join()

    assert store.records == {}
    assert dispatch.direct == dispatch.mod_log == dispatch.channel == []
    assert actions.calls == []
    assert [(component, type(error)) for component, error in captured] == [("ModerationService", DataAccessFault)]


@pytest.mark.asyncio
async def test_failed_severity_read_keeps_warn_but_skips_escalation(make_service, store, actions, dispatch, captured, pool):
    service = make_service(timeout_threshold=0)
    store.failing.add("get_active")

    service.warn(USER_ID, MODERATOR_ID, SeverityClass.HIGH, "very bad")
    await pool.join()

    assert len(store.records) == 1
    assert dispatch.mod_log == []
    assert actions.calls == []
    assert len(captured) == 1


@pytest.mark.asyncio
async def test_failed_timeout_leaves_user_warned(make_service, store, actions, dispatch, clock, captured, pool):
    service = make_service(timeout_threshold=50)
    seed_severity(store, clock, SeverityClass.MEDIUM, SeverityClass.MEDIUM)
    actions.failing.add("timeout")

    service.warn(USER_ID, MODERATOR_ID, SeverityClass.MEDIUM, "again")
    await pool.join()

    assert len(store.records) == 3
    assert dispatch.mod_log_titles() == ["Warn Added (60/100)"]
    assert isinstance(captured[0][1], RemoteActionFault)


@pytest.mark.asyncio
async def test_discarding_does_not_reverse_escalation(make_service, store, actions, dispatch, clock, pool):
    service = make_service(timeout_threshold=50)
    seed_severity(store, clock, SeverityClass.MEDIUM, SeverityClass.MEDIUM)
    service.warn(USER_ID, MODERATOR_ID, SeverityClass.MEDIUM, "again")
    await pool.join()

    service.discard_all(USER_ID, MODERATOR_ID)
    await pool.join()

    assert [call[0] for call in actions.calls] == ["timeout"]
    assert all(infraction.discarded for infraction in store.records.values())
    assert dispatch.mod_log_titles()[-1] == "Warns Cleared"
    assert dispatch.direct[-1][0] == USER_ID
    assert (await service.get_severity(USER_ID)).total_severity == 0


@pytest.mark.asyncio
async def test_failed_discard_all_sends_nothing(service, store, dispatch, captured, pool):
    store.failing.add("discard_all_by_subject")

    service.discard_all(USER_ID, MODERATOR_ID)
    await pool.join()

    assert dispatch.mod_log == []
    assert len(captured) == 1


@pytest.mark.asyncio
async def test_discard_one(service, store, dispatch, clock):
    kept = store.seed(USER_ID, SeverityClass.LOW, clock.now.shift(hours=-2).datetime)
    cleared = store.seed(USER_ID, SeverityClass.HIGH, clock.now.shift(hours=-1).datetime)

    assert await service.discard_one(cleared.id, MODERATOR_ID) is True
    assert await service.discard_one("missing", MODERATOR_ID) is False

    assert store.records[cleared.id].discarded
    assert dispatch.mod_log_titles() == ["Warn Cleared"]
    assert dispatch.direct == []

    severity = await service.get_severity(USER_ID)
    assert severity.total_severity == SeverityClass.LOW.weight
    assert [infraction.id for infraction in severity.contributing_infractions] == [kept.id]


@pytest.mark.asyncio
async def test_reads_apply_validity_window(service, store, clock):
    store.seed(USER_ID, SeverityClass.HIGH, clock.now.shift(days=-31).datetime)
    recent = store.seed(USER_ID, SeverityClass.LOW, clock.now.shift(days=-1).datetime)

    assert await service.get_warns(USER_ID) == [recent]
    assert len(await service.get_all_warns(USER_ID)) == 2
    assert (await service.get_severity(USER_ID)).total_severity == SeverityClass.LOW.weight


@pytest.mark.asyncio
async def test_reads_degrade_when_store_fails(service, store, clock, captured):
    store.seed(USER_ID, SeverityClass.HIGH, clock.now.datetime)
    store.failing.update({"get_active", "get_all"})

    severity = await service.get_severity(USER_ID)

    assert severity.total_severity == 0
    assert severity.contributing_infractions == ()
    assert await service.get_warns(USER_ID) == []
    assert await service.get_all_warns(USER_ID) == []
    assert len(captured) == 3


@pytest.mark.asyncio
async def test_timeout_announces_only_on_success(service, actions, dispatch, captured):
    assert await service.timeout(USER_ID, "cool off", MODERATOR_ID, timedelta(hours=1), COMMAND_CHANNEL_ID)
    assert dispatch.mod_log_titles() == ["Timeout"]
    assert len(dispatch.channel) == 1

    actions.failing.add("timeout")
    assert not await service.timeout(USER_ID, "cool off", MODERATOR_ID, timedelta(hours=1), COMMAND_CHANNEL_ID)
    assert dispatch.mod_log_titles() == ["Timeout"]
    assert len(captured) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("duration", [timedelta(0), timedelta(minutes=-5), timedelta(days=29)])
async def test_timeout_rejects_invalid_duration(service, actions, duration):
    with pytest.raises(ValidationFault):
        await service.timeout(USER_ID, "cool off", MODERATOR_ID, duration)

    assert actions.calls == []


@pytest.mark.asyncio
async def test_notification_failure_does_not_undo_action(service, actions, dispatch, captured):
    dispatch.mod_log_error = NotificationFault("mod log is gone")
    dispatch.direct_error = NotificationFault("DMs closed")

    assert await service.remove_timeout(USER_ID, "behaved", MODERATOR_ID, COMMAND_CHANNEL_ID)

    assert actions.calls == [("remove_timeout", USER_ID, "behaved")]
    assert [embed.title for _, embed in dispatch.channel] == ["Timeout Removed"]
    # Only the mod log failure is an operator concern; closed DMs are expected.
    assert len(captured) == 1


@pytest.mark.asyncio
async def test_kick_failure_sends_nothing(service, actions, dispatch):
    actions.failing.add("kick")

    assert not await service.kick(USER_ID, "bye", MODERATOR_ID, COMMAND_CHANNEL_ID)
    assert dispatch.direct == dispatch.mod_log == dispatch.channel == []


@pytest.mark.asyncio
async def test_kick(service, actions, dispatch):
    assert await service.kick(USER_ID, "bye", MODERATOR_ID, quiet=True)

    assert actions.calls == [("kick", USER_ID, "bye")]
    assert dispatch.mod_log_titles() == ["Kick"]
    assert dispatch.channel == []


@pytest.mark.asyncio
async def test_ban_sends_dm_first(service, journal, dispatch):
    assert await service.ban(USER_ID, "raiding", MODERATOR_ID, COMMAND_CHANNEL_ID)

    assert journal == [("direct", "Ban"), ("action", "ban"), ("mod_log", "Ban"), ("channel", "Ban")]
    assert dispatch.direct[0][2] == BAN_MESSAGE


@pytest.mark.asyncio
@pytest.mark.parametrize("dm_fails_by_raising", [True, False])
async def test_ban_is_logged_even_if_dm_fails(service, actions, dispatch, dm_fails_by_raising):
    if dm_fails_by_raising:
        dispatch.direct_error = NotificationFault("DMs closed")
    else:
        dispatch.direct_result = False

    assert await service.ban(USER_ID, "raiding", MODERATOR_ID)

    assert actions.calls == [("ban", USER_ID, "raiding", BAN_HISTORY_DELETION_DAYS)]
    assert dispatch.mod_log_titles() == ["Ban"]


@pytest.mark.asyncio
async def test_ban_is_not_logged_if_ban_fails(service, actions, dispatch, captured):
    actions.failing.add("ban")

    assert not await service.ban(USER_ID, "raiding", MODERATOR_ID)
    assert dispatch.mod_log == []
    assert len(captured) == 1


@pytest.mark.asyncio
async def test_unban(service, actions, dispatch):
    assert await service.unban(USER_ID, "appealed", MODERATOR_ID) is False
    assert actions.calls == []

    actions.banned.add(USER_ID)
    assert await service.unban(USER_ID, "appealed", MODERATOR_ID, COMMAND_CHANNEL_ID) is True

    assert actions.calls == [("unban", USER_ID, "appealed")]
    assert dispatch.mod_log_titles() == ["Ban Revoked"]
    assert dispatch.direct == []
    assert len(dispatch.channel) == 1


@pytest.mark.asyncio
async def test_serialized_mode_sees_every_warn(make_service, store, actions, clock, pool):
    service = make_service(consistency=ConsistencyMode.SERIALIZED, timeout_threshold=50)
    seed_severity(store, clock, SeverityClass.MEDIUM, SeverityClass.MEDIUM)

    service.warn(USER_ID, MODERATOR_ID, SeverityClass.MEDIUM, "first")
    service.warn(USER_ID, MODERATOR_ID, SeverityClass.MEDIUM, "second")
    await pool.join()

    # 60 crosses the line, 80 was already past it.
    assert [call[0] for call in actions.calls] == ["timeout"]


@pytest.mark.asyncio
async def test_warns_for_different_users_run_concurrently(service, store, pool):
    for user_id in range(10):
        service.warn(user_id, MODERATOR_ID, SeverityClass.LOW, "spam")

    await asyncio.wait_for(pool.join(), timeout=5)
    assert len(store.records) == 10


@pytest.mark.asyncio
async def test_rejected_escalation_timeout_does_not_skip_the_ban(make_service, store, actions, clock, captured, pool):
    # Constructing thresholds would reject 720 hours; model_copy skips validation like a stale config would.
    service = make_service(timeout_threshold=50, ban_threshold=75, timeout_duration_hours=720)
    seed_severity(store, clock, SeverityClass.MEDIUM, SeverityClass.MEDIUM)

    service.warn(USER_ID, MODERATOR_ID, SeverityClass.HIGH, "very bad")
    await pool.join()

    assert [call[0] for call in actions.calls] == ["ban"]
    assert [(component, type(error)) for component, error in captured] == [("ModerationService", ValidationFault)]
