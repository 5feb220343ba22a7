"""
Warden - Punishment Service Tests
=================================

End-to-end workflows against a real SQLite store, an in-memory cache
and a recording messenger.
"""

import asyncio
import time
from dataclasses import replace

import pytest

from warden.core.constants import MAX_DISPATCH_ATTEMPTS, STATS_UPDATE_LOCK, THREAD_CREATE_LOCK
from warden.core.database import DatabaseManager, PunishmentType, RevokeKind
from warden.services.punishments import ExpiryScheduler, Reconciler

from conftest import (
    LOG_CHANNEL,
    MODERATOR_UUID,
    MODERATORS_FORUM,
    OTHER_PLAYER_UUID,
    PLAYER_UUID,
    PLAYERS_FORUM,
    FakeCache,
    FakeMessenger,
    ban_event,
    build_service,
    revoke_event,
)


# =============================================================================
# Issue
# =============================================================================

class TestNewPunishment:
    """Tests for the new-punishment workflow."""

    @pytest.mark.asyncio
    async def test_temp_ban_is_persisted_and_dispatched(self, service, store, messenger):
        """Test a temp ban lands in the store, both threads and the log."""
        p = await service.process_punishment(ban_event(duration=3600))

        assert p is not None
        assert p.expires_at == p.created_at + 3600
        assert len(messenger.threads_in(PLAYERS_FORUM)) == 1
        assert len(messenger.threads_in(MODERATORS_FORUM)) == 1
        assert len(messenger.sent_to(LOG_CHANNEL)) == 1
        assert len(messenger.sent_to(p.player_thread_id)) == 1

        stored = store.get_punishment(p.id)
        assert stored.player_message_id == p.player_message_id
        assert stored.moderator_message_id == p.moderator_message_id
        assert stored.log_message_id == p.log_message_id

    @pytest.mark.asyncio
    async def test_console_punishment_skips_moderator_thread(self, service, messenger):
        """Test a punishment with no moderator only touches the player thread."""
        p = await service.process_punishment(ban_event(moderator=False))

        assert p.moderator_thread_id is None
        assert messenger.threads_in(MODERATORS_FORUM) == []
        assert len(messenger.threads_in(PLAYERS_FORUM)) == 1

    @pytest.mark.asyncio
    async def test_invalid_player_uuid_is_dropped(self, service, store, messenger):
        """Test a malformed UUID never reaches the store or Discord."""
        result = await service.process_punishment(ban_event(player_id="not-a-uuid"))

        assert result is None
        assert service.counters["dropped"] == 1
        assert messenger.created == []
        assert store.get_stats()["punishments"] == 0

    @pytest.mark.asyncio
    async def test_repeat_event_merges_into_one_row(self, service, store, messenger):
        """Test the same external id updates the row and edits its messages."""
        first = await service.process_punishment(ban_event(duration=60, reason="Hacking"))
        second = await service.process_punishment(ban_event(duration=600, reason="Hacking, again"))

        assert second.id == first.id
        assert second.reason == "Hacking, again"
        assert second.expires_at == first.created_at + 600
        assert service.counters["merged"] == 1
        assert store.get_stats()["punishments"] == 1

        edited_ids = {message_id for _, message_id, _ in messenger.edited}
        assert first.player_message_id in edited_ids
        assert first.log_message_id in edited_ids

    @pytest.mark.asyncio
    async def test_same_external_id_other_player_is_new_row(self, service, store):
        """Test an external id reused for another player is not merged."""
        await service.process_punishment(ban_event())
        await service.process_punishment(ban_event(player_id=OTHER_PLAYER_UUID, player_name="Dinnerbone"))

        assert store.get_stats()["punishments"] == 2

    @pytest.mark.asyncio
    async def test_concurrent_first_punishments_share_one_thread(self, service, messenger):
        """Test five parallel first-time bans for one player create one thread."""
        messenger.create_delay = 0.01
        events = [ban_event(external_id=str(i), moderator=False) for i in range(5)]

        results = await asyncio.gather(*(service.process_punishment(e) for e in events))

        assert len(messenger.threads_in(PLAYERS_FORUM)) == 1
        assert len({p.player_thread_id for p in results}) == 1

    @pytest.mark.asyncio
    async def test_counters_match_store(self, service, store):
        """Test player and moderator counters equal the punishments table."""
        for external_id in ("1", "2", "3"):
            await service.process_punishment(ban_event(external_id=external_id))
        await service.process_revoke(revoke_event("2"))

        player = store.get_player(PLAYER_UUID)
        moderator = store.get_moderator(MODERATOR_UUID)
        assert (player.total_punishments, player.active_punishments) == (3, 2)
        assert (moderator.total_issued, moderator.active_issued) == (3, 2)

    @pytest.mark.asyncio
    async def test_cache_outage_gives_same_store_state(self, tmp_path, config):
        """Test a disabled cache changes nothing the store records."""
        outcomes = []
        for enabled in (True, False):
            store = DatabaseManager(str(tmp_path / f"cache-{enabled}.db"))
            try:
                svc = build_service(store, FakeCache(enabled=enabled), FakeMessenger(), config)
                await svc.process_punishment(ban_event(external_id="1"))
                await svc.process_punishment(ban_event(external_id="2", type=PunishmentType.MUTE))
                await svc.process_revoke(revoke_event("1"))

                player = store.get_player(PLAYER_UUID)
                outcomes.append((
                    store.get_stats()["punishments"],
                    store.get_stats()["active_punishments"],
                    player.total_punishments,
                    player.active_punishments,
                    player.discord_thread_id is not None,
                ))
            finally:
                store.close()

        assert outcomes[0] == outcomes[1]


# =============================================================================
# Revoke
# =============================================================================

class TestRevoke:
    """Tests for the revoke workflow."""

    @pytest.mark.asyncio
    async def test_revoke_marks_row_and_updates_messages(self, service, store, messenger):
        """Test a manual unban flips the row, edits threads and logs it."""
        p = await service.process_punishment(ban_event())
        revoked = await service.process_revoke(revoke_event(reason="Appeal accepted"))

        assert revoked.revoke_kind is RevokeKind.MANUAL
        assert revoked.revoke_reason == "Appeal accepted"
        assert store.get_punishment(p.id).active is False
        assert len(messenger.sent_to(LOG_CHANNEL)) == 2

        edited = {(channel, message) for channel, message, _ in messenger.edited}
        assert (p.player_thread_id, p.player_message_id) in edited
        assert (p.moderator_thread_id, p.moderator_message_id) in edited

    @pytest.mark.asyncio
    async def test_second_revoke_is_noop(self, service, store, messenger):
        """Test revoking twice sends and edits nothing the second time."""
        await service.process_punishment(ban_event())
        await service.process_revoke(revoke_event())
        sent, edited = len(messenger.sent), len(messenger.edited)

        assert await service.process_revoke(revoke_event()) is None
        assert (len(messenger.sent), len(messenger.edited)) == (sent, edited)
        assert service.counters["revoke_missing"] == 1

        rows = store.fetchall("SELECT active FROM punishments WHERE punishment_id = ?", ("101",))
        assert [r["active"] for r in rows] == [0]

    @pytest.mark.asyncio
    async def test_unban_does_not_revoke_mute_with_same_id(self, service, store):
        """Test the type on a revoke keeps ban and mute ids apart."""
        await service.process_punishment(ban_event(external_id="5", type=PunishmentType.MUTE))
        assert await service.process_revoke(revoke_event("5", type=PunishmentType.BAN)) is None
        assert store.find_active_by_external_id("5", PunishmentType.MUTE) is not None

    @pytest.mark.asyncio
    async def test_kick_cannot_be_revoked(self, service, store):
        """Test a kick stays active when a revoke arrives for it."""
        kick = await service.process_punishment(
            ban_event(external_id="7", type=PunishmentType.KICK, duration=600)
        )
        assert kick.is_permanent

        result = await service.process_revoke(revoke_event("7", type=PunishmentType.KICK))

        assert result is None
        assert service.counters["revoke_refused"] == 1
        assert store.get_punishment(kick.id).active is True

    @pytest.mark.asyncio
    async def test_store_accepts_mechanical_kick_revoke(self, service, store):
        """Test only the service refuses kick revokes; the store does not."""
        kick = await service.process_punishment(ban_event(external_id="7", type=PunishmentType.KICK))
        store.update(kick.revoked(RevokeKind.MANUAL, None, None, None))
        assert store.get_punishment(kick.id).active is False


# =============================================================================
# Expiry and Reconciliation
# =============================================================================

class TestBackgroundPasses:
    """Tests for the expiry scheduler and the reconciler."""

    @pytest.mark.asyncio
    async def test_expiry_revokes_due_rows(self, service, store, config):
        """Test an elapsed temp ban is revoked with kind EXPIRED."""
        p = await service.process_punishment(ban_event(duration=60))
        scheduler = ExpiryScheduler(service, store, config)

        assert await scheduler.run_once(now=time.time() + 120) == 1

        stored = store.get_punishment(p.id)
        assert stored.active is False
        assert stored.revoke_kind is RevokeKind.EXPIRED
        assert scheduler.total_expired == 1

    @pytest.mark.asyncio
    async def test_expiry_leaves_permanent_rows(self, service, store, config):
        """Test a permanent ban is never expired."""
        await service.process_punishment(ban_event(duration=None))
        assert await ExpiryScheduler(service, store, config).run_once(now=time.time() + 10 ** 6) == 0

    @pytest.mark.asyncio
    async def test_retryable_failure_is_queued_and_drained(self, service, store, cache, messenger, config):
        """Test a rate-limited log send is finished by the reconciler."""
        messenger.fail_targets[LOG_CHANNEL] = True
        p = await service.process_punishment(ban_event())

        assert store.get_punishment(p.id).log_message_id is None
        assert cache.queue == [{"action": "dispatch", "punishment_id": p.id}]

        messenger.fail_targets.clear()
        assert await Reconciler(service, store, cache, config).drain_queue() == 1

        stored = store.get_punishment(p.id)
        assert stored.log_message_id is not None
        assert stored.player_message_id == p.player_message_id

    @pytest.mark.asyncio
    async def test_sweep_finishes_old_undispatched_rows(self, service, store, cache, messenger, config):
        """Test a permanent failure is picked up by the store sweep."""
        messenger.fail_targets[LOG_CHANNEL] = False
        p = await service.process_punishment(ban_event())
        assert cache.queue == []

        messenger.fail_targets.clear()
        reconciler = Reconciler(service, store, cache, config)
        swept = await reconciler.sweep_undispatched(now=time.time() + config.reconcile_grace_period + 1)

        assert swept == 1
        assert store.get_punishment(p.id).log_message_id is not None

    @pytest.mark.asyncio
    async def test_sweep_moves_past_rows_that_keep_failing(self, service, store, cache, messenger, config):
        """Test rows that failed a sweep wait, so newer rows get their turn."""
        messenger.fail_targets[LOG_CHANNEL] = False
        for external_id in ("501", "502", "503"):
            await service.process_punishment(ban_event(external_id=external_id))

        reconciler = Reconciler(service, store, cache, config)
        now = time.time() + config.reconcile_grace_period + 1
        passes = [await reconciler.sweep_undispatched(now=now, limit=2) for _ in range(3)]

        assert passes == [2, 1, 0]
        rows = store.fetchall("SELECT punishment_id, dispatch_attempts FROM punishments ORDER BY id")
        assert [(r["punishment_id"], r["dispatch_attempts"]) for r in rows] == [("501", 1), ("502", 1), ("503", 1)]

    @pytest.mark.asyncio
    async def test_sweep_gives_up_after_max_attempts(self, service, store, cache, messenger, config):
        """Test a permanently failing row leaves the sweep after MAX_DISPATCH_ATTEMPTS."""
        messenger.fail_targets[LOG_CHANNEL] = False
        p = await service.process_punishment(ban_event())
        reconciler = Reconciler(service, store, cache, config)

        step = config.reconcile_grace_period + 1
        start = time.time()
        swept = [
            await reconciler.sweep_undispatched(now=start + step * (i + 1))
            for i in range(MAX_DISPATCH_ATTEMPTS + 1)
        ]

        assert swept == [1] * MAX_DISPATCH_ATTEMPTS + [0]
        assert store.get_punishment(p.id).log_message_id is None
        assert len(messenger.sent_to(LOG_CHANNEL)) == 0


# =============================================================================
# Locks and Summaries
# =============================================================================

class TestLocksAndSummaries:
    """Tests for lock timeouts and the summary refresh throttle."""

    @pytest.mark.asyncio
    async def test_thread_lock_timeout_still_persists(self, store, cache, messenger, config):
        """Test a punishment is stored and logged when its player thread is locked elsewhere."""
        service = build_service(store, cache, messenger, replace(config, thread_lock_timeout=0.05))

        async with cache.hold(f"{THREAD_CREATE_LOCK}player:{PLAYER_UUID}", 1):
            p = await service.process_punishment(ban_event())

        assert p.player_thread_id is None
        assert p.player_message_id is None
        assert store.get_punishment(p.id).active is True
        assert len(messenger.sent_to(LOG_CHANNEL)) == 1
        assert messenger.threads_in(PLAYERS_FORUM) == []

    @pytest.mark.asyncio
    async def test_stats_lock_timeout_skips_recompute(self, store, cache, messenger, config):
        """Test a held stats lock skips the player's recompute but not the moderator's."""
        service = build_service(store, cache, messenger, replace(config, stats_lock_timeout=0.05))

        async with cache.hold(f"{STATS_UPDATE_LOCK}player:{PLAYER_UUID}", 1):
            await service.process_punishment(ban_event())

        assert service.counters["stats_skipped"] == 1
        assert store.get_player(PLAYER_UUID).total_punishments == 0
        assert store.get_moderator(MODERATOR_UUID).total_issued == 1

    @pytest.mark.asyncio
    async def test_summary_refresh_is_throttled(self, service, store, messenger):
        """Test the player summary is edited once per interval unless forced."""
        await service.process_punishment(ban_event(external_id="1"))
        await service.process_punishment(ban_event(external_id="2"))

        player = store.get_player(PLAYER_UUID)
        summary = (player.discord_thread_id, player.summary_message_id)

        def summary_edits():
            return sum(1 for channel, message, _ in messenger.edited if (channel, message) == summary)

        assert summary_edits() == 1
        assert player.total_punishments == 2

        await service.resync_player(PLAYER_UUID)
        assert summary_edits() == 2


# =============================================================================
# Submission and Admin Operations
# =============================================================================

class TestSubmission:
    """Tests for fire-and-forget submission and shutdown."""

    @pytest.mark.asyncio
    async def test_submit_before_bind_is_rejected(self, service):
        """Test events are refused until a loop is bound."""
        assert service.submit_punishment(ban_event()) is False

    @pytest.mark.asyncio
    async def test_submit_then_shutdown_finishes_work(self, service, store):
        """Test shutdown waits for submitted workflows."""
        service.bind_loop()
        assert service.submit_punishment(ban_event()) is True

        await service.shutdown(timeout=5)

        assert store.find_active_by_external_id("101") is not None
        assert service.submit_punishment(ban_event(external_id="102")) is False

    @pytest.mark.asyncio
    async def test_submit_from_another_thread(self, service, store):
        """Test a plugin thread can hand events to the loop."""
        service.bind_loop()
        accepted = await asyncio.to_thread(service.submit_punishment, ban_event())
        await asyncio.sleep(0)

        await service.shutdown(timeout=5)

        assert accepted is True
        assert store.find_active_by_external_id("101") is not None

    @pytest.mark.asyncio
    async def test_resync_player_by_name(self, service):
        """Test an admin resync recomputes counters by player name."""
        await service.process_punishment(ban_event(external_id="1"))
        await service.process_punishment(ban_event(external_id="2"))

        record = await service.resync_player("notch")

        assert record.player_id == PLAYER_UUID
        assert record.total_punishments == 2

    @pytest.mark.asyncio
    async def test_resync_unknown_player(self, service):
        """Test resync of a player never seen returns None."""
        assert await service.resync_player("nobody") is None

    @pytest.mark.asyncio
    async def test_service_stats(self, service):
        """Test the stats snapshot reports counters and store health."""
        await service.process_punishment(ban_event())
        stats = await service.get_service_stats()

        assert stats["counters"]["persisted"] == 1
        assert stats["store_available"] is True
        assert stats["resolver"]["threads_created"] == 2
