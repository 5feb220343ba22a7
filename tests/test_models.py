"""
Warden - Model Tests
====================

Punishment snapshot invariants and enum parsing.
"""

import pytest

from warden.core.database.models import Punishment, PunishmentType, RevokeKind

from conftest import MODERATOR_UUID, PLAYER_UUID


def make(duration=None, type=PunishmentType.BAN, now=1_000_000.0):
    return Punishment.new(
        type=type,
        player_id=PLAYER_UUID,
        player_name="Notch",
        external_id="101",
        reason="Hacking",
        moderator_id=MODERATOR_UUID,
        moderator_name="jeb_",
        duration=duration,
        now=now,
    )


class TestPunishmentExpiry:
    """Tests for the duration / expires_at invariant."""

    def test_permanent_has_no_expiry(self):
        """Test a punishment without duration never expires."""
        p = make(duration=None)
        assert p.is_permanent
        assert p.expires_at is None
        assert not p.is_expired(now=10 ** 12)

    def test_non_positive_duration_is_permanent(self):
        """Test zero and negative durations are stored as permanent."""
        for duration in (0, -5):
            p = make(duration=duration)
            assert p.duration is None
            assert p.expires_at is None

    def test_positive_duration_sets_expiry(self):
        """Test expires_at equals created_at plus duration."""
        p = make(duration=3600)
        assert p.is_temporary
        assert p.expires_at == p.created_at + 3600

    def test_is_expired_after_expiry(self):
        """Test is_expired flips once the expiry lies in the past."""
        p = make(duration=60, now=1000.0)
        assert not p.is_expired(now=1030.0)
        assert p.is_expired(now=1061.0)


class TestPunishmentTransitions:
    """Tests for snapshot transitions."""

    def test_transitions_return_new_snapshots(self):
        """Test with_saved_id leaves the original untouched."""
        p = make()
        saved = p.with_saved_id(7)
        assert saved.id == 7
        assert p.id is None

    def test_revoked_populates_all_revoke_fields(self):
        """Test active false comes with every revoke field set."""
        p = make(duration=3600).with_saved_id(1)
        r = p.revoked(RevokeKind.MANUAL, "Appeal accepted", MODERATOR_UUID, "jeb_", now=2_000_000.0)

        assert r.active is False
        assert r.revoked_at == 2_000_000.0
        assert r.revoke_reason == "Appeal accepted"
        assert r.revoke_moderator_id == MODERATOR_UUID
        assert r.revoke_moderator_name == "jeb_"
        assert r.revoke_kind is RevokeKind.MANUAL
        assert p.active is True

    def test_revoked_defaults_reason_to_kind(self):
        """Test an expiry without reason still has a revoke reason."""
        r = make(duration=60).revoked(RevokeKind.EXPIRED, None, None, None)
        assert r.revoke_reason == "Expired"
        assert r.revoke_moderator_name == ""

    def test_with_messages_keeps_existing_ids(self):
        """Test None arguments do not clear recorded message ids."""
        p = make().with_messages(player_thread_id=1, player_message_id=2)
        p = p.with_messages(log_channel_id=3, log_message_id=4)
        assert (p.player_thread_id, p.player_message_id) == (1, 2)
        assert (p.log_channel_id, p.log_message_id) == (3, 4)

    def test_merge_recomputes_expiry_from_creation(self):
        """Test a merged duration extends from the original created_at."""
        original = make(duration=60, now=1000.0).with_saved_id(3)
        newer = make(duration=600, now=5000.0)
        merged = original.merged_with(newer)

        assert merged.id == 3
        assert merged.created_at == 1000.0
        assert merged.expires_at == 1600.0


class TestEnums:
    """Tests for PunishmentType and RevokeKind."""

    def test_kick_is_neither_temporary_nor_revocable(self):
        """Test kick capabilities."""
        assert not PunishmentType.KICK.can_be_temporary
        assert not PunishmentType.KICK.can_be_revoked
        assert PunishmentType.JAIL.can_be_revoked

    def test_type_from_code(self):
        """Test codes parse case-insensitively and unknown codes raise."""
        assert PunishmentType.from_code("BAN") is PunishmentType.BAN
        with pytest.raises(ValueError):
            PunishmentType.from_code("warn")

    def test_revoke_kind_from_unknown_code_is_manual(self):
        """Test unknown revoke codes fall back to manual."""
        assert RevokeKind.from_code("bogus") is RevokeKind.MANUAL
        assert RevokeKind.from_code("expired") is RevokeKind.EXPIRED

    @pytest.mark.parametrize("reason,kind", [
        (None, RevokeKind.EXPIRED),
        ("", RevokeKind.EXPIRED),
        ("Ban expired", RevokeKind.EXPIRED),
        ("Automatic unban", RevokeKind.AUTOMATIC),
        ("Appeal accepted", RevokeKind.MANUAL),
    ])
    def test_revoke_kind_from_reason(self, reason, kind):
        """Test the kind inferred from a free-text unban reason."""
        assert RevokeKind.from_reason(reason) is kind
