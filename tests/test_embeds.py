"""
Warden - Rendering Tests
========================

Tests for embed layouts and duration formatting.
"""

from warden.core.database.models import ModeratorRecord, PlayerRecord, Punishment, PunishmentType, RevokeKind
from warden.services.rendering import (
    log_embed,
    moderator_summary_embed,
    player_summary_embed,
    punishment_embed,
    revoke_embed,
)
from warden.utils.time_format import format_duration, format_time_left, ms_to_seconds

from conftest import MODERATOR_UUID, PLAYER_UUID


def make(type=PunishmentType.BAN, duration=3600, moderator=True, reason="Hacking", jail_name=None):
    return Punishment.new(
        type=type,
        player_id=PLAYER_UUID,
        player_name="Notch",
        external_id="101",
        reason=reason,
        moderator_id=MODERATOR_UUID if moderator else None,
        moderator_name="jeb_" if moderator else None,
        duration=duration,
        jail_name=jail_name,
        now=1_700_000_000.0,
    )


def fields(embed):
    return {f.name: f.value for f in embed.fields}


class TestPunishmentEmbeds:
    """Tests for thread and log embeds."""

    def test_ban_embed_fields(self):
        """Test a temp ban shows player, moderator, duration and status."""
        embed = punishment_embed(make())
        values = fields(embed)

        assert "Ban" in embed.title
        assert PLAYER_UUID in values["👤 Player"]
        assert values["👮 Moderator"] == "jeb_"
        assert values["⏰ Duration"].startswith("1h")
        assert values["Status"] == "🔴 Active"

    def test_console_and_kick(self):
        """Test a console kick has no duration or status field."""
        values = fields(punishment_embed(make(type=PunishmentType.KICK, duration=None, moderator=False)))

        assert values["👮 Moderator"] == "Console"
        assert "⏰ Duration" not in values
        assert "Status" not in values

    def test_jail_shows_jail_name(self):
        """Test jails name the jail."""
        values = fields(punishment_embed(make(type=PunishmentType.JAIL, jail_name="Alcatraz")))
        assert values["🏢 Jail"] == "Alcatraz"

    def test_long_reason_is_clipped(self):
        """Test a reason longer than a field allows is truncated."""
        values = fields(punishment_embed(make(reason="x" * 3000)))
        assert len(values["📝 Reason"]) == 1024
        assert values["📝 Reason"].endswith("...")

    def test_revoke_embed(self):
        """Test the revoked rendering names who lifted it and how."""
        p = make().revoked(RevokeKind.MANUAL, "Appeal accepted", MODERATOR_UUID, "jeb_")
        embed = revoke_embed(p)
        values = fields(embed)

        assert embed.title.startswith("✅ Unban")
        assert values["👮 Lifted By"] == "jeb_"
        assert values["Revoke Type"] == "👮 Manual"
        assert values["📝 Revoke Reason"] == "Appeal accepted"
        assert values["Status"] == "⚪ Inactive"

    def test_log_embed_switches_on_active(self):
        """Test the log entry renders issue and revoke differently."""
        p = make()
        issued = log_embed(p)
        revoked = log_embed(p.revoked(RevokeKind.EXPIRED, None, None, None))

        assert "**Duration:** 1h" in issued.description
        assert revoked.title == "✅ Unban"
        assert "**Type:** Expired" in revoked.description
        assert "**Lifted By:** Console" in revoked.description


class TestSummaryEmbeds:
    """Tests for the pinned summaries."""

    def test_player_summary_lists_active_details(self):
        """Test active revocable punishments are listed with time left."""
        record = PlayerRecord(player_id=PLAYER_UUID, player_name="Notch", total_punishments=2, active_punishments=1)
        ban = make()
        embed = player_summary_embed(
            record,
            {PunishmentType.BAN: 1, PunishmentType.KICK: 1},
            {PunishmentType.BAN: 1},
            [ban, make(type=PunishmentType.KICK, duration=None)],
            now=ban.created_at + 1800,
        )
        values = fields(embed)

        assert "Total (2)" in values
        assert "Active (1)" in values
        assert "(30m)" in values["Active Details"]
        assert "Kick" not in values["Active Details"]

    def test_moderator_summary_links_discord(self):
        """Test a linked moderator shows a mention."""
        record = ModeratorRecord(moderator_id=MODERATOR_UUID, moderator_name="jeb_", discord_id=42, total_issued=3)
        values = fields(moderator_summary_embed(record, {PunishmentType.BAN: 3}))

        assert values["Discord"] == "<@42>"
        assert "Issued: **3**" in values["Totals"]


class TestTimeFormat:
    """Tests for duration helpers."""

    def test_format_duration(self):
        """Test compact durations, with seconds dropped past a day."""
        assert format_duration(None) == "Permanent"
        assert format_duration(45) == "45s"
        assert format_duration(3600) == "1h"
        assert format_duration(90061) == "1d 1h 1m"

    def test_format_time_left(self):
        """Test remaining time, expiry and the sub-second case."""
        assert format_time_left(None) == "Permanent"
        assert format_time_left(100.0, now=200.0) == "Expired"
        assert format_time_left(100.5, now=100.0) == "<1s"
        assert format_time_left(160.0, now=100.0) == "1m"

    def test_ms_to_seconds(self):
        """Test plugin milliseconds convert with permanent as None."""
        assert ms_to_seconds(None) is None
        assert ms_to_seconds(0) is None
        assert ms_to_seconds(500) == 1
        assert ms_to_seconds(3_600_000) == 3600
