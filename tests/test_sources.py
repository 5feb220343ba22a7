"""
Warden - Event Source Tests
===========================

Tests for the LiteBans and CMI payload adapters.
"""

from dataclasses import replace

import pytest

from warden.core.database import PunishmentType, RevokeKind
from warden.core.errors import InvalidEventError
from warden.services.punishments import PunishmentEvent, RevokeEvent
from warden.services.sources import CMISource, LiteBansSource, build_sources, jail_external_id

from conftest import MODERATOR_UUID, PLAYER_UUID


def litebans_payload(event="ban", **overrides):
    payload = {
        "event": event,
        "id": 101,
        "uuid": PLAYER_UUID,
        "name": "Notch",
        "executorUUID": MODERATOR_UUID,
        "executor": "jeb_",
        "reason": "Hacking",
        "duration": 3_600_000,
    }
    payload.update(overrides)
    return payload


def cmi_payload(event="jail", **overrides):
    payload = {
        "event": event,
        "uuid": PLAYER_UUID,
        "name": "Notch",
        "jail": "Alcatraz",
        "executorUUID": MODERATOR_UUID,
        "executor": "jeb_",
        "time": 600_000,
    }
    payload.update(overrides)
    return payload


class TestLiteBansSource:
    """Tests for LiteBans payloads."""

    def test_ban_converts_milliseconds(self, config):
        """Test the duration arrives in seconds and the id as a string."""
        event = LiteBansSource(config).parse(litebans_payload())

        assert isinstance(event, PunishmentEvent)
        assert event.type is PunishmentType.BAN
        assert event.duration == 3600
        assert event.external_id == "101"
        assert event.moderator_id == MODERATOR_UUID
        assert event.source == "litebans"

    def test_zero_duration_is_permanent(self, config):
        """Test a zero duration becomes None."""
        event = LiteBansSource(config).parse(litebans_payload(duration=0))
        assert event.duration is None

    def test_console_executor_is_system(self, config):
        """Test a non-UUID executor keeps its name but has no id."""
        event = LiteBansSource(config).parse(litebans_payload(executorUUID="CONSOLE", executor="Console"))
        assert event.moderator_id is None
        assert event.moderator_name == "Console"

    def test_kick_ignores_duration(self, config):
        """Test kicks never carry a duration."""
        event = LiteBansSource(config).parse(litebans_payload(event="kick"))
        assert event.type is PunishmentType.KICK
        assert event.duration is None

    def test_short_temp_ban_is_filtered(self, config):
        """Test temp punishments below the minimum are dropped."""
        source = LiteBansSource(replace(config, min_temp_duration=120))
        assert source.parse(litebans_payload(duration=60 * 60_000)) is None
        assert source.parse(litebans_payload(duration=0)) is not None

    def test_untracked_type_is_filtered(self, config):
        """Test a disabled track flag drops the issue and its revoke."""
        source = LiteBansSource(replace(config, track_mutes=False))
        assert source.parse(litebans_payload(event="mute")) is None
        assert source.parse(litebans_payload(event="unmute")) is None
        assert source.parse(litebans_payload(event="ban")) is not None

    def test_unban_carries_type_and_kind(self, config):
        """Test an unban targets bans and infers the kind from its reason."""
        event = LiteBansSource(config).parse(litebans_payload(event="unban", reason="Appeal accepted"))

        assert isinstance(event, RevokeEvent)
        assert event.type is PunishmentType.BAN
        assert event.kind is RevokeKind.MANUAL

    def test_unmute_without_reason_is_expiry(self, config):
        """Test an unmute with no reason counts as expired."""
        event = LiteBansSource(config).parse(litebans_payload(event="unmute", reason=None))
        assert event.type is PunishmentType.MUTE
        assert event.kind is RevokeKind.EXPIRED

    @pytest.mark.parametrize("payload", [
        [],
        {"id": 1},
        {"event": "warn", "id": 1},
        {"event": "ban", "uuid": PLAYER_UUID, "name": "Notch"},
        {"event": "ban", "id": 1, "uuid": PLAYER_UUID, "name": "Notch", "duration": "soon"},
    ])
    def test_malformed_payloads_raise(self, config, payload):
        """Test malformed payloads are rejected, not guessed at."""
        with pytest.raises(InvalidEventError):
            LiteBansSource(config).parse(payload)


class TestCMISource:
    """Tests for CMI jail payloads."""

    def test_jail_derives_external_id(self, config):
        """Test the external id comes from the player UUID."""
        event = CMISource(config).parse(cmi_payload())

        assert event.type is PunishmentType.JAIL
        assert event.external_id == jail_external_id(PLAYER_UUID)
        assert event.external_id.startswith("cmi_jail_")
        assert event.reason == "Jailed: Alcatraz"
        assert event.jail_name == "Alcatraz"
        assert event.duration == 600

    def test_jail_without_name(self, config):
        """Test a missing jail name falls back to Unknown."""
        event = CMISource(config).parse(cmi_payload(jail=None))
        assert event.jail_name == "Unknown"

    def test_unjail_by_moderator_is_manual(self, config):
        """Test an unjail with an executor is a manual release."""
        event = CMISource(config).parse(cmi_payload(event="unjail"))

        assert event.kind is RevokeKind.MANUAL
        assert event.type is PunishmentType.JAIL
        assert event.external_id == jail_external_id(PLAYER_UUID)

    def test_unjail_without_executor_is_automatic(self, config):
        """Test an unjail with no executor is the sentence running out."""
        event = CMISource(config).parse(cmi_payload(event="unjail", executorUUID=None, executor=None))
        assert event.kind is RevokeKind.AUTOMATIC
        assert event.reason == "Sentence served"

    def test_short_jail_is_filtered(self, config):
        """Test jails below the minimum are dropped."""
        source = CMISource(replace(config, min_jail_duration=15))
        assert source.parse(cmi_payload(time=5 * 60_000)) is None

    def test_unknown_event_raises(self, config):
        """Test CMI only knows jail and unjail."""
        with pytest.raises(InvalidEventError):
            CMISource(config).parse(cmi_payload(event="mute"))


class TestBuildSources:
    """Tests for source registration."""

    def test_all_sources_enabled_by_default(self, config):
        """Test both adapters are registered by name."""
        assert set(build_sources(config)) == {"litebans", "cmi"}

    def test_disabled_source_is_not_registered(self, config):
        """Test jails off removes the CMI endpoint."""
        sources = build_sources(replace(config, track_jails=False))
        assert set(sources) == {"litebans"}
