"""
Warden - Ingest Server Tests
============================

Tests for the HTTP endpoint plugins post events to.
"""

from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest
from aiohttp import test_utils

from warden.core.ingest import EventIngestServer
from warden.services.punishments import PunishmentEvent, RevokeEvent
from warden.services.sources import build_sources

from conftest import MODERATOR_UUID, PLAYER_UUID

BAN = {
    "event": "ban",
    "id": 101,
    "uuid": PLAYER_UUID,
    "name": "Notch",
    "executorUUID": MODERATOR_UUID,
    "executor": "jeb_",
    "reason": "Hacking",
    "duration": 3_600_000,
}


def make_service(accept=True):
    service = MagicMock()
    service.submit_punishment.return_value = accept
    service.submit_revoke.return_value = accept
    service.get_service_stats = AsyncMock(return_value={"in_flight": 0})
    return service


def make_server(config, service=None, secret=None):
    config = replace(config, ingest_secret=secret)
    return EventIngestServer(service or make_service(), build_sources(config), config)


class TestEventEndpoint:
    """Tests for POST /events/{source}."""

    @pytest.mark.asyncio
    async def test_ban_is_accepted(self, config):
        """Test a valid ban is scheduled and answered with 202."""
        server = make_server(config)
        async with test_utils.TestClient(test_utils.TestServer(server.app)) as client:
            response = await client.post("/events/litebans", json=BAN)
            body = await response.json()

        assert response.status == 202
        assert body == {"status": "accepted", "event": "ban:101"}
        event = server.service.submit_punishment.call_args.args[0]
        assert isinstance(event, PunishmentEvent)
        assert event.duration == 3600

    @pytest.mark.asyncio
    async def test_unban_goes_to_revoke(self, config):
        """Test revoke events use submit_revoke."""
        server = make_server(config)
        async with test_utils.TestClient(test_utils.TestServer(server.app)) as client:
            response = await client.post("/events/litebans", json=dict(BAN, event="unban"))

        assert response.status == 202
        assert isinstance(server.service.submit_revoke.call_args.args[0], RevokeEvent)
        server.service.submit_punishment.assert_not_called()

    @pytest.mark.asyncio
    async def test_secret_is_enforced(self, config):
        """Test a configured secret must be sent in the header."""
        server = make_server(config, secret="s3cret")
        async with test_utils.TestClient(test_utils.TestServer(server.app)) as client:
            missing = await client.post("/events/litebans", json=BAN)
            wrong = await client.post("/events/litebans", json=BAN, headers={"X-Warden-Secret": "nope"})
            right = await client.post("/events/litebans", json=BAN, headers={"X-Warden-Secret": "s3cret"})

        assert (missing.status, wrong.status, right.status) == (401, 401, 202)
        assert server.rejected == 2

    @pytest.mark.asyncio
    async def test_unknown_source(self, config):
        """Test an unregistered source name is a 404."""
        server = make_server(config)
        async with test_utils.TestClient(test_utils.TestServer(server.app)) as client:
            response = await client.post("/events/advancedban", json=BAN)
        assert response.status == 404

    @pytest.mark.asyncio
    async def test_bad_json_and_bad_payload(self, config):
        """Test malformed bodies are a 400 and never reach the service."""
        server = make_server(config)
        async with test_utils.TestClient(test_utils.TestServer(server.app)) as client:
            not_json = await client.post("/events/litebans", data="{oops")
            unknown_event = await client.post("/events/litebans", json=dict(BAN, event="warn"))

        assert (not_json.status, unknown_event.status) == (400, 400)
        server.service.submit_punishment.assert_not_called()

    @pytest.mark.asyncio
    async def test_filtered_event(self, config):
        """Test an untracked type is acknowledged with 204."""
        server = make_server(replace(config, track_kicks=False))
        async with test_utils.TestClient(test_utils.TestServer(server.app)) as client:
            response = await client.post("/events/litebans", json=dict(BAN, event="kick"))

        assert response.status == 204
        assert server.filtered == 1

    @pytest.mark.asyncio
    async def test_shutting_down(self, config):
        """Test a refused submission is a 503."""
        server = make_server(config, service=make_service(accept=False))
        async with test_utils.TestClient(test_utils.TestServer(server.app)) as client:
            response = await client.post("/events/litebans", json=BAN)
        assert response.status == 503


class TestHealthEndpoint:
    """Tests for GET /health."""

    @pytest.mark.asyncio
    async def test_health_reports_sources_and_stats(self, config):
        """Test health JSON lists sources and service stats."""
        server = make_server(config)
        async with test_utils.TestClient(test_utils.TestServer(server.app)) as client:
            response = await client.get("/health")
            body = await response.json()

        assert response.status == 200
        assert body["bot"] == "Warden"
        assert body["sources"] == ["cmi", "litebans"]
        assert body["service"] == {"in_flight": 0}
