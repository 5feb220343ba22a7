"""
Warden - Event Source Base Class
================================

Base class for the plugin adapters that turn a raw JSON payload into a
PunishmentEvent or RevokeEvent.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Union, TYPE_CHECKING

from warden.core.errors import InvalidEventError
from warden.services.punishments.events import PunishmentEvent, RevokeEvent, is_uuid
from warden.utils.time_format import ms_to_seconds

if TYPE_CHECKING:
    from warden.core.config import Config


ParsedEvent = Optional[Union[PunishmentEvent, RevokeEvent]]


class EventSource(ABC):
    """
    Abstract base class for event sources.

    Subclasses implement parse(); it returns None for events that are
    valid but filtered out by configuration, and raises
    InvalidEventError for malformed payloads.
    """

    # Name used in the ingest URL (override in subclass)
    name: str = "unknown"

    def __init__(self, config: "Config") -> None:
        self.config = config

    def enabled(self, config: Optional["Config"] = None) -> bool:
        """Whether this source should be exposed at all."""
        return True

    @abstractmethod
    def parse(self, payload: Dict[str, Any]) -> ParsedEvent:
        """
        Turn one payload into a normalized event.

        Raises:
            InvalidEventError: Payload is not a dict, lacks a required
                field or has an unknown event name.
        """
        pass

    # -------------------------------------------------------------------------
    # Field Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _event_name(payload: Dict[str, Any]) -> str:
        if not isinstance(payload, dict):
            raise InvalidEventError("Payload must be a JSON object")
        event = payload.get("event")
        if not isinstance(event, str) or not event.strip():
            raise InvalidEventError("Missing event name")
        return event.strip().lower()

    @staticmethod
    def _require(payload: Dict[str, Any], key: str) -> str:
        value = payload.get(key)
        if value is None or str(value).strip() == "":
            raise InvalidEventError(f"Missing field: {key}")
        return str(value).strip()

    @staticmethod
    def _executor(payload: Dict[str, Any], uuid_key: str, name_key: str):
        """
        Moderator (id, name) from the payload.

        Console and other non-player executors have no UUID; they become
        (None, name) so the action counts as system-issued.
        """
        executor_id = payload.get(uuid_key)
        executor_name = payload.get(name_key) or None
        if executor_id and is_uuid(str(executor_id)):
            return str(executor_id), executor_name
        return None, executor_name

    @staticmethod
    def _duration_ms(payload: Dict[str, Any], key: str) -> int:
        raw = payload.get(key, 0)
        if raw in (None, ""):
            return 0
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise InvalidEventError(f"Invalid {key}: {raw!r}")

    @staticmethod
    def _below_minimum(duration_ms: int, minimum_minutes: int) -> bool:
        """True for a temporary duration shorter than the configured minimum."""
        if duration_ms <= 0 or minimum_minutes <= 0:
            return False
        return duration_ms // 60_000 < minimum_minutes

    @staticmethod
    def _seconds(duration_ms: int) -> Optional[int]:
        return ms_to_seconds(duration_ms)


__all__ = ["EventSource", "ParsedEvent"]
