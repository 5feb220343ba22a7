"""
Warden - Event Sources Package
==============================

Adapters from plugin payloads to normalized events, keyed by name.
"""

from typing import Dict, TYPE_CHECKING

from warden.services.sources.base import EventSource, ParsedEvent
from warden.services.sources.litebans import LiteBansSource
from warden.services.sources.cmi import CMISource, jail_external_id

if TYPE_CHECKING:
    from warden.core.config import Config


SOURCE_CLASSES = (LiteBansSource, CMISource)


def build_sources(config: "Config") -> Dict[str, EventSource]:
    """Instantiate every source enabled by ``config``."""
    sources: Dict[str, EventSource] = {}
    for cls in SOURCE_CLASSES:
        source = cls(config)
        if source.enabled(config):
            sources[source.name] = source
    return sources


__all__ = [
    "EventSource",
    "ParsedEvent",
    "LiteBansSource",
    "CMISource",
    "jail_external_id",
    "SOURCE_CLASSES",
    "build_sources",
]
