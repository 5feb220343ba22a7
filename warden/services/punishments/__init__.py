"""
Warden - Punishment Services Package
====================================

Workflow orchestration, inbound event types and background schedulers.
"""

from warden.services.punishments.events import PunishmentEvent, RevokeEvent, is_uuid
from warden.services.punishments.service import PunishmentService
from warden.services.punishments.expiry import ExpiryScheduler
from warden.services.punishments.reconcile import Reconciler

__all__ = [
    "PunishmentEvent",
    "RevokeEvent",
    "is_uuid",
    "PunishmentService",
    "ExpiryScheduler",
    "Reconciler",
]
