"""
Warden - Services Package
=========================

Everything between an inbound plugin event and a Discord message.

DESIGN:
    Services are plain classes constructed by WardenBot.setup_hook with
    explicit references to their collaborators; none is a singleton.

Available Services:
    cache: Redis TTL cache, distributed locks, deferred-action queue
    gateway: RemoteMessenger protocol and its discord.py implementation
    rendering: Punishment, revoke, log and summary embeds
    threads: Exactly-once forum thread resolution
    punishments: Workflow orchestration, expiry and reconciliation
    sources: LiteBans and CMI payload adapters
    backup: SQLite snapshots with retention
"""
