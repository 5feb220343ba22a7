"""
Warden - Cache Package
======================

Optional Redis cache, distributed locks and deferred-action queue.
"""

from .provider import CacheProvider, CacheNamespace, LockState

__all__ = ["CacheProvider", "CacheNamespace", "LockState"]
