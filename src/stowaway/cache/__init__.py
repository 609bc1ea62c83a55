"""Versioned response caching for stowaway.

This package provides :class:`CacheStore`, one generation of stored
responses backed by :mod:`diskcache`, and :class:`CacheLifecycleManager`,
which seeds new generations, activates exactly one of them, and prunes the
rest.

The active store is read and written by
:class:`~stowaway.strategy.FetchStrategyEngine`; the lifecycle manager is
driven by :meth:`~stowaway.proxy.OfflineProxy.on_install` and
:meth:`~stowaway.proxy.OfflineProxy.on_activate`.
"""

from stowaway.cache.lifecycle import CacheLifecycleManager, generation_label
from stowaway.cache.store import CacheStore, entry_to_response

__all__ = ["CacheLifecycleManager", "CacheStore", "entry_to_response", "generation_label"]
