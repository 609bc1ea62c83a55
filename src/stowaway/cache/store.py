"""A single cache generation: request identity to response snapshot.

Uses :mod:`diskcache` to persist response snapshots on the filesystem.  Each
:class:`CacheStore` owns one directory; the
:class:`~stowaway.cache.lifecycle.CacheLifecycleManager` decides which
directories exist and which one serves requests.

Every write stores one complete :class:`~stowaway.models.ResourceEntry` under
one key in a single SQLite transaction, so readers see either the previous
entry or the new one, never a partial write.  Only ``GET`` responses with a
2xx status are stored.

Cache keys are SHA-256 hashes of ``METHOD|URL``.

A cache miss is not an error: :meth:`CacheStore.get` returns ``None``.
"""

from __future__ import annotations

import hashlib
import time
from pathlib import Path
from typing import Any, Optional

import diskcache
import httpx

from stowaway.classifier import request_identity
from stowaway.models import ResourceEntry

# Headers describing the wire encoding rather than the decoded body we keep.
_TRANSPORT_HEADERS = frozenset({"content-encoding", "content-length", "transfer-encoding"})


class CacheStore:
    """Disk-backed store for one cache generation.

    Args:
        directory: Directory holding the :class:`diskcache.Cache` files.
        label: Version label of the generation this store belongs to.

    Example::

        store = CacheStore(Path("/tmp/generations/app-v1"), "app-v1")
        store.put("GET", "https://example.com/", response)
        entry = store.get("GET", "https://example.com/")
    """

    def __init__(self, directory: str | Path, label: str) -> None:
        self.label = label
        self._directory = Path(directory)
        self._cache: Optional[diskcache.Cache] = diskcache.Cache(str(self._directory))
        self._retired = False

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def retired(self) -> bool:
        """``True`` once the generation has been pruned; reads then always miss."""
        return self._retired

    def get(self, method: str, url: str) -> Optional[ResourceEntry]:
        """Look up a stored response.

        Returns:
            The :class:`~stowaway.models.ResourceEntry` on a hit, or ``None``
            on a miss or when the store has been retired.
        """
        if self._retired or self._cache is None:
            return None
        data = self._cache.get(self._make_key(method, url))
        if data is None:
            return None
        return ResourceEntry.model_validate(data)

    def contains(self, method: str, url: str) -> bool:
        if self._retired or self._cache is None:
            return False
        return self._make_key(method, url) in self._cache

    def put(self, method: str, url: str, response: httpx.Response) -> Optional[ResourceEntry]:
        """Store a snapshot of *response* under ``METHOD|URL``.

        The response body must already have been read.  Non-GET requests,
        non-2xx responses and writes to a retired store are ignored.

        Returns:
            The stored entry, or ``None`` when the response was not stored.
        """
        if self._retired or self._cache is None:
            return None
        if method.upper() != "GET":
            return None
        if not response.is_success:
            return None

        entry = ResourceEntry(
            method=method.upper(),
            url=url,
            status_code=response.status_code,
            reason=response.reason_phrase or "",
            headers=[
                (k, v)
                for k, v in response.headers.multi_items()
                if k.lower() not in _TRANSPORT_HEADERS
            ],
            body=response.content,
            stored_at=time.time(),
        )
        self._cache.set(self._make_key(method, url), entry.model_dump())
        return entry

    def delete(self, method: str, url: str) -> bool:
        """Remove one entry. Returns ``True`` if it existed."""
        if self._cache is None:
            return False
        return bool(self._cache.delete(self._make_key(method, url)))

    def keys(self) -> list[str]:
        """Return the ``METHOD|URL`` identities of every stored entry, sorted."""
        if self._retired or self._cache is None:
            return []
        identities = []
        for key in self._cache.iterkeys():
            data = self._cache.get(key)
            if data is not None:
                identities.append(request_identity(data["method"], data["url"]))
        return sorted(identities)

    def clear(self) -> None:
        """Remove all entries from this generation."""
        if self._cache is not None:
            self._cache.clear()

    def stats(self) -> dict[str, Any]:
        """Return ``label``, ``size``, ``directory`` and ``retired``."""
        return {
            "label": self.label,
            "size": len(self),
            "directory": str(self._directory),
            "retired": self._retired,
        }

    def retire(self) -> None:
        """Mark the generation obsolete and release the underlying cache."""
        self._retired = True
        self.close()

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        if self._cache is not None:
            self._cache.close()
            self._cache = None

    def __len__(self) -> int:
        if self._retired or self._cache is None:
            return 0
        return len(self._cache)

    def _make_key(self, method: str, url: str) -> str:
        """Generate a cache key from method and URL."""
        return hashlib.sha256(request_identity(method, url).encode()).hexdigest()


def entry_to_response(entry: ResourceEntry) -> httpx.Response:
    """Rebuild an :class:`httpx.Response` from a stored entry."""
    extensions = {"reason_phrase": entry.reason.encode()} if entry.reason else {}
    return httpx.Response(
        status_code=entry.status_code,
        headers=entry.headers,
        content=entry.body,
        request=httpx.Request(entry.method, entry.url),
        extensions=extensions,
    )
