"""Cache generation lifecycle: seeding, activation, and pruning.

A *generation* is a :class:`~stowaway.cache.store.CacheStore` directory
named after a version label.  The :class:`CacheLifecycleManager` keeps a
JSON manifest (``generations.json``) next to the generation directories that
records which generations finished seeding and which one is active.  A
generation only appears in the manifest once every seed URL has been fetched
and stored, so a failed install leaves nothing behind that could be served.

Directory layout::

    <root>/
        generations.json
        app-v1-3f2a9c1e/      # diskcache files for label "app-v1"
        app-v2-81be07d4/

:meth:`CacheLifecycleManager.activate` is the only place generations are
destroyed.  Deletion is irreversible.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import re
import shutil
import time
from pathlib import Path
from typing import Any, Optional

import httpx

from stowaway.cache.store import CacheStore
from stowaway.client.network import NetworkClient
from stowaway.config import atomic_write
from stowaway.exceptions import ConfigError, GenerationError, SeedFetchError
from stowaway.models import GenerationInfo
from stowaway.output import get_output

MANIFEST_FILENAME = "generations.json"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def generation_label(version: str, seed_urls: list[str]) -> str:
    """Derive a label that changes whenever the version or the seed list changes."""
    digest = hashlib.sha256("\n".join([version, *seed_urls]).encode()).hexdigest()
    return f"{version}-{digest[:12]}"


def _directory_name(label: str) -> str:
    """Filesystem-safe, collision-free directory name for *label*."""
    digest = hashlib.sha256(label.encode()).hexdigest()[:8]
    return f"{_UNSAFE_CHARS.sub('_', label)[:64]}-{digest}"


class CacheLifecycleManager:
    """Creates, activates, and prunes cache generations under *root*.

    The previously active generation is restored from the manifest when the
    manager is created, so a restarted proxy keeps serving the same cache.

    Args:
        root: Directory that holds the manifest and generation directories.
        network: Client used to fetch seed URLs.
    """

    def __init__(self, root: str | Path, network: NetworkClient) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._network = network
        self._stores: dict[str, CacheStore] = {}
        self._active: Optional[CacheStore] = None

        manifest = self._load_manifest()
        active_label = manifest.get("active")
        if active_label and active_label in manifest["generations"]:
            self._active = self._open_store(active_label, manifest)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def active(self) -> Optional[CacheStore]:
        """The generation currently serving requests, or ``None`` before activation."""
        return self._active

    # ------------------------------------------------------------------ #
    # Lifecycle operations
    # ------------------------------------------------------------------ #

    async def initialize(self, version_label: str, seed_urls: list[str]) -> CacheStore:
        """Open or create generation *version_label* and seed it.

        Every seed is fetched concurrently before anything is written.  A seed
        fails when the network is unavailable or the origin answers with a
        non-2xx status.

        Args:
            version_label: Label of the generation to install.
            seed_urls: URLs to pre-populate; relative URLs are resolved
                against the network client's origin.

        Returns:
            The seeded :class:`~stowaway.cache.store.CacheStore`.

        Raises:
            SeedFetchError: If any seed cannot be retrieved.  The generation is
                not installed.
        """
        output = get_output()
        resolved = [self._network.resolve(url) for url in seed_urls]
        output.debug(f"Seeding generation '{version_label}' with {len(resolved)} resources")

        results = await asyncio.gather(
            *(self._fetch_seed(url) for url in resolved), return_exceptions=True
        )
        failed = [url for url, result in zip(resolved, results) if isinstance(result, Exception)]
        if failed:
            reasons = "; ".join(
                str(result) for result in results if isinstance(result, Exception)
            )
            raise SeedFetchError(
                f"Could not install generation '{version_label}': {reasons}", failed=failed
            )

        manifest = self._load_manifest()
        existed = version_label in manifest["generations"]
        store = self._open_store(version_label, manifest)
        try:
            if not existed:
                # Leftovers of an interrupted install must not leak into the new generation.
                store.clear()
            for url, response in zip(resolved, results):
                store.put("GET", url, response)
        except Exception as exc:
            if not existed:
                self._destroy(version_label, store.directory)
            raise SeedFetchError(
                f"Could not store seeds for generation '{version_label}': {exc}",
                failed=resolved,
            ) from exc

        previous = manifest["generations"].get(version_label, {})
        info = GenerationInfo(
            label=version_label,
            directory=store.directory.name,
            created_at=previous.get("created_at", time.time()),
            seeds=resolved,
            entries=len(store),
            active=manifest.get("active") == version_label,
        )
        manifest["generations"][version_label] = info.model_dump(mode="json")
        self._save_manifest(manifest)

        output.info(f"Cached {len(resolved)} resources for generation '{version_label}'")
        return store

    async def activate(self, version_label: str) -> None:
        """Make *version_label* the sole serving generation and delete the others.

        The active pointer is switched before obsolete generations are
        retired, so a request observes either the old or the new
        generation, never a mix.

        Raises:
            GenerationError: If *version_label* was never installed.
        """
        output = get_output()
        manifest = self._load_manifest()
        if version_label not in manifest["generations"]:
            raise GenerationError(f"Generation '{version_label}' is not installed")

        store = self._open_store(version_label, manifest)
        obsolete = {
            label: info["directory"]
            for label, info in manifest["generations"].items()
            if label != version_label
        }

        kept = dict(manifest["generations"][version_label])
        kept["active"] = True
        kept["entries"] = len(store)
        self._save_manifest({"active": version_label, "generations": {version_label: kept}})
        self._active = store

        for label, directory in obsolete.items():
            output.info(f"Removing old cache generation '{label}'")
            self._destroy(label, self._root / directory)

        for path in self._root.iterdir():
            if path.is_dir() and path.name != kept["directory"]:
                output.debug(f"Removing orphaned generation directory {path.name}")
                shutil.rmtree(path, ignore_errors=True)

        output.success(f"Generation '{version_label}' activated")

    # ------------------------------------------------------------------ #
    # Inspection
    # ------------------------------------------------------------------ #

    def generations(self) -> list[GenerationInfo]:
        """Return every installed generation, sorted by creation time."""
        manifest = self._load_manifest()
        infos = []
        for label in manifest["generations"]:
            info = GenerationInfo.model_validate(manifest["generations"][label])
            store = self._open_store(label, manifest)
            infos.append(
                info.model_copy(
                    update={"entries": len(store), "active": manifest.get("active") == label}
                )
            )
        return sorted(infos, key=lambda i: i.created_at)

    def open(self, version_label: str) -> CacheStore:
        """Return the store of an installed generation.

        Raises:
            GenerationError: If *version_label* was never installed.
        """
        manifest = self._load_manifest()
        if version_label not in manifest["generations"]:
            raise GenerationError(f"Generation '{version_label}' is not installed")
        return self._open_store(version_label, manifest)

    def close(self) -> None:
        """Close every open store."""
        for store in self._stores.values():
            store.close()
        self._stores.clear()
        self._active = None

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _fetch_seed(self, url: str) -> httpx.Response:
        response = await self._network.get(url)
        if not response.is_success:
            raise SeedFetchError(f"{url} returned HTTP {response.status_code}", failed=[url])
        return response

    def _open_store(self, label: str, manifest: dict[str, Any]) -> CacheStore:
        store = self._stores.get(label)
        if store is None or store.retired:
            info = manifest["generations"].get(label)
            directory = info["directory"] if info else _directory_name(label)
            store = CacheStore(self._root / directory, label)
            self._stores[label] = store
        return store

    def _destroy(self, label: str, directory: Path) -> None:
        store = self._stores.pop(label, None)
        if store is not None:
            store.retire()
        shutil.rmtree(directory, ignore_errors=True)

    def _manifest_path(self) -> Path:
        return self._root / MANIFEST_FILENAME

    def _load_manifest(self) -> dict[str, Any]:
        path = self._manifest_path()
        if not path.is_file():
            return {"active": None, "generations": {}}
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, ValueError) as exc:
            raise ConfigError(f"Invalid generation manifest at {path}: {exc}") from exc
        data.setdefault("active", None)
        data.setdefault("generations", {})
        return data

    def _save_manifest(self, manifest: dict[str, Any]) -> None:
        atomic_write(self._manifest_path(), json.dumps(manifest, indent=2) + "\n")
