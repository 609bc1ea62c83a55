"""Canonical Pydantic models shared across all stowaway modules.

This is the single source of truth for data shapes in the project. The models
fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`OutputConfig`, :class:`SyncTaskConfig`,
    :class:`SyncConfig`, :class:`NotificationConfig`, and
    :class:`ProxyConfig`.

**Runtime models** -- produced and consumed by the proxy core:
    :class:`RequestClass`, :class:`InterceptedRequest`,
    :class:`ResourceEntry`, :class:`GenerationInfo`, :class:`SyncTask`,
    :class:`SyncOutcome`, :class:`NotificationAction`,
    :class:`NotificationPayload`, :class:`EffectKind`, and :class:`Effect`.

All models use Pydantic v2.
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

SYNC_SUCCESS = "sync-success"
"""Message type posted to observers after a successful background sync."""

SKIP_WAITING = "SKIP_WAITING"
"""Control message type that forces activation of a waiting generation."""


# --- Configuration ---


class RequestConfig(BaseModel):
    """Network client settings applied to every outgoing fetch."""

    timeout: float = Field(default=30.0, description="Transport timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class OutputConfig(BaseModel):
    """Default output format preferences."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class SyncTaskConfig(BaseModel):
    """A background sync task registered under a tag."""

    tag: str
    endpoint: str = Field(description="Absolute URL called when the task runs")


class SyncConfig(BaseModel):
    """Background sync settings."""

    tasks: list[SyncTaskConfig] = Field(
        default_factory=lambda: [
            SyncTaskConfig(tag="local-sync", endpoint="http://localhost:8000/api/v2/sync")
        ]
    )
    success_message: str = Field(
        default="Connected to local device",
        description="Message posted to observers after a successful sync",
    )


class NotificationConfig(BaseModel):
    """Notification content and the URLs opened by interactions."""

    title: str = "stowaway"
    default_body: str = Field(
        default="New notification", description="Body used when a push carries no text"
    )
    icon: str = "/assets/icon.png"
    badge: str = "/assets/badge.png"
    vibrate: list[int] = Field(default_factory=lambda: [100, 50, 100])
    dashboard_url: str = "/dashboard.html"
    root_url: str = "/"


class ProxyConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/stowaway/config.json``.

    Loaded and saved by :func:`~stowaway.config.load_config` and
    :func:`~stowaway.config.save_config`. Fields here have the lowest
    precedence and can be overridden by project config, environment
    variables, or CLI flags. See :func:`~stowaway.config.resolve_config`
    for the full precedence chain.

    Extra fields are preserved so that embedding applications can attach
    their own settings.
    """

    model_config = ConfigDict(extra="allow")

    version_label: str = Field(
        default="stowaway-v1", description="Label of the cache generation to serve"
    )
    base_url: Optional[str] = Field(
        default=None, description="Origin against which relative URLs are resolved"
    )
    seed_urls: list[str] = Field(
        default_factory=lambda: ["/", "/index.html"],
        description="URLs fetched into a new generation before it is activated",
    )
    api_prefix: str = Field(default="/v1/", description="Path prefix of API requests")
    api_host: Optional[str] = Field(
        default=None, description="Hostname whose requests are always API requests"
    )
    api_deadline: float = Field(
        default=5.0, gt=0, description="Seconds an API request may wait on the network"
    )
    default_document: Optional[str] = Field(
        default="/index.html",
        description="Cached page served to documents when nothing else is available",
    )
    offline_message: str = Field(
        default="No internet connection. Requests resume when connected.",
        description="Message carried by the synthetic offline API response",
    )
    skip_waiting: bool = Field(
        default=True, description="Activate a freshly installed generation immediately"
    )
    request: RequestConfig = Field(default_factory=RequestConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Runtime ---


class RequestClass(str, enum.Enum):
    """Category of an intercepted request, selecting its retrieval strategy."""

    API = "api"
    DOCUMENT = "document"
    STATIC = "static"


class InterceptedRequest(BaseModel):
    """An outgoing request handed to the proxy by the platform.

    The ``destination`` tag mirrors what the client is going to do with the
    response (``"document"`` for a top-level navigation, ``"image"``,
    ``"script"``, or ``""`` when unknown).
    """

    method: str = "GET"
    url: str
    destination: str = ""
    headers: dict[str, str] = Field(default_factory=dict)
    body: Optional[bytes] = None


class ResourceEntry(BaseModel):
    """A stored response snapshot. Replaced wholesale, never patched."""

    model_config = ConfigDict(frozen=True)

    method: str
    url: str
    status_code: int
    reason: str = ""
    headers: list[tuple[str, str]] = Field(
        default_factory=list, description="Header pairs in order; names may repeat"
    )
    body: bytes = b""
    stored_at: float = Field(description="Epoch seconds when the entry was written")


class GenerationInfo(BaseModel):
    """Manifest record for one installed cache generation."""

    label: str
    directory: str
    created_at: float
    seeds: list[str] = Field(default_factory=list)
    entries: int = 0
    active: bool = False


class SyncTask(BaseModel):
    """A deferred, best-effort unit of work identified by a tag."""

    tag: str
    endpoint: str


class SyncOutcome(BaseModel):
    """Result of a single sync attempt."""

    tag: str
    succeeded: bool
    delivered: int = Field(default=0, description="Observers that received the event")
    status_code: Optional[int] = None
    error: Optional[str] = None


class NotificationAction(BaseModel):
    """A named button shown on a notification."""

    id: str
    title: str
    icon: Optional[str] = None


class NotificationPayload(BaseModel):
    """Content of a notification and the actions it offers."""

    title: str
    body: str
    icon: Optional[str] = None
    badge: Optional[str] = None
    vibrate: list[int] = Field(default_factory=list)
    data: dict[str, Any] = Field(default_factory=dict)
    actions: list[NotificationAction] = Field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Return the payload in its wire shape (actions keyed by ``action``)."""
        data = self.model_dump(exclude={"actions"})
        data["actions"] = [
            {"action": a.id, "title": a.title, "icon": a.icon} for a in self.actions
        ]
        return data


class EffectKind(str, enum.Enum):
    """What the application should do after a notification interaction."""

    OPEN_DASHBOARD = "open-dashboard"
    DISMISS = "dismiss"
    OPEN_ROOT = "open-root"


class Effect(BaseModel):
    """Client-side behaviour selected by a notification interaction."""

    kind: EffectKind
    url: Optional[str] = None
