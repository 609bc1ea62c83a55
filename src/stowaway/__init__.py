"""stowaway -- an offline-resilient request-interception cache proxy.

The proxy sits between a client application and its origin, classifies every
outgoing request, and answers it from a versioned local cache, from the
network raced against a deadline, or from a fallback response when both are
unavailable.

Typical embedding::

    from stowaway.models import InterceptedRequest, ProxyConfig
    from stowaway.proxy import OfflineProxy

    config = ProxyConfig(base_url="https://example.com", seed_urls=["/", "/app.html"])
    async with OfflineProxy(config) as proxy:
        await proxy.on_install()
        response = await proxy.on_intercept(InterceptedRequest(url="https://example.com/"))

Modules:
    proxy: Platform entry points wiring the components together.
    strategy: Per-class fetch strategies (deadline race, cache-first, fallback).
    cache: Cache generations and their lifecycle.
    classifier: API / Document / Static request classification.
    sync: Best-effort background sync with observer notification.
    notifications: Notification rendering and interaction routing.
    models: Pydantic models shared across the entire package.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting system with Rich support.
    app: Typer CLI.
"""

__version__ = "0.1.0"
