"""Network access for stowaway.

:class:`NetworkClient` wraps :class:`httpx.AsyncClient` and maps transport
failures to :class:`~stowaway.exceptions.NetworkUnavailable`.

Example::

    from stowaway.client import NetworkClient

    async with NetworkClient(base_url="https://example.com") as net:
        resp = await net.get("/app.html")
"""

from stowaway.client.network import NetworkClient

__all__ = ["NetworkClient"]
