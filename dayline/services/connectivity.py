"""Connectivity probes injected into the sync engine."""
from __future__ import annotations

from typing import Optional, Protocol

import httpx

from dayline.core.settings import REMOTE, RemoteSettings


class ConnectivityProbe(Protocol):
    async def is_online(self) -> bool: ...


class HttpConnectivityProbe:
    """Online when the remote answers at all, whatever the status code."""

    def __init__(self, settings: RemoteSettings = REMOTE, *, client: Optional[httpx.AsyncClient] = None) -> None:
        self.settings = settings
        self._client = client or httpx.AsyncClient(timeout=settings.probe_timeout_sec)

    async def is_online(self) -> bool:
        if not self.settings.configured:
            return False
        try:
            await self._client.head(
                f"{self.settings.url.rstrip('/')}/rest/v1/",
                headers={"apikey": self.settings.anon_key},
            )
        except httpx.TransportError:
            return False
        return True

    async def aclose(self) -> None:
        await self._client.aclose()


class StaticConnectivity:
    """Probe with a fixed answer, flipped by the host when its network state changes."""

    def __init__(self, online: bool = True) -> None:
        self.online = online
        self.calls = 0

    async def is_online(self) -> bool:
        self.calls += 1
        return self.online


__all__ = ["ConnectivityProbe", "HttpConnectivityProbe", "StaticConnectivity"]
