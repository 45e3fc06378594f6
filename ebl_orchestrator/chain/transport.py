"""
HTTP transport protocol for node, daemon and pinning API calls.

Clients depend on this protocol rather than on httpx directly, so a test
can hand in a fake that returns canned responses and a deployment can
swap in a transport with its own retry or proxy policy.

Concrete implementation:
    - HttpxTransport (default, ``httpx.AsyncClient`` per request)
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class HttpTransport(Protocol):
    """Async request/response transport returning parsed JSON."""

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any = None,
        content: bytes | None = None,
        files: dict[str, tuple[str, bytes, str]] | None = None,
        data: dict[str, str] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Raises:
            Exception: On transport failures or non-2xx statuses. A client
                that can tell a refusal from an outage (algod submit)
                translates 4xx itself; the rest classify as CONNECTIVITY.
        """
        ...

    async def request_bytes(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
    ) -> bytes:
        """Send a request and return the raw response body."""
        ...


class HttpxTransport:
    """Default transport using httpx.AsyncClient.

    httpx is imported lazily so modules that only build or sign
    transactions never pay for it.
    """

    def __init__(self, timeout: float = 30.0) -> None:
        self._timeout = timeout

    async def request_json(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any = None,
        content: bytes | None = None,
        files: dict[str, tuple[str, bytes, str]] | None = None,
        data: dict[str, str] | None = None,
    ) -> Any:
        import httpx

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.request(
                method,
                url,
                headers=headers,
                json=json,
                content=content,
                files=files,
                data=data,
            )
            response.raise_for_status()
            if not response.content:
                return {}
            return response.json()

    async def request_bytes(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
    ) -> bytes:
        import httpx

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.request(method, url, headers=headers)
            response.raise_for_status()
            return response.content
