"""
Pinata-compatible pinning client.

Endpoints:
    - POST {api}/pinning/pinFileToIPFS   multipart upload, pins on store
    - POST {api}/pinning/pinByHash       pin an existing CID
    - GET  {gateway}{cid}                fetch through the gateway

Authenticated with a bearer JWT. Returned CIDs are validated before
they are handed back to callers.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from ebl_orchestrator.chain.transport import HttpTransport, HttpxTransport
from ebl_orchestrator.config import StorageConfig
from ebl_orchestrator.storage.cid import sha256_digest, validate_cid
from ebl_orchestrator.storage.protocol import StoredContent

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.pinata.cloud"


class PinataContentStore:
    """``ContentStore`` over a Pinata-style REST API.

    Args:
        config: Pinning URL, JWT and gateway.
        transport: Injectable transport. Defaults to HttpxTransport.
    """

    def __init__(
        self,
        config: StorageConfig,
        transport: HttpTransport | None = None,
    ) -> None:
        self._api = (config.pinning_url or DEFAULT_API_URL).rstrip("/")
        self._gateway = config.gateway_url.rstrip("/") + "/"
        self._headers = (
            {"Authorization": f"Bearer {config.pinning_jwt}"} if config.pinning_jwt else {}
        )
        self._transport = transport or HttpxTransport()

    async def store(
        self,
        data: bytes,
        content_type: str,
        metadata: Mapping[str, str] | None = None,
    ) -> StoredContent:
        keyvalues = {k: str(v) for k, v in (metadata or {}).items()}
        name = keyvalues.get("name", "ebl-content")
        response: dict[str, Any] = await self._transport.request_json(
            "POST",
            f"{self._api}/pinning/pinFileToIPFS",
            headers=self._headers,
            files={"file": (name, data, content_type)},
            data={
                "pinataMetadata": json.dumps({"name": name, "keyvalues": keyvalues}),
                "pinataOptions": json.dumps({"cidVersion": 1}),
            },
        )
        cid = validate_cid(response.get("IpfsHash"))
        logger.debug("pinned %d bytes as %s", len(data), cid)
        return StoredContent(
            cid=cid,
            size=int(response.get("PinSize", len(data))),
            content_type=content_type,
            sha256=sha256_digest(data),
            pinned=True,
            metadata=keyvalues,
        )

    async def fetch(self, cid: str) -> bytes:
        validate_cid(cid)
        return await self._transport.request_bytes("GET", f"{self._gateway}{cid}")

    async def pin(self, cid: str) -> bool:
        validate_cid(cid)
        response = await self._transport.request_json(
            "POST",
            f"{self._api}/pinning/pinByHash",
            headers=self._headers,
            json={"hashToPin": cid},
        )
        return response.get("ipfsHash", cid) == cid
