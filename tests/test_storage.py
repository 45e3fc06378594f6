"""
Tests for content addressing and content stores.

Covers:
- CID validation (v0 base58, v1 base32) and computation
- LocalContentStore: idempotent store, fetch, pin, file layout
- PinataContentStore over the real httpx transport (mocked with pytest-httpx)
"""

import json
from pathlib import Path

import pytest
from pytest_httpx import HTTPXMock

from ebl_orchestrator.config import StorageConfig
from ebl_orchestrator.storage import (
    LocalContentStore,
    PinataContentStore,
    compute_cid,
    is_valid_cid,
    validate_cid,
)
from ebl_orchestrator.storage.cid import sha256_digest

CIDV0 = "QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"
INVOICE = b"INVOICE #42\n" * 900


class TestCid:
    def test_v0_accepted(self) -> None:
        assert is_valid_cid(CIDV0)

    def test_v0_rejects_excluded_alphabet(self) -> None:
        assert not is_valid_cid("Qm" + "0" * 44)

    def test_computed_v1_is_valid(self) -> None:
        cid = compute_cid(INVOICE)
        assert cid.startswith("b")
        assert len(cid) == 59
        assert is_valid_cid(cid)

    def test_computed_cid_is_content_addressed(self) -> None:
        assert compute_cid(b"a") == compute_cid(b"a")
        assert compute_cid(b"a") != compute_cid(b"b")

    def test_uppercase_v1_rejected(self) -> None:
        assert not is_valid_cid(compute_cid(b"a").upper())

    def test_validate_raises(self) -> None:
        with pytest.raises(ValueError, match="content address"):
            validate_cid("not-a-cid")
        with pytest.raises(ValueError):
            validate_cid(None)


class TestLocalContentStore:
    @pytest.mark.asyncio
    async def test_store_and_fetch(self) -> None:
        store = LocalContentStore()
        stored = await store.store(INVOICE, "text/plain", {"name": "invoice.txt"})
        assert stored.cid == compute_cid(INVOICE)
        assert stored.size == len(INVOICE)
        assert stored.sha256 == sha256_digest(INVOICE)
        assert await store.fetch(stored.cid) == INVOICE

    @pytest.mark.asyncio
    async def test_store_is_idempotent(self) -> None:
        store = LocalContentStore()
        first = await store.store(INVOICE, "text/plain")
        second = await store.store(INVOICE, "text/plain")
        assert first == second
        assert store.count() == 1

    @pytest.mark.asyncio
    async def test_fetch_missing(self) -> None:
        with pytest.raises(LookupError):
            await LocalContentStore().fetch(compute_cid(b"never stored"))

    @pytest.mark.asyncio
    async def test_fetch_invalid_cid(self) -> None:
        with pytest.raises(ValueError):
            await LocalContentStore().fetch("../../etc/passwd")

    @pytest.mark.asyncio
    async def test_pin(self) -> None:
        store = LocalContentStore()
        stored = await store.store(b"x", "text/plain")
        assert not stored.pinned
        assert await store.pin(stored.cid)
        assert store.is_pinned(stored.cid)
        assert not await store.pin(compute_cid(b"missing"))

    @pytest.mark.asyncio
    async def test_file_layout(self, tmp_path: Path) -> None:
        store = LocalContentStore(tmp_path / "blobs")
        stored = await store.store(INVOICE, "text/plain", {"name": "invoice.txt"})
        blob = tmp_path / "blobs" / stored.cid[-2:] / f"{stored.cid}.blob"
        assert blob.read_bytes() == INVOICE
        sidecar = json.loads(blob.with_suffix(".json").read_text(encoding="utf-8"))
        assert sidecar["metadata"] == {"name": "invoice.txt"}

        reopened = LocalContentStore(tmp_path / "blobs")
        assert await reopened.fetch(stored.cid) == INVOICE
        assert reopened.count() == 1


# ---------------------------------------------------------------------------
# Pinata over httpx
# ---------------------------------------------------------------------------

API = "https://pin.example"
GATEWAY = "https://gateway.example/ipfs/"


@pytest.fixture
def pinata() -> PinataContentStore:
    return PinataContentStore(
        StorageConfig(pinning_url=API, pinning_jwt="jwt-token", gateway_url=GATEWAY)
    )


class TestPinata:
    @pytest.mark.asyncio
    async def test_store_uploads_and_validates(
        self, pinata: PinataContentStore, httpx_mock: HTTPXMock
    ) -> None:
        cid = compute_cid(INVOICE)
        httpx_mock.add_response(
            method="POST",
            url=f"{API}/pinning/pinFileToIPFS",
            json={"IpfsHash": cid, "PinSize": len(INVOICE)},
        )
        stored = await pinata.store(INVOICE, "text/plain", {"name": "invoice.txt"})
        assert stored.cid == cid
        assert stored.pinned
        assert stored.sha256 == sha256_digest(INVOICE)

        request = httpx_mock.get_requests()[0]
        assert request.headers["Authorization"] == "Bearer jwt-token"
        assert b"invoice.txt" in request.content

    @pytest.mark.asyncio
    async def test_malformed_cid_rejected(
        self, pinata: PinataContentStore, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            method="POST",
            url=f"{API}/pinning/pinFileToIPFS",
            json={"IpfsHash": "garbage"},
        )
        with pytest.raises(ValueError):
            await pinata.store(b"x", "text/plain")

    @pytest.mark.asyncio
    async def test_http_error_propagates(
        self, pinata: PinataContentStore, httpx_mock: HTTPXMock
    ) -> None:
        import httpx

        from ebl_orchestrator.errors import ErrorKind, classify_exception

        httpx_mock.add_response(
            method="POST", url=f"{API}/pinning/pinFileToIPFS", status_code=503
        )
        with pytest.raises(httpx.HTTPStatusError) as excinfo:
            await pinata.store(b"x", "text/plain")
        assert classify_exception(excinfo.value) is ErrorKind.CONNECTIVITY

    @pytest.mark.asyncio
    async def test_fetch_through_gateway(
        self, pinata: PinataContentStore, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(method="GET", url=f"{GATEWAY}{CIDV0}", content=b"payload")
        assert await pinata.fetch(CIDV0) == b"payload"

    @pytest.mark.asyncio
    async def test_pin_by_hash(
        self, pinata: PinataContentStore, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            method="POST",
            url=f"{API}/pinning/pinByHash",
            json={"ipfsHash": CIDV0, "status": "prechecking"},
        )
        assert await pinata.pin(CIDV0)
        body = json.loads(httpx_mock.get_requests()[0].content)
        assert body == {"hashToPin": CIDV0}
