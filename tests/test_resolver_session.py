"""
Tests for identity resolution and the Session facade.

Covers:
- Local source: switch_to_role, signer resolved at call time
- External wallet source: connect, labels, disconnect
- Session variant selection and event subscription
- Session factories: node, daemon, storage, provisioner and orchestrator
  built from the session's settings
"""

import pytest

from ebl_orchestrator.chain.keys import LocalKeypair
from ebl_orchestrator.chain.tx import Transaction, assign_group_id, decode_signed, payment
from ebl_orchestrator.chain.algod import TOKEN_HEADER, AlgodClient
from ebl_orchestrator.config import NetworkConfig, NetworkMode, StorageConfig
from ebl_orchestrator.errors import NoIdentityError
from ebl_orchestrator.events import RoleChanged
from ebl_orchestrator.identity.resolver import ExternalWalletIdentitySource, LocalIdentitySource
from ebl_orchestrator.identity.roles import Role
from ebl_orchestrator.kvstore import SqliteKeyValueStore
from ebl_orchestrator.ledger import MarketplaceLedger
from ebl_orchestrator.session import Session
from ebl_orchestrator.storage import LocalContentStore, PinataContentStore, compute_cid

from conftest import SAMPLE_PARAMS, FakeChainClient, FakeTransport, FakeWallet, make_keypair

TESTNET = NetworkConfig.for_network(NetworkMode.TESTNET)


def _self_payment(address: str) -> list[Transaction]:
    return [payment(SAMPLE_PARAMS, sender=address, receiver=address, amount=0)]


# ---------------------------------------------------------------------------
# Local identities
# ---------------------------------------------------------------------------


class TestLocalSource:
    def test_session_is_local_on_localnet(self, session: Session) -> None:
        assert session.is_local
        assert isinstance(session.identity, LocalIdentitySource)

    def test_no_signer_before_switch(self, session: Session, role_keys) -> None:
        assert session.active_address() is None
        assert session.get_signer() is None

    def test_switch_sets_active(self, session: Session, role_keys) -> None:
        session.switch_to_role(Role.CARRIER)
        assert session.active_role() is Role.CARRIER
        assert session.active_address() == role_keys[Role.CARRIER].address

    @pytest.mark.asyncio
    async def test_switch_changes_signing_key(self, session: Session, role_keys) -> None:
        session.switch_to_role(Role.EXPORTER)
        exporter = role_keys[Role.EXPORTER].address
        signed = await session.get_signer()(_self_payment(exporter))
        assert decode_signed(signed[0]).transaction.sender == exporter

        session.switch_to_role(Role.BUYER_1)
        buyer = role_keys[Role.BUYER_1].address
        signed = await session.get_signer()(_self_payment(buyer))
        assert decode_signed(signed[0]).transaction.sender == buyer

    @pytest.mark.asyncio
    async def test_signer_reads_pointer_at_call_time(self, session: Session, role_keys) -> None:
        session.switch_to_role(Role.EXPORTER)
        stale_signer = session.get_signer()
        session.switch_to_role(Role.CARRIER)
        carrier = role_keys[Role.CARRIER].address
        # A signer obtained earlier still signs only with its own key.
        with pytest.raises(ValueError):
            await stale_signer(_self_payment(carrier))
        fresh = await session.get_signer()(_self_payment(carrier))
        assert fresh[0] is not None

    def test_switch_to_unprovisioned_role(self, session: Session) -> None:
        with pytest.raises(NoIdentityError, match="BANK"):
            session.switch_to_role(Role.BANK)

    def test_switch_to_unknown_role(self, session: Session, role_keys) -> None:
        with pytest.raises(ValueError):
            session.switch_to_role("CAPTAIN")

    def test_no_signer_without_secret(self, session: Session) -> None:
        outsider = make_keypair(40)
        session.store.assign_address_to_role(Role.BANK, outsider.address)
        session.switch_to_role(Role.BANK)
        assert session.active_address() == outsider.address
        assert session.get_signer() is None

    @pytest.mark.asyncio
    async def test_disconnect_clears(self, session: Session, role_keys) -> None:
        session.switch_to_role(Role.CARRIER)
        await session.disconnect()
        assert session.active_address() is None
        assert session.get_signer() is None

    def test_subscribers_told_on_switch(self, session: Session, role_keys) -> None:
        seen: list[RoleChanged] = []
        unsubscribe = session.subscribe(seen.append)
        session.switch_to_role(Role.REGULATOR)
        unsubscribe()
        session.switch_to_role(Role.BANK)
        assert seen == [
            RoleChanged("localnet", Role.REGULATOR, role_keys[Role.REGULATOR].address)
        ]

    def test_pointer_survives_reopen(self, tmp_path) -> None:
        db_path = tmp_path / "session.db"
        key = make_keypair(7)
        first = Session.open(NetworkConfig(), db_path)
        first.store.assign_address_to_role(Role.EXPORTER, key.address, key.secret_hex)
        first.switch_to_role(Role.EXPORTER)

        second = Session.open(NetworkConfig(), db_path)
        assert second.active_role() is Role.EXPORTER
        assert second.get_signer() is not None


# ---------------------------------------------------------------------------
# External wallet
# ---------------------------------------------------------------------------


@pytest.fixture
def wallet_key() -> LocalKeypair:
    return make_keypair(50)


@pytest.fixture
def wallet(wallet_key: LocalKeypair) -> FakeWallet:
    return FakeWallet(wallet_key)


@pytest.fixture
def public_session(wallet: FakeWallet) -> Session:
    return Session(TESTNET, SqliteKeyValueStore(":memory:"), wallet=wallet)


class TestExternalWalletSource:
    def test_public_session_needs_wallet(self) -> None:
        with pytest.raises(ValueError, match="wallet"):
            Session(TESTNET, SqliteKeyValueStore(":memory:"))

    def test_variant(self, public_session: Session) -> None:
        assert not public_session.is_local
        assert isinstance(public_session.identity, ExternalWalletIdentitySource)

    def test_no_signer_before_connect(self, public_session: Session) -> None:
        assert public_session.get_signer() is None

    def test_switch_before_connect(self, public_session: Session) -> None:
        with pytest.raises(NoIdentityError, match="connect"):
            public_session.switch_to_role(Role.INVESTOR_LARGE_1)

    @pytest.mark.asyncio
    async def test_connect_and_label(self, public_session: Session, wallet_key) -> None:
        await public_session.identity.connect()
        assert public_session.active_address() == wallet_key.address
        assert public_session.active_role() is None

        public_session.switch_to_role(Role.INVESTOR_LARGE_1)
        assert public_session.active_role() is Role.INVESTOR_LARGE_1
        assert public_session.store.get_active().address == wallet_key.address

    @pytest.mark.asyncio
    async def test_label_restored_on_reconnect(self, public_session: Session, wallet_key) -> None:
        await public_session.identity.connect()
        public_session.switch_to_role(Role.BUYER_2)
        await public_session.disconnect()
        assert public_session.active_address() is None

        await public_session.identity.connect()
        assert public_session.active_role() is Role.BUYER_2
        assert public_session.store.get_active().role is Role.BUYER_2

    @pytest.mark.asyncio
    async def test_signer_uses_wallet(self, public_session: Session, wallet, wallet_key) -> None:
        await public_session.identity.connect()
        group = assign_group_id(_self_payment(wallet_key.address) * 2)
        signed = await public_session.get_signer()(group)
        assert len(signed) == 2
        assert wallet.sign_calls == [[0, 1]]


# ---------------------------------------------------------------------------
# Client factories
# ---------------------------------------------------------------------------


NODE = "http://node.example:4001"
PINNING = "https://pin.example"


class TestClientFactories:
    @pytest.mark.asyncio
    async def test_chain_client_uses_node_settings(self) -> None:
        config = NetworkConfig(algod_url=NODE, algod_token="node-token")
        transport = FakeTransport(
            {("GET", f"{NODE}/v2/accounts/{make_keypair(1).address}"): {"amount": 7}}
        )
        client = Session(config, SqliteKeyValueStore()).chain_client(transport)
        assert isinstance(client, AlgodClient)
        assert await client.get_account_balance(make_keypair(1).address) == 7
        assert transport.calls[0]["headers"] == {TOKEN_HEADER: "node-token"}

    def test_no_daemon_without_url(self) -> None:
        session = Session(NetworkConfig(kmd_url=None), SqliteKeyValueStore())
        assert session.signing_daemon() is None

    def test_daemon_with_url(self, session: Session) -> None:
        assert session.signing_daemon() is not None

    def test_local_content_store_by_default(self, session: Session) -> None:
        assert isinstance(session.content_store(), LocalContentStore)

    @pytest.mark.asyncio
    async def test_pinning_store_uses_storage_settings(self) -> None:
        storage = StorageConfig(pinning_url=PINNING, pinning_jwt="pin-jwt")
        cid = compute_cid(b"bill of lading")
        transport = FakeTransport(
            {("POST", f"{PINNING}/pinning/pinFileToIPFS"): {"IpfsHash": cid}}
        )
        session = Session.open(NetworkConfig(), storage=storage)
        store = session.content_store(transport)
        assert isinstance(store, PinataContentStore)
        stored = await store.store(b"bill of lading", "text/plain")
        assert stored.cid == cid
        assert transport.calls[0]["headers"]["Authorization"] == "Bearer pin-jwt"

    @pytest.mark.asyncio
    async def test_provisioner_funds_from_configured_faucet(self) -> None:
        config = NetworkConfig(kmd_url=None)
        session = Session(config, SqliteKeyValueStore())
        client = FakeChainClient()
        provisioner = session.provisioner(client)
        assert provisioner.faucet_address == LocalKeypair.from_seed(
            bytes.fromhex(config.faucet_seed)
        ).address
        report = await provisioner.provision_all()
        assert report.complete
        assert set(session.store.identities()) == set(report.accounts)

    @pytest.mark.asyncio
    async def test_orchestrator_signs_as_active_role(self, session: Session, role_keys) -> None:
        client = FakeChainClient()
        ledger = MarketplaceLedger()
        orchestrator = session.orchestrator(ledger, client=client)
        session.switch_to_role(Role.EXPORTER)
        result = await orchestrator.submit_document("INVOICE", "invoice.pdf", b"%PDF-1.4")
        assert result.ok, result.error
        (tx,) = client.submitted[0]
        assert tx.sender == role_keys[Role.EXPORTER].address
        assert len(ledger.documents_by_exporter(tx.sender)) == 1
