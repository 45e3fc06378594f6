"""
Tests for the pure chain layer: addresses, builders, groups, signers.

Test plan:
- Addresses: 58 chars, checksum detects corruption, keypair round-trips
- Builders: reject bad addresses, oversized notes, invalid asset params
- Method args: ARC-4 selector then encoded values, arity and type checks
- Groups: shared group id, ids deterministic, input not mutated
- Signers: msgpack output verifying over the signed bytes, index selection,
  sender mismatch, wallet checks
"""

import base64

import pytest
from algosdk import abi, account, logic
from algosdk import encoding as algo_encoding

from ebl_orchestrator.chain.keys import (
    ADDRESS_LENGTH,
    LocalKeypair,
    decode_address,
    format_address,
    is_valid_address,
    verify_signature,
)
from ebl_orchestrator.chain.signer import local_signer, resolve_indices, wallet_signer
from ebl_orchestrator.chain.tx import (
    MAX_NOTE_BYTES,
    Transaction,
    app_address,
    app_call,
    asset_create,
    assign_group_id,
    bytes_to_sign,
    decode_signed,
    encode_method_args,
    group_id_of,
    payment,
    transaction_id,
)

from conftest import SAMPLE_PARAMS, FakeWallet, make_keypair

ALICE = make_keypair(1)
BOB = make_keypair(2)


# ---------------------------------------------------------------------------
# Addresses
# ---------------------------------------------------------------------------


class TestAddresses:
    def test_address_length(self) -> None:
        assert len(ALICE.address) == ADDRESS_LENGTH

    def test_from_seed_is_deterministic(self) -> None:
        assert make_keypair(1).address == ALICE.address

    def test_secret_hex_round_trips(self) -> None:
        assert LocalKeypair.from_secret_hex(ALICE.secret_hex) == ALICE

    def test_mnemonic_round_trips(self) -> None:
        words = ALICE.mnemonic
        assert len(words.split()) == 25
        assert LocalKeypair.from_mnemonic(words) == ALICE

    def test_private_key_matches_sdk_account(self) -> None:
        assert account.address_from_private_key(ALICE.private_key) == ALICE.address

    def test_bad_mnemonic_raises(self) -> None:
        with pytest.raises(ValueError, match="mnemonic"):
            LocalKeypair.from_mnemonic("abandon " * 25)

    def test_valid_address(self) -> None:
        assert is_valid_address(ALICE.address)

    def test_corrupted_checksum_is_invalid(self) -> None:
        swapped = "A" if ALICE.address[10] != "A" else "B"
        corrupted = ALICE.address[:10] + swapped + ALICE.address[11:]
        assert not is_valid_address(corrupted)

    def test_non_string_is_invalid(self) -> None:
        assert not is_valid_address(None)
        assert not is_valid_address(12345)

    def test_decode_wrong_length_raises(self) -> None:
        with pytest.raises(ValueError, match="58"):
            decode_address("ABC")

    def test_repr_hides_secret(self) -> None:
        assert ALICE.secret_hex not in repr(ALICE)

    def test_format_address_shortens(self) -> None:
        short = format_address(ALICE.address)
        assert short.startswith(ALICE.address[:6])
        assert short.endswith(ALICE.address[-6:])
        assert format_address(None) == ""

    def test_signature_verifies(self) -> None:
        signature = ALICE.sign(b"hello")
        assert verify_signature(ALICE.address, b"hello", signature)
        assert not verify_signature(BOB.address, b"hello", signature)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


class TestBuilders:
    def test_payment_fields(self) -> None:
        tx = payment(SAMPLE_PARAMS, sender=ALICE.address, receiver=BOB.address, amount=5)
        assert tx.type == "pay"
        assert tx.receiver == BOB.address
        assert tx.amt == 5
        assert tx.fee == SAMPLE_PARAMS.min_fee

    def test_payment_rejects_bad_receiver(self) -> None:
        with pytest.raises(ValueError):
            payment(SAMPLE_PARAMS, sender=ALICE.address, receiver="nope", amount=1)

    def test_payment_rejects_negative_amount(self) -> None:
        with pytest.raises(ValueError):
            payment(SAMPLE_PARAMS, sender=ALICE.address, receiver=BOB.address, amount=-1)

    def test_note_too_long(self) -> None:
        with pytest.raises(ValueError):
            payment(
                SAMPLE_PARAMS,
                sender=ALICE.address,
                receiver=BOB.address,
                amount=0,
                note="x" * (MAX_NOTE_BYTES + 1),
            )

    def test_note_is_utf8_bytes(self) -> None:
        tx = payment(
            SAMPLE_PARAMS, sender=ALICE.address, receiver=BOB.address, amount=0, note="DOC"
        )
        assert tx.note == b"DOC"

    def test_asset_create_unit_name_bound(self) -> None:
        with pytest.raises(ValueError, match="unit_name"):
            asset_create(
                SAMPLE_PARAMS,
                sender=ALICE.address,
                total=1,
                unit_name="TOOLONGNAME",
                asset_name="x",
            )

    def test_asset_create_roles(self) -> None:
        tx = asset_create(
            SAMPLE_PARAMS,
            sender=ALICE.address,
            total=100,
            unit_name="BL000001",
            asset_name="BL Shares - BL-000001",
            manager=ALICE.address,
            reserve=ALICE.address,
            freeze=ALICE.address,
        )
        assert tx.type == "acfg"
        assert tx.manager == ALICE.address
        assert tx.total == 100
        assert tx.decimals == 0

    def test_app_call_encodes_method_and_boxes(self) -> None:
        signature = "create_instrument(string,address,string,uint64)void"
        tx = app_call(
            SAMPLE_PARAMS,
            sender=ALICE.address,
            app_id=7,
            method=signature,
            args=["BL-1", BOB.address, "cid", 5000],
            boxes=["ebl_BL-1"],
        )
        assert tx.type == "appl"
        assert tx.index == 7
        assert tx.app_args[0] == abi.Method.from_signature(signature).get_selector()
        assert [box.name for box in tx.boxes] == [b"ebl_BL-1"]
        assert not tx.foreign_assets

    def test_app_address_is_valid_and_stable(self) -> None:
        assert is_valid_address(app_address(745508576))
        assert app_address(745508576) == logic.get_application_address(745508576)
        assert app_address(1) != app_address(2)

    def test_app_address_rejects_zero(self) -> None:
        with pytest.raises(ValueError):
            app_address(0)


class TestMethodArgs:
    SIGNATURE = "list(string,uint64,uint64,uint64,uint64)void"

    def test_selector_then_values(self) -> None:
        encoded = encode_method_args(self.SIGNATURE, ["BL-1", 5000, 50, 0, 7])
        assert len(encoded) == 6
        assert encoded[0] == abi.Method.from_signature(self.SIGNATURE).get_selector()
        assert encoded[1] == len(b"BL-1").to_bytes(2, "big") + b"BL-1"
        assert encoded[2] == (5000).to_bytes(8, "big")

    def test_wrong_arity_raises(self) -> None:
        with pytest.raises(ValueError, match="takes 5 args"):
            encode_method_args(self.SIGNATURE, ["BL-1"])

    def test_value_outside_type_raises(self) -> None:
        with pytest.raises(ValueError, match="does not fit"):
            encode_method_args(self.SIGNATURE, ["BL-1", -1, 50, 0, 7])

    def test_malformed_signature_raises(self) -> None:
        with pytest.raises(ValueError, match="signature"):
            encode_method_args("not a method", [])


# ---------------------------------------------------------------------------
# Groups and ids
# ---------------------------------------------------------------------------


def _pair() -> list[Transaction]:
    return [
        payment(SAMPLE_PARAMS, sender=ALICE.address, receiver=BOB.address, amount=1),
        payment(SAMPLE_PARAMS, sender=ALICE.address, receiver=ALICE.address, amount=0, note="n"),
    ]


class TestGroups:
    def test_members_share_group_id(self) -> None:
        group = assign_group_id(_pair())
        assert group[0].group == group[1].group
        assert group_id_of(group) == base64.b64encode(group[0].group).decode("ascii")

    def test_input_not_mutated(self) -> None:
        txns = _pair()
        assign_group_id(txns)
        assert not txns[0].group

    def test_group_id_is_deterministic(self) -> None:
        assert assign_group_id(_pair())[0].group == assign_group_id(_pair())[0].group

    def test_ungrouped_single_has_no_group_id(self) -> None:
        assert group_id_of(_pair()[:1]) is None

    def test_regrouping_rejected(self) -> None:
        with pytest.raises(ValueError, match="already"):
            assign_group_id(assign_group_id(_pair()))

    def test_empty_group_rejected(self) -> None:
        with pytest.raises(ValueError):
            assign_group_id([])

    def test_transaction_id_changes_with_content(self) -> None:
        first, second = _pair()
        assert transaction_id(first) != transaction_id(second)
        assert len(transaction_id(first)) == 52


# ---------------------------------------------------------------------------
# Signers
# ---------------------------------------------------------------------------


class TestLocalSigner:
    @pytest.mark.asyncio
    async def test_signs_every_member(self) -> None:
        group = assign_group_id(_pair())
        signed = await local_signer(ALICE)(group)
        assert len(signed) == 2
        for blob, tx in zip(signed, group):
            decoded = decode_signed(blob)
            assert transaction_id(decoded.transaction) == transaction_id(tx)
            signature = base64.b64decode(decoded.signature)
            assert verify_signature(ALICE.address, bytes_to_sign(tx), signature)

    @pytest.mark.asyncio
    async def test_signed_blob_is_msgpack(self) -> None:
        (blob,) = await local_signer(ALICE)(_pair()[:1])
        # msgpack fixmap holding "sig" and "txn"
        assert blob[0] & 0xF0 == 0x80
        assert not blob.startswith(b"{")

    def test_decode_rejects_unsigned(self) -> None:
        unsigned = base64.b64decode(algo_encoding.msgpack_encode(_pair()[0]))
        with pytest.raises(ValueError, match="signed"):
            decode_signed(unsigned)

    @pytest.mark.asyncio
    async def test_unselected_entries_are_none(self) -> None:
        signed = await local_signer(ALICE)(_pair(), [1])
        assert signed[0] is None
        assert signed[1] is not None

    @pytest.mark.asyncio
    async def test_sender_mismatch_raises(self) -> None:
        with pytest.raises(ValueError, match="sender"):
            await local_signer(BOB)(_pair())

    def test_out_of_range_index(self) -> None:
        with pytest.raises(ValueError, match="out of range"):
            resolve_indices(2, [2])


class TestWalletSigner:
    @pytest.mark.asyncio
    async def test_delegates_to_wallet(self) -> None:
        wallet = FakeWallet(ALICE)
        await wallet.connect()
        signed = await wallet_signer(wallet)(_pair())
        assert all(blob is not None for blob in signed)
        assert wallet.sign_calls == [[0, 1]]

    @pytest.mark.asyncio
    async def test_misaligned_wallet_reply_raises(self) -> None:
        class ShortWallet(FakeWallet):
            async def sign_transactions(self, transactions, indices=None):
                return [None]

        wallet = ShortWallet(ALICE)
        with pytest.raises(ValueError, match="entries"):
            await wallet_signer(wallet)(_pair())
