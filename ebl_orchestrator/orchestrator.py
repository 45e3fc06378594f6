"""
Transaction orchestrator — intents in, confirmed results out.

Every operation walks the same state machine:

    IDLE → VALIDATING → BUILDING → SIGNING → SUBMITTING → CONFIRMING
         → COMPLETE | FAILED

and returns an ``OperationResult`` regardless of outcome (failure-first).

Rules:
    - VALIDATING makes no network call. Its failures are terminal.
    - The signer is re-resolved from the identity source immediately
      before SIGNING; a missing signer fails with NO_IDENTITY.
    - Compound operations are one atomic group sharing a group id.
    - CONFIRMING waits at most ``config.confirmation_rounds``. Not
      confirmed by then is FAILED (CONFIRMATION_TIMEOUT), never retried
      here. Use ``check_confirmation`` before resubmitting.
    - The ledger is written only after confirmation.
    - Auxiliary collaborators (pinning, the registry and marketplace
      programs) degrade: the operation continues on a reduced path and
      the result is tagged ``degraded`` with a warning.

Not safe for concurrent operations from the same identity. Callers
serialize.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from ebl_orchestrator.chain.client import ChainClient, Confirmation, is_simulated
from ebl_orchestrator.canonical_json import canonical_json_bytes
from ebl_orchestrator.chain.keys import format_address, is_valid_address
from ebl_orchestrator.chain.tx import (
    Transaction,
    TransactionParams,
    app_address,
    app_call,
    asset_create,
    asset_transfer,
    assign_group_id,
    group_id_of,
    payment,
    transaction_id,
)
from ebl_orchestrator.config import NetworkConfig
from ebl_orchestrator.errors import (
    ErrorKind,
    InvalidStateError,
    NoIdentityError,
    OrchestrationError,
    TransactionRejectedError,
    ValidationError,
    classify_exception,
)
from ebl_orchestrator.identity.resolver import IdentitySource
from ebl_orchestrator.ledger import (
    Currency,
    DocumentSubmission,
    DocumentType,
    Instrument,
    Investment,
    Listing,
    ListingStatus,
    MarketplaceLedger,
    Sale,
    Tokenization,
    new_id,
)
from ebl_orchestrator.result import OperationResult, OperationStatus
from ebl_orchestrator.schema import (
    DOCUMENT_METADATA_SCHEMA,
    INSTRUMENT_METADATA_SCHEMA,
    METADATA_VERSION,
    validate,
)
from ebl_orchestrator.storage.cid import validate_cid
from ebl_orchestrator.storage.protocol import ContentStore, StoredContent

logger = logging.getLogger(__name__)

MAX_FILE_NAME = 255
MAX_REFERENCE = 64

# ARC-4 signatures of the registry and marketplace programs.
REGISTRY_CREATE = "create_instrument(string,address,string,uint64)void"
MARKET_LIST = "list(string,uint64,uint64,uint64,uint64)void"
MARKET_PURCHASE = "purchase(string,string)void"
MARKET_CANCEL = "cancel(string)void"

Transition = Callable[[str, OperationStatus], None]

# Kinds reported to the caller without being treated as network failures.
_CALLER_KINDS = frozenset(
    {ErrorKind.VALIDATION, ErrorKind.INVALID_STATE, ErrorKind.NO_IDENTITY}
)


@dataclass(frozen=True)
class InstrumentDraft:
    """Bill of Lading details supplied by the carrier."""

    reference: str
    exporter_address: str
    cargo_description: str
    cargo_value: int
    port_of_loading: str
    port_of_discharge: str
    vessel_name: str
    currency: str = "USD"
    documents: tuple[str, ...] = ()


class OperationTracker:
    """State of one operation, including the group it has in flight."""

    def __init__(self, operation: str, on_transition: Transition | None = None) -> None:
        self.operation = operation
        self.state = OperationStatus.IDLE
        self.history: list[OperationStatus] = [OperationStatus.IDLE]
        self.group_id: str | None = None
        self.transaction_id: str | None = None
        self._on_transition = on_transition

    def advance(self, state: OperationStatus) -> None:
        if self.state.terminal:
            raise RuntimeError(f"{self.operation} already {self.state}")
        self.state = state
        self.history.append(state)
        logger.debug("%s → %s", self.operation, state)
        if self._on_transition is not None:
            self._on_transition(self.operation, state)

    @property
    def in_flight(self) -> bool:
        return self.transaction_id is not None and not self.state.terminal


@dataclass
class _Outcome:
    """Working state collected while an operation runs."""

    warnings: list[str]
    degraded: bool = False

    def degrade(self, warning: str) -> None:
        logger.warning("%s", warning)
        self.warnings.append(warning)
        self.degraded = True


class TransactionOrchestrator:
    """Builds, signs, submits and confirms marketplace operations.

    Args:
        identity: Source of the active address and signer.
        client: Node client.
        storage: Off-chain content store.
        ledger: Projection updated after confirmation.
        config: Network settings (program ids, bounds, explorer).
        on_transition: Called with (operation, state) on every transition.
    """

    def __init__(
        self,
        identity: IdentitySource,
        client: ChainClient,
        storage: ContentStore,
        ledger: MarketplaceLedger,
        config: NetworkConfig,
        *,
        on_transition: Transition | None = None,
    ) -> None:
        self._identity = identity
        self._client = client
        self._storage = storage
        self._ledger = ledger
        self._config = config
        self._on_transition = on_transition
        self.last_operation: OperationTracker | None = None

    @property
    def ledger(self) -> MarketplaceLedger:
        return self._ledger

    # =================================================================
    # Operations
    # =================================================================

    async def submit_document(
        self,
        document_type: DocumentType | str,
        file_name: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> OperationResult:
        """Store a trade document off chain and anchor it with a note.

        Payload: ``submission_id``, ``content_address``, ``file_hash``,
        ``document_type``.
        """
        tracker = self._start("submit_document")
        outcome = _Outcome(warnings=[])
        try:
            tracker.advance(OperationStatus.VALIDATING)
            sender = self._require_sender()
            doc_type = _parse(DocumentType, document_type, "document type")
            if not file_name or not file_name.strip():
                raise ValidationError("file name is required")
            if len(file_name) > MAX_FILE_NAME:
                raise ValidationError(f"file name exceeds {MAX_FILE_NAME} characters")
            if not content:
                raise ValidationError("document is empty")
            if len(content) > self._config.max_document_bytes:
                raise ValidationError(
                    f"document exceeds {self._config.max_document_bytes} bytes"
                )

            tracker.advance(OperationStatus.BUILDING)
            stored = await self._storage.store(
                content,
                content_type,
                {"name": file_name, "document_type": doc_type, "exporter": sender},
            )
            cid = validate_cid(stored.cid)
            validate(
                {
                    "name": file_name,
                    "document_type": str(doc_type),
                    "exporter_address": sender,
                    "sha256": stored.sha256,
                    "size": stored.size,
                },
                DOCUMENT_METADATA_SCHEMA,
            )
            await self._pin(stored, outcome)

            params = await self._client.get_transaction_params()
            group = [
                payment(
                    params,
                    sender=sender,
                    receiver=sender,
                    amount=0,
                    note=f"DOC_SUBMIT:{doc_type}:{file_name}:{cid}",
                )
            ]
            confirmation = await self._submit(tracker, sender, group)

            submission = DocumentSubmission(
                id=new_id("DOC"),
                exporter_address=sender,
                document_type=doc_type,
                file_name=file_name,
                file_hash=stored.sha256,
                content_address=cid,
                transaction_id=confirmation.transaction_id,
                confirmed_round=confirmation.confirmed_round,
            )
            self._ledger.record_document(submission)
        except Exception as exc:
            return self._failure(tracker, exc, outcome)

        return self._complete(
            tracker,
            confirmation,
            outcome,
            submission_id=submission.id,
            content_address=cid,
            file_hash=stored.sha256,
            document_type=str(doc_type),
        )

    async def create_instrument(self, draft: InstrumentDraft) -> OperationResult:
        """Carrier creates an instrument (one-unit asset) for an exporter.

        Enhanced path: [registry call with box reference, asset create] as
        one group. Falls back to the asset create alone, tagged degraded,
        when the registry is not configured or rejects the group.

        Payload: ``reference``, ``asset_id``, ``metadata_cid``, ``box_key``.
        """
        tracker = self._start("create_instrument")
        outcome = _Outcome(warnings=[])
        try:
            tracker.advance(OperationStatus.VALIDATING)
            carrier = self._require_sender()
            _validate_draft(draft)
            if self._ledger.instrument(draft.reference) is not None:
                raise InvalidStateError(f"instrument already exists: {draft.reference}")

            tracker.advance(OperationStatus.BUILDING)
            box_key = f"ebl_{draft.reference}"
            metadata = {
                "metadata_version": METADATA_VERSION,
                "reference": draft.reference,
                "carrier_address": carrier,
                "exporter_address": draft.exporter_address,
                "cargo_description": draft.cargo_description,
                "cargo_value": draft.cargo_value,
                "currency": draft.currency,
                "port_of_loading": draft.port_of_loading,
                "port_of_discharge": draft.port_of_discharge,
                "vessel_name": draft.vessel_name,
                "created_at": datetime.now(UTC).strftime("%Y-%m-%dT%H:%M:%S+00:00"),
                "box_key": box_key,
                "documents": list(draft.documents),
            }
            validate(metadata, INSTRUMENT_METADATA_SCHEMA)
            metadata_cid = await self._store_metadata(metadata, draft.reference, outcome)

            params = await self._client.get_transaction_params()
            instrument_asset = asset_create(
                params,
                sender=carrier,
                total=1,
                decimals=0,
                unit_name="EBL",
                asset_name=f"eBL {draft.reference}"[:32],
                url=f"ipfs://{metadata_cid}" if metadata_cid else None,
                manager=carrier,
                reserve=draft.exporter_address,
                freeze=carrier,
            )

            confirmation: Confirmation | None = None
            asset_id: int | None = None
            registry = self._config.registry_app_id
            if registry is None:
                outcome.degrade("instrument registry not configured; created asset only")
            else:
                group = [
                    app_call(
                        params,
                        sender=carrier,
                        app_id=registry,
                        method=REGISTRY_CREATE,
                        args=[
                            draft.reference,
                            draft.exporter_address,
                            metadata_cid or "",
                            draft.cargo_value,
                        ],
                        boxes=[box_key],
                    ),
                    instrument_asset,
                ]
                try:
                    confirmation = await self._submit(tracker, carrier, group)
                    asset_id = await self._created_asset(group, 1, confirmation)
                except TransactionRejectedError as exc:
                    outcome.degrade(f"registry rejected the instrument ({exc.detail}); created asset only")
                    tracker.transaction_id = None
                    tracker.advance(OperationStatus.BUILDING)

            if confirmation is None:
                box_key = None
                group = [instrument_asset]
                confirmation = await self._submit(tracker, carrier, group)
                asset_id = confirmation.asset_id

            if asset_id is None:
                outcome.warnings.append("node reported no created asset id")

            instrument = Instrument(
                reference=draft.reference,
                carrier_address=carrier,
                exporter_address=draft.exporter_address,
                holder_address=draft.exporter_address,
                cargo_description=draft.cargo_description,
                cargo_value=draft.cargo_value,
                currency=draft.currency,
                port_of_loading=draft.port_of_loading,
                port_of_discharge=draft.port_of_discharge,
                vessel_name=draft.vessel_name,
                asset_id=asset_id,
                metadata_cid=metadata_cid,
                box_key=box_key,
                transaction_id=confirmation.transaction_id,
                confirmed_round=confirmation.confirmed_round,
                degraded=outcome.degraded,
            )
            self._ledger.record_instrument(instrument)
        except Exception as exc:
            return self._failure(tracker, exc, outcome)

        return self._complete(
            tracker,
            confirmation,
            outcome,
            reference=draft.reference,
            asset_id=asset_id,
            metadata_cid=metadata_cid,
            box_key=box_key,
        )

    async def tokenize(
        self, reference: str, total_shares: int, price_per_share: int
    ) -> OperationResult:
        """Exporter offers fractional shares of an instrument.

        Group: [tokenization note payment, share asset create].
        Payload: ``share_asset_id``, ``total_shares``, ``price_per_share``.
        """
        tracker = self._start("tokenize")
        outcome = _Outcome(warnings=[])
        try:
            tracker.advance(OperationStatus.VALIDATING)
            sender = self._require_sender()
            instrument = self._require_instrument(reference)
            if sender != instrument.exporter_address:
                raise InvalidStateError("only the instrument's exporter can tokenize it")
            if instrument.holder_address != instrument.exporter_address:
                raise InvalidStateError("instrument has been sold; the exporter no longer holds it")
            if self._ledger.tokenization(reference) is not None:
                raise InvalidStateError(f"instrument already tokenized: {reference}")
            _require_positive("total_shares", total_shares)
            _require_positive("price_per_share", price_per_share)

            tracker.advance(OperationStatus.BUILDING)
            params = await self._client.get_transaction_params()
            group = [
                payment(
                    params,
                    sender=sender,
                    receiver=sender,
                    amount=0,
                    note=f"TOKENIZE:{reference}:{total_shares}:{price_per_share}",
                ),
                asset_create(
                    params,
                    sender=sender,
                    total=total_shares,
                    decimals=0,
                    unit_name=f"BL{reference[-6:]}",
                    asset_name=f"BL Shares - {reference}"[:32],
                    manager=sender,
                    reserve=sender,
                    freeze=sender,
                ),
            ]
            confirmation = await self._submit(tracker, sender, group)
            share_asset_id = await self._created_asset(group, 1, confirmation)

            self._ledger.record_tokenization(
                Tokenization(
                    reference=reference,
                    exporter_address=sender,
                    share_asset_id=share_asset_id,
                    total_shares=total_shares,
                    available_shares=total_shares,
                    price_per_share=price_per_share,
                    transaction_id=confirmation.transaction_id,
                    confirmed_round=confirmation.confirmed_round,
                )
            )
        except Exception as exc:
            return self._failure(tracker, exc, outcome)

        return self._complete(
            tracker,
            confirmation,
            outcome,
            reference=reference,
            share_asset_id=share_asset_id,
            total_shares=total_shares,
            price_per_share=price_per_share,
        )

    async def invest(self, reference: str, shares: int) -> OperationResult:
        """Buy ``shares`` of an offering; pays ``shares × price`` to the exporter.

        Payload: ``investment_id``, ``shares``, ``amount``,
        ``available_shares``, ``funding_progress``.
        """
        tracker = self._start("invest")
        outcome = _Outcome(warnings=[])
        try:
            tracker.advance(OperationStatus.VALIDATING)
            investor = self._require_sender()
            _require_positive("shares", shares)
            offering = self._ledger.tokenization(reference)
            if offering is None:
                raise InvalidStateError(f"instrument not tokenized: {reference}")
            if shares > offering.available_shares:
                raise ValidationError(
                    f"insufficient shares: {offering.available_shares} available, "
                    f"{shares} requested"
                )
            amount = shares * offering.price_per_share

            tracker.advance(OperationStatus.BUILDING)
            params = await self._client.get_transaction_params()
            group = [
                payment(
                    params,
                    sender=investor,
                    receiver=offering.exporter_address,
                    amount=amount,
                    note=f"INVESTMENT:{reference}:{shares}:{amount}",
                )
            ]
            confirmation = await self._submit(tracker, investor, group)

            investment = Investment(
                id=new_id("INV"),
                reference=reference,
                investor_address=investor,
                shares=shares,
                amount=amount,
                transaction_id=confirmation.transaction_id,
                confirmed_round=confirmation.confirmed_round,
            )
            updated = self._ledger.record_investment(investment)
        except Exception as exc:
            return self._failure(tracker, exc, outcome)

        return self._complete(
            tracker,
            confirmation,
            outcome,
            investment_id=investment.id,
            reference=reference,
            shares=shares,
            amount=amount,
            available_shares=updated.available_shares,
            funding_progress=updated.funding_progress,
        )

    async def list_for_sale(
        self,
        reference: str,
        prices: Mapping[Currency | str, int],
        validity_days: int = 30,
    ) -> OperationResult:
        """Holder offers an instrument on the marketplace.

        Payload: ``listing_id``, ``reference``, ``prices``.
        """
        tracker = self._start("list_for_sale")
        outcome = _Outcome(warnings=[])
        try:
            tracker.advance(OperationStatus.VALIDATING)
            seller = self._require_sender()
            instrument = self._require_instrument(reference)
            if seller != instrument.holder_address:
                raise InvalidStateError("only the current holder can list this instrument")
            if self._ledger.active_listing_for(reference) is not None:
                raise InvalidStateError(f"instrument already listed: {reference}")
            offered = self._parse_prices(prices)
            _require_positive("validity_days", validity_days)

            tracker.advance(OperationStatus.BUILDING)
            params = await self._client.get_transaction_params()
            price_algo = offered.get(Currency.ALGO, 0)
            price_usdc = offered.get(Currency.USDC, 0)
            market = self._config.marketplace_app_id
            if market is not None:
                group = [
                    app_call(
                        params,
                        sender=seller,
                        app_id=market,
                        method=MARKET_LIST,
                        args=[
                            reference,
                            instrument.asset_id or 0,
                            price_algo,
                            price_usdc,
                            validity_days,
                        ],
                        foreign_assets=[instrument.asset_id] if instrument.asset_id else (),
                    )
                ]
            else:
                outcome.degrade("marketplace program not configured; listing recorded by note")
                group = [
                    payment(
                        params,
                        sender=seller,
                        receiver=seller,
                        amount=0,
                        note=f"LIST:{reference}:ALGO={price_algo}:USDC={price_usdc}:{validity_days}",
                    )
                ]
            confirmation = await self._submit(tracker, seller, group)

            listing = Listing(
                id=new_id("LST"),
                reference=reference,
                asset_id=instrument.asset_id,
                seller_address=seller,
                prices=offered,
                validity_days=validity_days,
                transaction_id=confirmation.transaction_id,
                confirmed_round=confirmation.confirmed_round,
            )
            self._ledger.record_listing(listing)
        except Exception as exc:
            return self._failure(tracker, exc, outcome)

        return self._complete(
            tracker,
            confirmation,
            outcome,
            listing_id=listing.id,
            reference=reference,
            prices={str(c): p for c, p in offered.items()},
        )

    async def purchase(self, listing_id: str, currency: Currency | str) -> OperationResult:
        """Buy a listing in ``currency``.

        Group: [settlement to the marketplace escrow, marketplace call].
        Without a marketplace program: [settlement to the seller, note],
        tagged degraded. Either way the group settles all-or-nothing and
        the ledger changes only after it confirms.

        Payload: ``sale_id``, ``listing_id``, ``currency``, ``amount``.
        """
        tracker = self._start("purchase")
        outcome = _Outcome(warnings=[])
        try:
            tracker.advance(OperationStatus.VALIDATING)
            buyer = self._require_sender()
            chosen = _parse(Currency, currency, "currency")
            listing = self._ledger.listing(listing_id)
            if listing is None:
                raise InvalidStateError("Listing not found")
            if listing.status is not ListingStatus.ACTIVE:
                raise InvalidStateError(f"Listing is not active ({listing.status})")
            if listing.is_expired():
                raise InvalidStateError("Listing has expired")
            if listing.seller_address == buyer:
                raise InvalidStateError("Cannot buy your own listing")
            if not listing.accepts(chosen):
                raise ValidationError(f"This listing does not accept {chosen} payments")
            amount = listing.price(chosen)
            usdc = self._require_usdc() if chosen is Currency.USDC else None

            tracker.advance(OperationStatus.BUILDING)
            params = await self._client.get_transaction_params()
            market = self._config.marketplace_app_id
            if market is not None:
                escrow = app_address(market)
                group = [
                    _settlement(params, buyer, escrow, amount, usdc),
                    app_call(
                        params,
                        sender=buyer,
                        app_id=market,
                        method=MARKET_PURCHASE,
                        args=[listing_id, str(chosen)],
                        foreign_assets=[a for a in (listing.asset_id, usdc) if a],
                    ),
                ]
            else:
                outcome.degrade("marketplace program not configured; paying seller directly")
                group = [
                    _settlement(params, buyer, listing.seller_address, amount, usdc),
                    payment(
                        params,
                        sender=buyer,
                        receiver=buyer,
                        amount=0,
                        note=f"PURCHASE:{listing_id}:{chosen}:{amount}",
                    ),
                ]
            confirmation = await self._submit(tracker, buyer, group)

            sale = Sale(
                id=new_id("SALE"),
                listing_id=listing_id,
                reference=listing.reference,
                buyer_address=buyer,
                seller_address=listing.seller_address,
                currency=chosen,
                amount=amount,
                transaction_id=confirmation.transaction_id,
                confirmed_round=confirmation.confirmed_round,
            )
            self._ledger.record_sale(sale)
        except Exception as exc:
            return self._failure(tracker, exc, outcome)

        return self._complete(
            tracker,
            confirmation,
            outcome,
            sale_id=sale.id,
            listing_id=listing_id,
            reference=listing.reference,
            currency=str(chosen),
            amount=amount,
        )

    async def cancel_listing(self, listing_id: str) -> OperationResult:
        """Seller withdraws an ACTIVE listing. Payload: ``listing_id``."""
        tracker = self._start("cancel_listing")
        outcome = _Outcome(warnings=[])
        try:
            tracker.advance(OperationStatus.VALIDATING)
            seller = self._require_sender()
            listing = self._ledger.listing(listing_id)
            if listing is None:
                raise InvalidStateError("Listing not found")
            if listing.seller_address != seller:
                raise InvalidStateError("Only the seller can cancel the listing")
            if listing.status is not ListingStatus.ACTIVE:
                raise InvalidStateError(f"Listing is not active ({listing.status})")

            tracker.advance(OperationStatus.BUILDING)
            params = await self._client.get_transaction_params()
            market = self._config.marketplace_app_id
            if market is not None:
                group = [
                    app_call(
                        params,
                        sender=seller,
                        app_id=market,
                        method=MARKET_CANCEL,
                        args=[listing_id],
                    )
                ]
            else:
                outcome.degrade("marketplace program not configured; cancellation recorded by note")
                group = [
                    payment(
                        params,
                        sender=seller,
                        receiver=seller,
                        amount=0,
                        note=f"CANCEL:{listing_id}",
                    )
                ]
            confirmation = await self._submit(tracker, seller, group)
            self._ledger.cancel_listing(listing_id, seller)
        except Exception as exc:
            return self._failure(tracker, exc, outcome)

        return self._complete(tracker, confirmation, outcome, listing_id=listing_id)

    async def check_confirmation(self, transaction_id: str) -> OperationResult:
        """Look up a prior submission once, without waiting.

        COMPLETE if confirmed; FAILED with REJECTED if the node dropped
        it; FAILED with CONFIRMATION_TIMEOUT while still pending.
        """
        operation = "check_confirmation"
        simulated = is_simulated(self._client)
        try:
            info = await self._client.pending_info(transaction_id)
        except Exception as exc:
            return OperationResult.failed(
                operation,
                classify_exception(exc),
                _reason(exc),
                transaction_id=transaction_id,
                simulated=simulated,
            )
        if info.confirmed:
            return OperationResult(
                operation=operation,
                status=OperationStatus.COMPLETE,
                transaction_id=transaction_id,
                confirmed_round=info.confirmed_round,
                explorer_url=self._config.explorer_url(transaction_id),
                payload={"asset_id": info.asset_id, "app_id": info.app_id},
                simulated=simulated,
            )
        if info.pool_error:
            return OperationResult.failed(
                operation,
                ErrorKind.REJECTED,
                info.pool_error,
                transaction_id=transaction_id,
                simulated=simulated,
            )
        return OperationResult.failed(
            operation,
            ErrorKind.CONFIRMATION_TIMEOUT,
            "transaction is still pending",
            transaction_id=transaction_id,
            simulated=simulated,
        )

    # =================================================================
    # Pipeline
    # =================================================================

    def _start(self, operation: str) -> OperationTracker:
        tracker = OperationTracker(operation, self._on_transition)
        self.last_operation = tracker
        return tracker

    def _require_sender(self) -> str:
        address = self._identity.active_address()
        if address is None or self._identity.get_signer() is None:
            raise NoIdentityError()
        return address

    def _require_instrument(self, reference: str) -> Instrument:
        if not reference:
            raise ValidationError("instrument reference is required")
        instrument = self._ledger.instrument(reference)
        if instrument is None:
            raise InvalidStateError(f"unknown instrument: {reference}")
        return instrument

    def _require_usdc(self) -> int:
        if self._config.usdc_asset_id is None:
            raise ValidationError(f"USDC is not available on {self._config.network}")
        return self._config.usdc_asset_id

    def _parse_prices(self, prices: Mapping[Currency | str, int]) -> dict[Currency, int]:
        offered: dict[Currency, int] = {}
        for currency, price in prices.items():
            chosen = _parse(Currency, currency, "currency")
            if price is None or price == 0:
                continue
            _require_positive(f"{chosen} price", price)
            if chosen is Currency.USDC:
                self._require_usdc()
            offered[chosen] = price
        if not offered:
            raise ValidationError("a listing needs a price in at least one currency")
        return offered

    async def _submit(
        self,
        tracker: OperationTracker,
        sender: str,
        txns: Sequence[Transaction],
    ) -> Confirmation:
        """Group, sign, submit and confirm ``txns``."""
        group = assign_group_id(txns) if len(txns) > 1 else list(txns)
        tracker.group_id = group_id_of(group)

        tracker.advance(OperationStatus.SIGNING)
        signer = self._identity.get_signer()
        if signer is None:
            raise NoIdentityError()
        if self._identity.active_address() != sender:
            raise NoIdentityError("active identity changed during the operation")
        signed = await signer(group)
        blobs = [blob for blob in signed if blob is not None]
        if len(blobs) != len(group):
            raise NoIdentityError("signer did not sign every transaction in the group")

        tracker.advance(OperationStatus.SUBMITTING)
        tx_id = await self._client.submit_raw(blobs)
        tracker.transaction_id = tx_id
        logger.debug(
            "%s submitted %s (%d txn) from %s",
            tracker.operation,
            tx_id,
            len(group),
            format_address(sender),
        )

        tracker.advance(OperationStatus.CONFIRMING)
        return await self._client.wait_for_confirmation(
            tx_id, self._config.confirmation_rounds
        )

    async def _created_asset(
        self, group: Sequence[Transaction], index: int, confirmation: Confirmation
    ) -> int | None:
        if index == 0:
            return confirmation.asset_id
        info = await self._client.pending_info(transaction_id(group[index]))
        return info.asset_id

    async def _pin(self, stored: StoredContent, outcome: _Outcome) -> None:
        if stored.pinned:
            return
        try:
            pinned = await self._storage.pin(stored.cid)
        except Exception as exc:
            outcome.degrade(f"pinning {stored.cid} failed: {_reason(exc)}")
            return
        if not pinned:
            outcome.degrade(f"pinning {stored.cid} was refused")

    async def _store_metadata(
        self, metadata: dict[str, Any], reference: str, outcome: _Outcome
    ) -> str | None:
        try:
            stored = await self._storage.store(
                canonical_json_bytes(metadata),
                "application/json",
                {"name": f"{reference}.json", "reference": reference},
            )
            cid = validate_cid(stored.cid)
        except Exception as exc:
            outcome.degrade(f"metadata storage unavailable: {_reason(exc)}")
            return None
        await self._pin(stored, outcome)
        return cid

    def _complete(
        self,
        tracker: OperationTracker,
        confirmation: Confirmation,
        outcome: _Outcome,
        **payload: Any,
    ) -> OperationResult:
        tracker.advance(OperationStatus.COMPLETE)
        logger.info(
            "%s confirmed in round %d (%s)",
            tracker.operation,
            confirmation.confirmed_round,
            confirmation.transaction_id,
        )
        return OperationResult(
            operation=tracker.operation,
            status=OperationStatus.COMPLETE,
            transaction_id=confirmation.transaction_id,
            confirmed_round=confirmation.confirmed_round,
            explorer_url=self._config.explorer_url(confirmation.transaction_id),
            payload=payload,
            group_id=tracker.group_id,
            degraded=outcome.degraded,
            simulated=is_simulated(self._client),
            warnings=tuple(outcome.warnings),
        )

    def _failure(
        self, tracker: OperationTracker, exc: Exception, outcome: _Outcome
    ) -> OperationResult:
        kind = classify_exception(exc)
        failed_in = tracker.state
        reason = _reason(exc)
        if kind in _CALLER_KINDS:
            logger.debug("%s rejected in %s: %s", tracker.operation, failed_in, reason)
        elif kind is ErrorKind.UNKNOWN:
            logger.exception("%s failed in %s", tracker.operation, failed_in)
        else:
            logger.warning("%s failed in %s: %s", tracker.operation, failed_in, reason)

        if not tracker.state.terminal:
            tracker.advance(OperationStatus.FAILED)
        return OperationResult.failed(
            tracker.operation,
            kind,
            reason,
            failed_in=failed_in,
            transaction_id=tracker.transaction_id,
            group_id=tracker.group_id,
            warnings=tuple(outcome.warnings),
            simulated=is_simulated(self._client),
        )


# =========================================================================
# Helpers
# =========================================================================


def _reason(exc: BaseException) -> str:
    if isinstance(exc, OrchestrationError):
        return exc.reason
    return str(exc) or type(exc).__name__


def _parse(enum_type: Any, value: Any, label: str) -> Any:
    try:
        return enum_type(value)
    except ValueError as exc:
        raise ValidationError(f"unknown {label}: {value!r}") from exc


def _require_positive(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValidationError(f"{name} must be a positive integer, got: {value!r}")


def _validate_draft(draft: InstrumentDraft) -> None:
    if not draft.reference or len(draft.reference) > MAX_REFERENCE:
        raise ValidationError(f"reference must be 1-{MAX_REFERENCE} characters")
    for name in ("cargo_description", "port_of_loading", "port_of_discharge", "vessel_name"):
        if not str(getattr(draft, name)).strip():
            raise ValidationError(f"{name} is required")
    if not is_valid_address(draft.exporter_address):
        raise ValidationError(f"invalid exporter address: {draft.exporter_address!r}")
    if isinstance(draft.cargo_value, bool) or not isinstance(draft.cargo_value, int) or draft.cargo_value < 0:
        raise ValidationError("cargo_value must be a non-negative integer")


def _settlement(
    params: TransactionParams,
    sender: str,
    receiver: str,
    amount: int,
    usdc_asset_id: int | None,
) -> Transaction:
    if usdc_asset_id is None:
        return payment(params, sender=sender, receiver=receiver, amount=amount)
    return asset_transfer(
        params,
        sender=sender,
        receiver=receiver,
        asset_id=usdc_asset_id,
        amount=amount,
    )
