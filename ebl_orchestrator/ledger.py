"""
Marketplace ledger — in-memory projection of confirmed operations.

Entities are immutable records. The ledger replaces a record when its
state moves (a listing is sold, a document is reviewed, shares are
bought) so readers never observe a half-updated object.

Write discipline:
    ``record_*`` methods are called by the orchestrator only, and only
    after the backing transaction group has confirmed. Each one checks
    its preconditions before touching any state, so a rejected write
    leaves the ledger unchanged.

Queries are pure reads over the projection.

Funding progress:
    ``funding_progress = 100 * (total_shares - available_shares) / total_shares``
    computed on read as an exact ``Fraction``, so it can never be stale.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from fractions import Fraction
from types import MappingProxyType
from typing import Any

from ebl_orchestrator.errors import InvalidStateError, ValidationError


class DocumentType(StrEnum):
    INVOICE = "INVOICE"
    PACKING_LIST = "PACKING_LIST"
    CERTIFICATE = "CERTIFICATE"
    OTHER = "OTHER"


class DocumentStatus(StrEnum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class ListingStatus(StrEnum):
    ACTIVE = "ACTIVE"
    SOLD = "SOLD"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


class TokenizationStatus(StrEnum):
    FUNDING = "FUNDING"
    FUNDED = "FUNDED"


class Currency(StrEnum):
    ALGO = "ALGO"
    USDC = "USDC"


def _now() -> datetime:
    return datetime.now(UTC)


def new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


# =========================================================================
# Entities
# =========================================================================


@dataclass(frozen=True)
class DocumentReview:
    reviewed_by: str
    status: DocumentStatus
    notes: str
    reviewed_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class DocumentSubmission:
    """A trade document submitted by an exporter for carrier review."""

    id: str
    exporter_address: str
    document_type: DocumentType
    file_name: str
    file_hash: str
    content_address: str
    transaction_id: str
    confirmed_round: int
    status: DocumentStatus = DocumentStatus.PENDING
    submitted_at: datetime = field(default_factory=_now)
    review: DocumentReview | None = None


@dataclass(frozen=True)
class Instrument:
    """One Bill of Lading created on chain by a carrier for an exporter.

    ``holder_address`` starts as the exporter and moves to the buyer on
    each marketplace sale.
    """

    reference: str
    carrier_address: str
    exporter_address: str
    holder_address: str
    cargo_description: str
    cargo_value: int
    currency: str
    port_of_loading: str
    port_of_discharge: str
    vessel_name: str
    asset_id: int | None
    metadata_cid: str | None
    box_key: str | None
    transaction_id: str
    confirmed_round: int
    degraded: bool = False
    created_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class Tokenization:
    """Fractional-share offering derived from an instrument."""

    reference: str
    exporter_address: str
    share_asset_id: int | None
    total_shares: int
    available_shares: int
    price_per_share: int
    transaction_id: str
    confirmed_round: int
    investors: int = 0
    created_at: datetime = field(default_factory=_now)

    @property
    def funding_progress(self) -> Fraction:
        """Percent of shares sold, exact."""
        sold = self.total_shares - self.available_shares
        return Fraction(100 * sold, self.total_shares)

    @property
    def status(self) -> TokenizationStatus:
        if self.available_shares > 0:
            return TokenizationStatus.FUNDING
        return TokenizationStatus.FUNDED


@dataclass(frozen=True)
class Investment:
    id: str
    reference: str
    investor_address: str
    shares: int
    amount: int
    transaction_id: str
    confirmed_round: int
    created_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class Listing:
    """An offer to sell an instrument, priced in one or more currencies."""

    id: str
    reference: str
    asset_id: int | None
    seller_address: str
    prices: Mapping[Currency, int]
    validity_days: int
    transaction_id: str
    confirmed_round: int
    status: ListingStatus = ListingStatus.ACTIVE
    listed_at: datetime = field(default_factory=_now)

    def __post_init__(self) -> None:
        # Read-only snapshot of the caller's prices.
        object.__setattr__(self, "prices", MappingProxyType(dict(self.prices)))

    def accepts(self, currency: Currency | str) -> bool:
        return self.prices.get(Currency(currency), 0) > 0

    def price(self, currency: Currency | str) -> int:
        return self.prices[Currency(currency)]

    @property
    def expires_at(self) -> datetime:
        return self.listed_at + timedelta(days=self.validity_days)

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or _now()) >= self.expires_at


@dataclass(frozen=True)
class Sale:
    id: str
    listing_id: str
    reference: str
    buyer_address: str
    seller_address: str
    currency: Currency
    amount: int
    transaction_id: str
    confirmed_round: int
    sold_at: datetime = field(default_factory=_now)


@dataclass(frozen=True)
class InvestorPortfolio:
    investments: list[Investment]
    tokenizations: list[Tokenization]

    @property
    def total_invested(self) -> int:
        return sum(investment.amount for investment in self.investments)

    @property
    def total_shares(self) -> int:
        return sum(investment.shares for investment in self.investments)


# =========================================================================
# Ledger
# =========================================================================


class MarketplaceLedger:
    """Queryable projection of instruments, offerings, investments and listings."""

    def __init__(self) -> None:
        self._documents: dict[str, DocumentSubmission] = {}
        self._instruments: dict[str, Instrument] = {}
        self._tokenizations: dict[str, Tokenization] = {}
        self._investments: list[Investment] = []
        self._listings: dict[str, Listing] = {}
        self._sales: list[Sale] = []

    # -----------------------------------------------------------------
    # Lookups
    # -----------------------------------------------------------------

    def instrument(self, reference: str) -> Instrument | None:
        return self._instruments.get(reference)

    def tokenization(self, reference: str) -> Tokenization | None:
        return self._tokenizations.get(reference)

    def listing(self, listing_id: str) -> Listing | None:
        return self._listings.get(listing_id)

    def document(self, document_id: str) -> DocumentSubmission | None:
        return self._documents.get(document_id)

    def active_listing_for(self, reference: str) -> Listing | None:
        for listing in self._listings.values():
            if listing.reference == reference and listing.status is ListingStatus.ACTIVE:
                return listing
        return None

    # -----------------------------------------------------------------
    # Writes (orchestrator only, after confirmation)
    # -----------------------------------------------------------------

    def record_document(self, submission: DocumentSubmission) -> None:
        if submission.id in self._documents:
            raise InvalidStateError(f"document already recorded: {submission.id}")
        self._documents[submission.id] = submission

    def record_instrument(self, instrument: Instrument) -> None:
        if instrument.reference in self._instruments:
            raise InvalidStateError(f"instrument already exists: {instrument.reference}")
        self._instruments[instrument.reference] = instrument

    def record_tokenization(self, tokenization: Tokenization) -> None:
        if tokenization.reference not in self._instruments:
            raise InvalidStateError(f"unknown instrument: {tokenization.reference}")
        if tokenization.reference in self._tokenizations:
            raise InvalidStateError(f"instrument already tokenized: {tokenization.reference}")
        self._tokenizations[tokenization.reference] = tokenization

    def record_investment(self, investment: Investment) -> Tokenization:
        """Append ``investment`` and update its offering. Returns the new offering."""
        offering = self._tokenizations.get(investment.reference)
        if offering is None:
            raise InvalidStateError(f"instrument not tokenized: {investment.reference}")
        if investment.shares > offering.available_shares:
            raise InvalidStateError(
                f"only {offering.available_shares} share(s) available, "
                f"requested {investment.shares}"
            )
        updated = replace(
            offering,
            available_shares=offering.available_shares - investment.shares,
            investors=offering.investors + 1,
        )
        self._tokenizations[investment.reference] = updated
        self._investments.append(investment)
        return updated

    def record_listing(self, listing: Listing) -> None:
        if listing.reference not in self._instruments:
            raise InvalidStateError(f"unknown instrument: {listing.reference}")
        if self.active_listing_for(listing.reference) is not None:
            raise InvalidStateError(f"instrument already listed: {listing.reference}")
        self._listings[listing.id] = listing

    def record_sale(self, sale: Sale) -> None:
        """Mark the listing SOLD and move the instrument to the buyer."""
        listing = self._listings.get(sale.listing_id)
        if listing is None:
            raise InvalidStateError("Listing not found")
        if listing.status is not ListingStatus.ACTIVE:
            raise InvalidStateError(f"Listing is not active ({listing.status})")

        self._listings[listing.id] = replace(listing, status=ListingStatus.SOLD)
        instrument = self._instruments.get(listing.reference)
        if instrument is not None:
            self._instruments[listing.reference] = replace(
                instrument, holder_address=sale.buyer_address
            )
        self._sales.append(sale)

    def cancel_listing(self, listing_id: str, seller_address: str) -> Listing:
        listing = self._listings.get(listing_id)
        if listing is None:
            raise InvalidStateError("Listing not found")
        if listing.seller_address != seller_address:
            raise InvalidStateError("Only the seller can cancel the listing")
        if listing.status is not ListingStatus.ACTIVE:
            raise InvalidStateError(f"Listing is not active ({listing.status})")
        cancelled = replace(listing, status=ListingStatus.CANCELLED)
        self._listings[listing_id] = cancelled
        return cancelled

    def expire_listings(self, now: datetime | None = None) -> list[Listing]:
        """Move ACTIVE listings past their validity to EXPIRED."""
        expired = []
        for listing in list(self._listings.values()):
            if listing.status is ListingStatus.ACTIVE and listing.is_expired(now):
                updated = replace(listing, status=ListingStatus.EXPIRED)
                self._listings[listing.id] = updated
                expired.append(updated)
        return expired

    def review_document(
        self,
        document_id: str,
        reviewer_address: str,
        status: DocumentStatus | str,
        notes: str = "",
    ) -> DocumentSubmission:
        """Record a carrier's verdict on a pending document."""
        status = DocumentStatus(status)
        if status is DocumentStatus.PENDING:
            raise ValidationError("a review must VERIFY or REJECT")
        document = self._documents.get(document_id)
        if document is None:
            raise InvalidStateError("Document not found")
        if document.status is not DocumentStatus.PENDING:
            raise InvalidStateError(f"document already reviewed ({document.status})")
        reviewed = replace(
            document,
            status=status,
            review=DocumentReview(reviewed_by=reviewer_address, status=status, notes=notes),
        )
        self._documents[document_id] = reviewed
        return reviewed

    # -----------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------

    def instruments(self) -> list[Instrument]:
        return list(self._instruments.values())

    def instruments_by_exporter(self, address: str) -> list[Instrument]:
        return [i for i in self._instruments.values() if i.exporter_address == address]

    def instruments_by_carrier(self, address: str) -> list[Instrument]:
        return [i for i in self._instruments.values() if i.carrier_address == address]

    def instruments_by_holder(self, address: str) -> list[Instrument]:
        return [i for i in self._instruments.values() if i.holder_address == address]

    def tokenizations(self) -> list[Tokenization]:
        return list(self._tokenizations.values())

    def tokenizations_by_exporter(self, address: str) -> list[Tokenization]:
        references = {i.reference for i in self.instruments_by_exporter(address)}
        return [t for t in self._tokenizations.values() if t.reference in references]

    def tokenizations_by_carrier(self, address: str) -> list[Tokenization]:
        references = {i.reference for i in self.instruments_by_carrier(address)}
        return [t for t in self._tokenizations.values() if t.reference in references]

    def active_opportunities(self) -> list[Tokenization]:
        return [
            t
            for t in self._tokenizations.values()
            if t.status is TokenizationStatus.FUNDING and t.available_shares > 0
        ]

    def investments_by_investor(self, address: str) -> list[Investment]:
        return [i for i in self._investments if i.investor_address == address]

    def investor_portfolio(self, address: str) -> InvestorPortfolio:
        investments = self.investments_by_investor(address)
        references = {i.reference for i in investments}
        return InvestorPortfolio(
            investments=investments,
            tokenizations=[
                t for t in self._tokenizations.values() if t.reference in references
            ],
        )

    def marketplace_listings(self, now: datetime | None = None) -> list[Listing]:
        """ACTIVE listings that have not run past their validity."""
        return [
            listing
            for listing in self._listings.values()
            if listing.status is ListingStatus.ACTIVE and not listing.is_expired(now)
        ]

    def listings_by_seller(self, address: str) -> list[Listing]:
        return [
            listing
            for listing in self._listings.values()
            if listing.seller_address == address and listing.status is ListingStatus.ACTIVE
        ]

    def sales(self) -> list[Sale]:
        return list(self._sales)

    def documents_by_exporter(self, address: str | None = None) -> list[DocumentSubmission]:
        if address is None:
            return list(self._documents.values())
        return [d for d in self._documents.values() if d.exporter_address == address]

    def stats(self) -> dict[str, Any]:
        investors = {i.investor_address for i in self._investments}
        return {
            "instruments": len(self._instruments),
            "tokenized": len(self._tokenizations),
            "total_cargo_value": sum(i.cargo_value for i in self._instruments.values()),
            "total_invested": sum(i.amount for i in self._investments),
            "active_investors": len(investors),
            "active_listings": len(self.marketplace_listings()),
            "sales": len(self._sales),
            "documents_pending": sum(
                1 for d in self._documents.values() if d.status is DocumentStatus.PENDING
            ),
        }
