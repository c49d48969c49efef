# Overview: Service-layer operations for contracts; value rollup and creation from Won offers.

from __future__ import annotations

from flask import current_app

from ..constants import CODE_PREFIX_CONTRACT, CONTRACT_STATUSES, ContractStatus, OfferStatus
from ..extensions import db
from ..models import Contract, ContractDocument, Offer
from ..validation import (
    ConflictError,
    ValidationError,
    require_choice,
    require_rich_text,
    require_text,
)
from .attachment_service import create_document_rows, drop_pending_documents, normalize_documents
from .auth_service import generate_human_id
from .gateway import get_row
from .lifecycle_service import LifecycleError
from dealdesk.time_utils import parse_iso_date, utcnow


def compute_total_contract_value(total_mrr: float, total_services_revenue: float) -> float:
    """Twelve months of recurring revenue plus one-time services."""
    return total_mrr * 12 + total_services_revenue


def compute_offer_revenue(offer: Offer) -> tuple[float, float]:
    """(MRR, services revenue) rolled up from the offer's environments and service sets."""
    return offer.total_mrr, offer.total_services_revenue


def _parse_amount(value, label: str) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a number")


def _parse_start_date(value):
    if value in (None, ""):
        raise ValidationError("Contract start date is required")
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError("Contract start date must be an ISO-8601 date")


def create_contract(
    offer_id: int,
    *,
    actor_id: int,
    contract_summary: str,
    payment_terms: str,
    contract_start_date,
    total_mrr=None,
    total_services_revenue=None,
    documents=None,
) -> Contract:
    """
    Create the contract for a Won offer.

    An offer has at most one contract. Totals default to the offer's own
    rollups when the caller does not pass them. The contract and its document
    rows are written in one commit.
    """
    summary = require_rich_text(contract_summary, "Contract summary")
    terms = require_text(payment_terms, "Payment terms")
    start = _parse_start_date(contract_start_date)
    mrr = _parse_amount(total_mrr, "total_mrr")
    services = _parse_amount(total_services_revenue, "total_services_revenue")
    uploads = normalize_documents(documents, ContractDocument)

    offer = get_row(Offer, offer_id, label="Offer")
    if offer.status != OfferStatus.WON.value:
        raise LifecycleError(f"Contracts can only be created for Won offers (offer is {offer.status})")

    existing = db.session.query(Contract.id).filter(Contract.offer_id == offer.id).first()
    if existing:
        raise ConflictError(f"Offer {offer.offer_human_id} already has a contract")

    derived_mrr, derived_services = compute_offer_revenue(offer)
    if mrr is None:
        mrr = derived_mrr
    if services is None:
        services = derived_services

    try:
        contract = Contract(
            offer_id=offer.id,
            contract_human_id=generate_human_id(CODE_PREFIX_CONTRACT),
            contract_summary=summary,
            total_mrr=mrr,
            total_services_revenue=services,
            total_contract_value=compute_total_contract_value(mrr, services),
            payment_terms=terms,
            contract_start_date=start,
            status=ContractStatus.DRAFT.value,
            created_by=actor_id,
            updated_by=actor_id,
        )
        db.session.add(contract)
        db.session.flush()
        create_document_rows(ContractDocument, contract.id, uploads, uploaded_by=actor_id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Contract %s created for offer %s (value %.2f)",
        contract.contract_human_id, offer.id, contract.total_contract_value,
    )
    return contract


def list_contracts(*, status: str | None = None, search: str | None = None) -> list[Contract]:
    q = db.session.query(Contract)
    if status:
        q = q.filter(Contract.status == status)
    term = (search or "").strip()
    if term:
        q = q.filter(Contract.contract_human_id.ilike(f"%{term}%"))
    return q.order_by(Contract.created_at.desc(), Contract.id.desc()).all()


def update_contract(contract_id: int, payload: dict, *, actor_id: int) -> Contract:
    """
    Edit a contract and save its documents.

    New documents (``documents``) are attached and documents previously marked
    for deletion are removed as part of the save. Marked objects leave storage
    before the commit, so a storage failure saves nothing.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    allowed = {"contract_summary", "payment_terms", "contract_start_date", "status", "documents"}
    unknown = sorted(set(payload) - allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    contract = get_row(Contract, contract_id, label="Contract")

    changes = {}
    if "contract_summary" in payload:
        changes["contract_summary"] = require_rich_text(payload["contract_summary"], "Contract summary")
    if "payment_terms" in payload:
        changes["payment_terms"] = require_text(payload["payment_terms"], "Payment terms")
    if "contract_start_date" in payload:
        changes["contract_start_date"] = _parse_start_date(payload["contract_start_date"])
    if "status" in payload:
        changes["status"] = require_choice(payload["status"], CONTRACT_STATUSES, "status")
    uploads = normalize_documents(payload.get("documents"), ContractDocument)

    try:
        for key, value in changes.items():
            setattr(contract, key, value)
        contract.updated_by = actor_id
        contract.updated_at = utcnow()
        create_document_rows(ContractDocument, contract.id, uploads, uploaded_by=actor_id)
        drop_pending_documents(ContractDocument, contract.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return contract
