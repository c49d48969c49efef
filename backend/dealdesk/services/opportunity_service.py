# Overview: Service-layer operations for opportunities and their documents.

from __future__ import annotations

from ..constants import CODE_PREFIX_OPPORTUNITY, OPPORTUNITY_STAGES
from ..extensions import db, storage
from ..models import Customer, Offer, Opportunity, OpportunityDocument, Partner, User
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, validate_payload
from .attachment_service import create_document_rows, drop_pending_documents, normalize_documents
from .auth_service import generate_human_id
from .gateway import commit_or_rollback, delete_row, get_row, insert_row, list_rows, update_row


OPPORTUNITY_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "customer_id", "partner_id", "owner_id", "stage",
        "expected_value", "expected_close_date", "description",
    },
    required_on_create={"name"},
    choices={"stage": OPPORTUNITY_STAGES},
)


def _check_references(data: dict) -> None:
    for key, model in (("customer_id", Customer), ("partner_id", Partner), ("owner_id", User)):
        value = data.get(key)
        if value is not None and db.session.get(model, value) is None:
            raise ValidationError(f"{key} {value} does not exist")


def list_opportunities(
    *,
    search: str | None = None,
    stage: str | None = None,
    customer_id: int | None = None,
    owner_id: int | None = None,
) -> list[Opportunity]:
    return list_rows(
        Opportunity,
        filters={"stage": stage, "customer_id": customer_id, "owner_id": owner_id},
        search=search,
        search_fields=("name", "opportunity_human_id"),
        order_by=(Opportunity.created_at.desc(), Opportunity.id.desc()),
    )


def create_opportunity(payload: dict, *, actor_id: int) -> Opportunity:
    payload = dict(payload or {})
    uploads = normalize_documents(payload.pop("documents", None), OpportunityDocument)
    data = validate_payload(model=Opportunity, payload=payload, policy=OPPORTUNITY_POLICY, partial=False)
    _check_references(data)
    data.setdefault("owner_id", actor_id)
    data["opportunity_human_id"] = generate_human_id(CODE_PREFIX_OPPORTUNITY)

    opportunity = insert_row(Opportunity, data, commit=False)
    create_document_rows(OpportunityDocument, opportunity.id, uploads, uploaded_by=actor_id)
    commit_or_rollback()
    return opportunity


def update_opportunity(opportunity_id: int, payload: dict, *, actor_id: int) -> Opportunity:
    opportunity = get_row(Opportunity, opportunity_id, label="Opportunity")
    payload = dict(payload or {})
    uploads = normalize_documents(payload.pop("documents", None), OpportunityDocument)
    data = validate_payload(model=Opportunity, payload=payload, policy=OPPORTUNITY_POLICY, partial=True)
    _check_references(data)

    create_document_rows(OpportunityDocument, opportunity.id, uploads, uploaded_by=actor_id)
    update_row(opportunity, data, commit=False)
    try:
        drop_pending_documents(OpportunityDocument, opportunity.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return opportunity


def delete_opportunity(opportunity_id: int) -> None:
    opportunity = get_row(Opportunity, opportunity_id, label="Opportunity")
    if db.session.query(Offer.id).filter(Offer.opportunity_id == opportunity.id).first():
        raise ConflictError("Opportunity has offers")
    paths = [d.file_path for d in opportunity.documents]
    if paths:
        storage.remove(OpportunityDocument.BUCKET, paths)
    delete_row(opportunity)
