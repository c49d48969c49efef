# Overview: Service-layer operations for partners, customers, license pricing and the services catalog.

from __future__ import annotations

from flask import current_app

from ..constants import CODE_PREFIX_CUSTOMER, CODE_PREFIX_PARTNER, PARTNER_TYPES, SERVICE_CATEGORIES
from ..extensions import db, storage
from ..models import (
    CatalogService,
    Customer,
    LicensePricing,
    OfferEnvironmentComponent,
    OfferServiceComponent,
    Opportunity,
    Partner,
    PartnerDocument,
)
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, validate_payload
from .attachment_service import create_document_rows, drop_pending_documents, normalize_documents
from .auth_service import generate_human_id
from .gateway import commit_or_rollback, delete_row, get_row, insert_row, list_rows, update_row


PARTNER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "partner_type", "country", "website",
        "contact_name", "contact_email", "contact_phone", "notes",
    },
    required_on_create={"name", "partner_type"},
    choices={"partner_type": PARTNER_TYPES},
)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "industry", "country",
        "contact_name", "contact_email", "contact_phone",
    },
    required_on_create={"name"},
)

PRICING_POLICY = ModelValidationPolicy(
    writable_fields={"pretty_name", "type", "size", "hourly_price"},
    required_on_create={"pretty_name", "type", "size", "hourly_price"},
)

SERVICE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "manday_rate"},
    required_on_create={"name", "category"},
    choices={"category": SERVICE_CATEGORIES},
)


def _split_documents(payload: dict) -> tuple[dict, list[dict]]:
    payload = dict(payload or {})
    uploads = normalize_documents(payload.pop("documents", None), PartnerDocument)
    return payload, uploads


# Partners

def list_partners(*, search: str | None = None, partner_type: str | None = None) -> list[Partner]:
    return list_rows(
        Partner,
        filters={"partner_type": partner_type},
        search=search,
        search_fields=("name", "partner_human_id", "country", "contact_name"),
        order_by=Partner.name.asc(),
    )


def create_partner(payload: dict, *, actor_id: int | None = None) -> Partner:
    fields, uploads = _split_documents(payload)
    data = validate_payload(model=Partner, payload=fields, policy=PARTNER_POLICY, partial=False)
    data["partner_human_id"] = generate_human_id(CODE_PREFIX_PARTNER)
    partner = insert_row(Partner, data, commit=False)
    create_document_rows(PartnerDocument, partner.id, uploads, uploaded_by=actor_id)
    commit_or_rollback()
    return partner


def update_partner(partner_id: int, payload: dict, *, actor_id: int | None = None) -> Partner:
    partner = get_row(Partner, partner_id, label="Partner")
    fields, uploads = _split_documents(payload)
    data = validate_payload(model=Partner, payload=fields, policy=PARTNER_POLICY, partial=True)
    create_document_rows(PartnerDocument, partner.id, uploads, uploaded_by=actor_id)
    update_row(partner, data, commit=False)
    try:
        drop_pending_documents(PartnerDocument, partner.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return partner


def delete_partner(partner_id: int) -> None:
    partner = get_row(Partner, partner_id, label="Partner")
    in_use = db.session.query(Opportunity.id).filter(Opportunity.partner_id == partner.id).first()
    if in_use:
        raise ConflictError("Partner is linked to opportunities")
    paths = [d.file_path for d in partner.documents]
    if paths:
        storage.remove(PartnerDocument.BUCKET, paths)
    delete_row(partner)
    current_app.logger.info("Partner %s deleted (%d documents removed)", partner_id, len(paths))


# Customers

def list_customers(*, search: str | None = None) -> list[Customer]:
    return list_rows(
        Customer,
        search=search,
        search_fields=("name", "customer_human_id", "industry", "country"),
        order_by=Customer.name.asc(),
    )


def create_customer(payload: dict) -> Customer:
    data = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    data["customer_human_id"] = generate_human_id(CODE_PREFIX_CUSTOMER)
    return insert_row(Customer, data)


def update_customer(customer_id: int, payload: dict) -> Customer:
    customer = get_row(Customer, customer_id, label="Customer")
    data = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    return update_row(customer, data)


def delete_customer(customer_id: int) -> None:
    customer = get_row(Customer, customer_id, label="Customer")
    in_use = db.session.query(Opportunity.id).filter(Opportunity.customer_id == customer.id).first()
    if in_use:
        raise ConflictError("Customer is linked to opportunities")
    delete_row(customer)


# License pricing

def list_pricing(*, search: str | None = None, type_: str | None = None) -> list[LicensePricing]:
    return list_rows(
        LicensePricing,
        filters={"type": type_},
        search=search,
        search_fields=("pretty_name", "type", "size"),
        order_by=(LicensePricing.pretty_name.asc(), LicensePricing.id.asc()),
    )


def create_pricing(payload: dict) -> LicensePricing:
    data = validate_payload(model=LicensePricing, payload=payload, policy=PRICING_POLICY, partial=False)
    return insert_row(LicensePricing, data)


def update_pricing(pricing_id: int, payload: dict) -> LicensePricing:
    row = get_row(LicensePricing, pricing_id, label="License pricing")
    data = validate_payload(model=LicensePricing, payload=payload, policy=PRICING_POLICY, partial=True)
    return update_row(row, data)


def delete_pricing(pricing_id: int) -> None:
    row = get_row(LicensePricing, pricing_id, label="License pricing")
    in_use = (
        db.session.query(OfferEnvironmentComponent.id)
        .filter(OfferEnvironmentComponent.license_pricing_id == row.id)
        .first()
    )
    if in_use:
        raise ConflictError("License pricing is used by offer components")
    delete_row(row)


# Services catalog

def list_services(*, search: str | None = None, category: str | None = None) -> list[CatalogService]:
    return list_rows(
        CatalogService,
        filters={"category": category},
        search=search,
        search_fields=("name", "category"),
        order_by=(CatalogService.name.asc(), CatalogService.id.asc()),
    )


def _check_rate(data: dict) -> None:
    rate = data.get("manday_rate")
    if rate is not None and rate < 0:
        raise ValidationError("manday_rate cannot be negative")


def create_service(payload: dict) -> CatalogService:
    data = validate_payload(model=CatalogService, payload=payload, policy=SERVICE_POLICY, partial=False)
    _check_rate(data)
    return insert_row(CatalogService, data)


def update_service(service_id: int, payload: dict) -> CatalogService:
    row = get_row(CatalogService, service_id, label="Service")
    data = validate_payload(model=CatalogService, payload=payload, policy=SERVICE_POLICY, partial=True)
    _check_rate(data)
    return update_row(row, data)


def delete_service(service_id: int) -> None:
    row = get_row(CatalogService, service_id, label="Service")
    in_use = (
        db.session.query(OfferServiceComponent.id)
        .filter(OfferServiceComponent.service_id == row.id)
        .first()
    )
    if in_use:
        raise ConflictError("Service is used by offers")
    delete_row(row)
