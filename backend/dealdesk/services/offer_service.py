# Overview: Service-layer operations for offers; creation, pricing detail and queries.

"""
Offers

An offer is created in Draft from an opportunity and priced with two kinds of
line items:
- environments, each holding license components (monthly_price x quantity)
  that add up to the monthly recurring revenue
- service sets, each holding services (manday_rate x mandays, plus a profit
  percentage) that add up to one-time services revenue; a service picked from
  the services catalog (service_id) defaults to the catalog manday rate

Status changes go through lifecycle_service; this module never writes status.
"""

from __future__ import annotations

from ..constants import CODE_PREFIX_OFFER, OfferStatus
from ..extensions import db
from ..models import (
    CatalogService,
    LicensePricing,
    Offer,
    OfferEnvironment,
    OfferEnvironmentComponent,
    OfferServiceComponent,
    OfferServiceSet,
    Opportunity,
)
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, validate_payload
from .auth_service import generate_human_id
from .gateway import commit_or_rollback, delete_row, get_row, list_rows, update_row
from .lifecycle_service import LifecycleError


OFFER_POLICY = ModelValidationPolicy(
    writable_fields={"opportunity_id", "offer_summary"},
    required_on_create={"opportunity_id"},
)

ENVIRONMENT_POLICY = ModelValidationPolicy(writable_fields={"name"}, required_on_create={"name"})

COMPONENT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "license_pricing_id", "monthly_price", "quantity"},
    required_on_create={"name", "monthly_price", "quantity"},
)

SERVICE_SET_POLICY = ModelValidationPolicy(writable_fields={"name"}, required_on_create={"name"})

SERVICE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "service_id", "manday_rate", "number_of_mandays", "profit_percentage"},
    required_on_create={"name", "number_of_mandays"},
)


def list_offers(
    *,
    search: str | None = None,
    status: str | None = None,
    opportunity_id: int | None = None,
) -> list[Offer]:
    return list_rows(
        Offer,
        filters={"status": status, "opportunity_id": opportunity_id},
        search=search,
        search_fields=("offer_human_id",),
        order_by=(Offer.created_at.desc(), Offer.id.desc()),
    )


def create_offer(payload: dict, *, actor_id: int) -> Offer:
    """Start a Draft offer for an opportunity, optionally with line items."""
    payload = dict(payload or {})
    environments = payload.pop("environments", None)
    service_sets = payload.pop("service_sets", None)
    data = validate_payload(model=Offer, payload=payload, policy=OFFER_POLICY, partial=False)
    get_row(Opportunity, data["opportunity_id"], label="Opportunity")
    env_rows = _build_environments(environments)
    set_rows = _build_service_sets(service_sets)

    offer = Offer(
        offer_human_id=generate_human_id(CODE_PREFIX_OFFER),
        opportunity_id=data["opportunity_id"],
        offer_summary=data.get("offer_summary"),
        status=OfferStatus.DRAFT.value,
        created_by=actor_id,
    )
    offer.environments = env_rows
    offer.service_sets = set_rows
    db.session.add(offer)
    commit_or_rollback()
    return offer


def update_offer(offer_id: int, payload: dict) -> Offer:
    """
    Edit summary and, when given, replace the full set of environments
    and/or service sets.
    """
    offer = get_row(Offer, offer_id, label="Offer")
    payload = dict(payload or {})
    environments = payload.pop("environments", None)
    service_sets = payload.pop("service_sets", None)
    data = validate_payload(model=Offer, payload=payload, policy=OFFER_POLICY, partial=True)
    if "opportunity_id" in data:
        get_row(Opportunity, data["opportunity_id"], label="Opportunity")

    env_rows = _build_environments(environments) if environments is not None else None
    set_rows = _build_service_sets(service_sets) if service_sets is not None else None

    if env_rows is not None:
        offer.environments = env_rows
    if set_rows is not None:
        offer.service_sets = set_rows
    return update_row(offer, data)


def delete_offer(offer_id: int) -> None:
    offer = get_row(Offer, offer_id, label="Offer")
    if offer.status != OfferStatus.DRAFT.value:
        raise LifecycleError("Only Draft offers can be deleted")
    if offer.review_requests:
        raise ConflictError("Offer has review history")
    delete_row(offer)


def _require_list(value, label: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError(f"{label} must be a list")
    return value


def _require_dict(value, label: str) -> dict:
    if not isinstance(value, dict):
        raise ValidationError(f"{label} must contain objects")
    return value


def _build_environments(items) -> list[OfferEnvironment]:
    rows = []
    for env in _require_list(items, "environments"):
        env = dict(_require_dict(env, "environments"))
        components = env.pop("components", None)
        env_data = validate_payload(
            model=OfferEnvironment, payload=env, policy=ENVIRONMENT_POLICY, partial=False
        )
        env_row = OfferEnvironment(**env_data)
        for comp in _require_list(components, "components"):
            comp_data = validate_payload(
                model=OfferEnvironmentComponent,
                payload=_require_dict(comp, "components"),
                policy=COMPONENT_POLICY,
                partial=False,
            )
            _check_non_negative(comp_data, ("monthly_price", "quantity"))
            pricing_id = comp_data.get("license_pricing_id")
            if pricing_id is not None:
                get_row(LicensePricing, pricing_id, label="License pricing")
            env_row.components.append(OfferEnvironmentComponent(**comp_data))
        rows.append(env_row)
    return rows


def _build_service_sets(items) -> list[OfferServiceSet]:
    rows = []
    for group in _require_list(items, "service_sets"):
        group = dict(_require_dict(group, "service_sets"))
        services = group.pop("services", None)
        set_data = validate_payload(
            model=OfferServiceSet, payload=group, policy=SERVICE_SET_POLICY, partial=False
        )
        set_row = OfferServiceSet(**set_data)
        for svc in _require_list(services, "services"):
            svc_data = validate_payload(
                model=OfferServiceComponent,
                payload=_require_dict(svc, "services"),
                policy=SERVICE_POLICY,
                partial=False,
            )
            _apply_catalog_rate(svc_data)
            _check_non_negative(svc_data, ("manday_rate", "number_of_mandays"))
            set_row.services.append(OfferServiceComponent(**svc_data))
        rows.append(set_row)
    return rows


def _apply_catalog_rate(data: dict) -> None:
    """A line picked from the services catalog takes its manday rate unless one is given."""
    service_id = data.get("service_id")
    if service_id is not None:
        service = get_row(CatalogService, service_id, label="Service")
        if data.get("manday_rate") is None:
            data["manday_rate"] = service.manday_rate
    elif data.get("manday_rate") is None:
        raise ValidationError("Missing required fields: manday_rate")


def _check_non_negative(data: dict, keys) -> None:
    for key in keys:
        value = data.get(key)
        if value is not None and value < 0:
            raise ValidationError(f"{key} cannot be negative")
