from __future__ import annotations

from ..extensions import db
from ..constants import OfferStatus
from dealdesk.time_utils import to_utc_z, utcnow


class Offer(db.Model):
    """
    Priced proposal for an opportunity.

    LIFECYCLE (see services/lifecycle_service.py for the transition table):
        Draft -> In Review -> Approved -> Sent -> Won | Lost | Hold
        Hold -> Won | Lost
        In Review -> Draft, Approved -> In Review (backwards)

    Financial rollups are derived from the nested environments (recurring
    license components) and service sets (one-time services).
    """
    __tablename__ = "offer_records"
    __table_args__ = (
        db.UniqueConstraint("offer_human_id", name="uq_offer_records_human_id"),
        db.Index("ix_offer_records_status", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    offer_human_id = db.Column(db.String(16), nullable=False)
    opportunity_id = db.Column(db.Integer, db.ForeignKey("opportunities.id"), nullable=True, index=True)
    offer_summary = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=OfferStatus.DRAFT.value)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    opportunity = db.relationship("Opportunity", backref=db.backref("offers", lazy=True))
    environments = db.relationship(
        "OfferEnvironment", backref="offer", lazy=True, cascade="all, delete-orphan",
        order_by="OfferEnvironment.id",
    )
    service_sets = db.relationship(
        "OfferServiceSet", backref="offer", lazy=True, cascade="all, delete-orphan",
        order_by="OfferServiceSet.id",
    )

    @property
    def total_mrr(self) -> float:
        return sum(env.monthly_total for env in self.environments)

    @property
    def total_services_revenue(self) -> float:
        return sum(s.total for s in self.service_sets)

    def to_dict(self, include_details: bool = False) -> dict:
        data = {
            "id": self.id,
            "offer_human_id": self.offer_human_id,
            "opportunity_id": self.opportunity_id,
            "opportunity_name": self.opportunity.name if self.opportunity else None,
            "offer_summary": self.offer_summary,
            "status": self.status,
            "total_mrr": self.total_mrr,
            "total_services_revenue": self.total_services_revenue,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_details:
            data["environments"] = [e.to_dict() for e in self.environments]
            data["service_sets"] = [s.to_dict() for s in self.service_sets]
        return data


class OfferEnvironment(db.Model):
    __tablename__ = "offer_environments"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    offer_id = db.Column(db.Integer, db.ForeignKey("offer_records.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)

    components = db.relationship(
        "OfferEnvironmentComponent", backref="environment", lazy=True, cascade="all, delete-orphan",
        order_by="OfferEnvironmentComponent.id",
    )

    @property
    def monthly_total(self) -> float:
        return sum(c.monthly_total for c in self.components)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "offer_id": self.offer_id,
            "name": self.name,
            "monthly_total": self.monthly_total,
            "components": [c.to_dict() for c in self.components],
        }


class OfferEnvironmentComponent(db.Model):
    __tablename__ = "offer_environment_components"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    environment_id = db.Column(db.Integer, db.ForeignKey("offer_environments.id"), nullable=False, index=True)
    license_pricing_id = db.Column(db.Integer, db.ForeignKey("license_pricing.id"), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    monthly_price = db.Column(db.Float, nullable=False, default=0)
    quantity = db.Column(db.Integer, nullable=False, default=1)

    @property
    def monthly_total(self) -> float:
        return (self.monthly_price or 0) * (self.quantity or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "environment_id": self.environment_id,
            "license_pricing_id": self.license_pricing_id,
            "name": self.name,
            "monthly_price": self.monthly_price,
            "quantity": self.quantity,
            "monthly_total": self.monthly_total,
        }


class OfferServiceSet(db.Model):
    __tablename__ = "offer_service_sets"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    offer_id = db.Column(db.Integer, db.ForeignKey("offer_records.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)

    services = db.relationship(
        "OfferServiceComponent", backref="service_set", lazy=True, cascade="all, delete-orphan",
        order_by="OfferServiceComponent.id",
    )

    @property
    def total(self) -> float:
        return sum(s.total for s in self.services)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "offer_id": self.offer_id,
            "name": self.name,
            "total": self.total,
            "services": [s.to_dict() for s in self.services],
        }


class OfferServiceComponent(db.Model):
    __tablename__ = "offer_service_components"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    service_set_id = db.Column(db.Integer, db.ForeignKey("offer_service_sets.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=True)
    name = db.Column(db.String(255), nullable=False)
    manday_rate = db.Column(db.Float, nullable=False, default=0)
    number_of_mandays = db.Column(db.Float, nullable=False, default=0)
    profit_percentage = db.Column(db.Float, nullable=False, default=0)

    @property
    def total(self) -> float:
        return (self.manday_rate or 0) * (self.number_of_mandays or 0) * (1 + (self.profit_percentage or 0) / 100)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "service_set_id": self.service_set_id,
            "service_id": self.service_id,
            "name": self.name,
            "manday_rate": self.manday_rate,
            "number_of_mandays": self.number_of_mandays,
            "profit_percentage": self.profit_percentage,
            "total": self.total,
        }
