from __future__ import annotations

from ..extensions import db
from ..constants import BUCKET_PARTNER_DOCUMENTS, DEFAULT_MANDAY_RATE, GENERAL_DOCUMENT_EXTENSIONS
from .documents import DocumentMixin
from dealdesk.time_utils import to_utc_z, utcnow


class Partner(db.Model):
    """Reseller / technology / consulting partner attached to opportunities."""
    __tablename__ = "partners"
    __table_args__ = (
        db.UniqueConstraint("partner_human_id", name="uq_partners_human_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    partner_human_id = db.Column(db.String(16), nullable=False)
    name = db.Column(db.String(255), nullable=False, index=True)
    partner_type = db.Column(db.String(32), nullable=False)
    country = db.Column(db.String(64), nullable=True)
    website = db.Column(db.String(255), nullable=True)
    contact_name = db.Column(db.String(255), nullable=True)
    contact_email = db.Column(db.String(255), nullable=True)
    contact_phone = db.Column(db.String(32), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    documents = db.relationship("PartnerDocument", backref="partner", lazy=True, cascade="all, delete-orphan")

    def to_dict(self, include_documents: bool = False) -> dict:
        data = {
            "id": self.id,
            "partner_human_id": self.partner_human_id,
            "name": self.name,
            "partner_type": self.partner_type,
            "country": self.country,
            "website": self.website,
            "contact_name": self.contact_name,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_documents:
            data["documents"] = [d.to_dict() for d in self.documents]
        return data


class PartnerDocument(DocumentMixin, db.Model):
    __tablename__ = "partner_documents"
    BUCKET = BUCKET_PARTNER_DOCUMENTS
    OWNER_FIELD = "partner_id"
    ALLOWED_EXTENSIONS = GENERAL_DOCUMENT_EXTENSIONS
    MAX_BYTES_SETTING = "LARGE_UPLOAD_MAX_BYTES"

    partner_id = db.Column(db.Integer, db.ForeignKey("partners.id"), nullable=False, index=True)


class Customer(db.Model):
    """End customer that opportunities are sold to."""
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("customer_human_id", name="uq_customers_human_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_human_id = db.Column(db.String(16), nullable=False)
    name = db.Column(db.String(255), nullable=False, index=True)
    industry = db.Column(db.String(128), nullable=True)
    country = db.Column(db.String(64), nullable=True)
    contact_name = db.Column(db.String(255), nullable=True)
    contact_email = db.Column(db.String(255), nullable=True)
    contact_phone = db.Column(db.String(32), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_human_id": self.customer_human_id,
            "name": self.name,
            "industry": self.industry,
            "country": self.country,
            "contact_name": self.contact_name,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class LicensePricing(db.Model):
    """Platform license price list entry (imported/exported as a spreadsheet)."""
    __tablename__ = "license_pricing"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    pretty_name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(64), nullable=False)
    size = db.Column(db.String(64), nullable=False)
    hourly_price = db.Column(db.Float, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "pretty_name": self.pretty_name,
            "type": self.type,
            "size": self.size,
            "hourly_price": self.hourly_price,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CatalogService(db.Model):
    """Professional service offered at a standard manday rate (the services catalog)."""
    __tablename__ = "services"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    category = db.Column(db.String(64), nullable=False)
    manday_rate = db.Column(db.Float, nullable=False, default=DEFAULT_MANDAY_RATE)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "manday_rate": self.manday_rate,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
