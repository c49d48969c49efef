from __future__ import annotations

from ..extensions import db
from ..constants import BUCKET_DRP_DOCUMENTS, GENERAL_DOCUMENT_EXTENSIONS
from .documents import DocumentMixin
from dealdesk.time_utils import to_utc_z, utcnow


class Opportunity(db.Model):
    """
    Sales opportunity; converted into one or more offers.
    """
    __tablename__ = "opportunities"
    __table_args__ = (
        db.UniqueConstraint("opportunity_human_id", name="uq_opportunities_human_id"),
        db.Index("ix_opportunities_stage", "stage"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    opportunity_human_id = db.Column(db.String(16), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    partner_id = db.Column(db.Integer, db.ForeignKey("partners.id"), nullable=True, index=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    stage = db.Column(db.String(32), nullable=False, default="Lead")
    expected_value = db.Column(db.Float, nullable=True)
    expected_close_date = db.Column(db.Date, nullable=True)
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    customer = db.relationship("Customer", backref=db.backref("opportunities", lazy=True))
    partner = db.relationship("Partner", backref=db.backref("opportunities", lazy=True))
    owner = db.relationship("User", foreign_keys=[owner_id])
    documents = db.relationship("OpportunityDocument", backref="opportunity", lazy=True, cascade="all, delete-orphan")

    def to_dict(self, include_documents: bool = False) -> dict:
        data = {
            "id": self.id,
            "opportunity_human_id": self.opportunity_human_id,
            "name": self.name,
            "customer_id": self.customer_id,
            "customer_name": self.customer.name if self.customer else None,
            "partner_id": self.partner_id,
            "partner_name": self.partner.name if self.partner else None,
            "owner_id": self.owner_id,
            "owner_name": self.owner.name if self.owner else None,
            "stage": self.stage,
            "expected_value": self.expected_value,
            "expected_close_date": self.expected_close_date.isoformat() if self.expected_close_date else None,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_documents:
            data["documents"] = [d.to_dict() for d in self.documents]
        return data


class OpportunityDocument(DocumentMixin, db.Model):
    __tablename__ = "opportunity_documents"
    BUCKET = BUCKET_DRP_DOCUMENTS
    OWNER_FIELD = "opportunity_id"
    ALLOWED_EXTENSIONS = GENERAL_DOCUMENT_EXTENSIONS
    MAX_BYTES_SETTING = "LARGE_UPLOAD_MAX_BYTES"

    opportunity_id = db.Column(db.Integer, db.ForeignKey("opportunities.id"), nullable=False, index=True)
