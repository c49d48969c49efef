from __future__ import annotations

from ..extensions import db
from ..constants import BUCKET_CONTRACT_DOCUMENTS, CONTRACT_DOCUMENT_EXTENSIONS, ContractStatus
from .documents import DocumentMixin
from dealdesk.time_utils import to_iso_date, to_utc_z, utcnow


class Contract(db.Model):
    """
    Binding agreement generated from a Won offer.

    total_contract_value = total_mrr * 12 + total_services_revenue, fixed at
    creation time.
    """
    __tablename__ = "contracts"
    __table_args__ = (
        db.UniqueConstraint("contract_human_id", name="uq_contracts_human_id"),
        db.UniqueConstraint("offer_id", name="uq_contracts_offer"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    offer_id = db.Column(db.Integer, db.ForeignKey("offer_records.id"), nullable=False, index=True)
    contract_human_id = db.Column(db.String(16), nullable=False)
    contract_summary = db.Column(db.Text, nullable=False)
    total_mrr = db.Column(db.Float, nullable=False, default=0)
    total_services_revenue = db.Column(db.Float, nullable=False, default=0)
    total_contract_value = db.Column(db.Float, nullable=False, default=0)
    payment_terms = db.Column(db.String(255), nullable=False)
    contract_start_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=ContractStatus.DRAFT.value, index=True)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    updated_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    offer = db.relationship("Offer", backref=db.backref("contracts", lazy=True))
    documents = db.relationship("ContractDocument", backref="contract", lazy=True, order_by="ContractDocument.id")

    def to_dict(self, include_documents: bool = False) -> dict:
        data = {
            "id": self.id,
            "offer_id": self.offer_id,
            "offer_human_id": self.offer.offer_human_id if self.offer else None,
            "contract_human_id": self.contract_human_id,
            "contract_summary": self.contract_summary,
            "total_mrr": self.total_mrr,
            "total_services_revenue": self.total_services_revenue,
            "total_contract_value": self.total_contract_value,
            "payment_terms": self.payment_terms,
            "contract_start_date": to_iso_date(self.contract_start_date),
            "status": self.status,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_documents:
            data["documents"] = [d.to_dict() for d in self.documents]
        return data


class ContractDocument(DocumentMixin, db.Model):
    __tablename__ = "contract_documents"
    BUCKET = BUCKET_CONTRACT_DOCUMENTS
    OWNER_FIELD = "contract_id"
    ALLOWED_EXTENSIONS = CONTRACT_DOCUMENT_EXTENSIONS

    contract_id = db.Column(db.Integer, db.ForeignKey("contracts.id"), nullable=False, index=True)
