from __future__ import annotations

from ..extensions import db
from ..constants import BUCKET_DRP_DOCUMENTS, REVIEW_DOCUMENT_EXTENSIONS, ReviewStatus
from .documents import DocumentMixin
from dealdesk.time_utils import to_utc_z, utcnow


class ReviewRequest(db.Model):
    """
    One "send for review" action on an offer.

    Holds the requester's brief and the supporting documents. The individual
    reviewer decisions live in Review rows (one per reviewer per track).
    """
    __tablename__ = "offer_review_requests"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    offer_id = db.Column(db.Integer, db.ForeignKey("offer_records.id"), nullable=False, index=True)
    request_details = db.Column(db.Text, nullable=False)
    requested_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    offer = db.relationship("Offer", backref=db.backref("review_requests", lazy=True))
    requester = db.relationship("User", foreign_keys=[requested_by])
    reviews = db.relationship("Review", backref="request", lazy=True, order_by="Review.id")
    documents = db.relationship("ReviewDocument", backref="request", lazy=True, order_by="ReviewDocument.id")

    def to_dict(self, include_reviews: bool = False) -> dict:
        data = {
            "id": self.id,
            "offer_id": self.offer_id,
            "request_details": self.request_details,
            "requested_by": self.requested_by,
            "requested_by_name": self.requester.name if self.requester else None,
            "created_at": to_utc_z(self.created_at),
            "documents": [d.to_dict() for d in self.documents],
        }
        if include_reviews:
            data["reviews"] = [r.to_dict() for r in self.reviews]
        return data


class Review(db.Model):
    """
    One reviewer's verdict on one track (technical or commercial).

    STATUS: pending -> approved | needs_improvement; a resend puts a decided
    review back to pending and clears its comments.
    """
    __tablename__ = "offer_reviews"
    __table_args__ = (
        db.Index("ix_offer_reviews_reviewer_status", "reviewer_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    request_id = db.Column(db.Integer, db.ForeignKey("offer_review_requests.id"), nullable=False, index=True)
    reviewer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    review_type = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(32), nullable=False, default=ReviewStatus.PENDING.value)
    comments = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    reviewer = db.relationship("User", foreign_keys=[reviewer_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "request_id": self.request_id,
            "reviewer_id": self.reviewer_id,
            "reviewer_name": self.reviewer.name if self.reviewer else None,
            "reviewer_role": self.reviewer.role if self.reviewer else None,
            "review_type": self.review_type,
            "status": self.status,
            "comments": self.comments,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ReviewHistoryEntry(db.Model):
    """
    Append-only audit row for a review status change.

    IMMUTABLE: Never update or delete.
    """
    __tablename__ = "offer_review_history"
    __table_args__ = (
        db.Index("ix_offer_review_history_review_created", "review_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    review_id = db.Column(db.Integer, db.ForeignKey("offer_reviews.id"), nullable=False, index=True)
    previous_status = db.Column(db.String(32), nullable=False)
    new_status = db.Column(db.String(32), nullable=False)
    comments = db.Column(db.Text, nullable=True)
    changed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    review = db.relationship("Review", backref=db.backref("history", lazy=True))
    actor = db.relationship("User", foreign_keys=[changed_by])

    def to_dict(self) -> dict:
        review = self.review
        reviewer = review.reviewer if review else None
        return {
            "id": self.id,
            "review_id": self.review_id,
            "offer_id": review.request.offer_id if review else None,
            "review_type": review.review_type if review else None,
            "reviewer_id": review.reviewer_id if review else None,
            "reviewer_name": reviewer.name if reviewer else None,
            "reviewer_role": reviewer.role if reviewer else None,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "comments": self.comments,
            "changed_by": self.changed_by,
            "changed_by_name": self.actor.name if self.actor else None,
            "changed_by_role": self.actor.role if self.actor else None,
            "created_at": to_utc_z(self.created_at),
        }


class ReviewDocument(DocumentMixin, db.Model):
    __tablename__ = "offer_review_documents"
    BUCKET = BUCKET_DRP_DOCUMENTS
    OWNER_FIELD = "request_id"
    ALLOWED_EXTENSIONS = REVIEW_DOCUMENT_EXTENSIONS

    request_id = db.Column(db.Integer, db.ForeignKey("offer_review_requests.id"), nullable=False, index=True)
