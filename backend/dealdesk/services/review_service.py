# Overview: Service-layer operations for offer reviews; requests, decisions, resends and history.

"""
Offer Review Workflow

A review request sends a Draft offer to one or more technical and commercial
reviewers. Each reviewer gets a pending Review row on their track; their
decision (approved / needs_improvement) is recorded with a comment and an
append-only history entry. A decided review can be sent back to its reviewer
("resend"), which also puts the offer back In Review.

Every operation validates its input before the first write and commits once,
so callers see all of it or none of it.

Approvals never move the offer by themselves: review_summary reports whether
both tracks are fully approved and the offer owner approves the offer through
the lifecycle actions.
"""

from __future__ import annotations

from flask import current_app

from ..constants import REVIEW_DECISIONS, OfferStatus, ReviewStatus, ReviewType
from ..extensions import db
from ..models import Offer, Review, ReviewDocument, ReviewHistoryEntry, ReviewRequest, User
from ..validation import ValidationError, require_choice, require_id_list, require_rich_text
from .attachment_service import create_document_rows, drop_pending_documents, normalize_documents
from .gateway import commit_or_rollback, get_row
from .lifecycle_service import LifecycleError, move_to_review
from dealdesk.time_utils import utcnow


class ReviewPermissionError(ValueError):
    """Raised when the actor may not act on or read a review."""
    pass


def _require_reviewers(ids: list[int]) -> None:
    if not ids:
        return
    found = {
        row.id
        for row in db.session.query(User.id).filter(User.id.in_(ids), User.is_active.is_(True))
    }
    missing = [str(i) for i in ids if i not in found]
    if missing:
        raise ValidationError(f"Unknown or inactive reviewer(s): {', '.join(missing)}")


def create_review_request(
    offer_id: int,
    *,
    actor_id: int,
    request_details: str,
    technical_reviewer_ids,
    commercial_reviewer_ids,
    documents=None,
) -> ReviewRequest:
    """
    Send a Draft offer for review.

    Writes the request, one pending review per reviewer per track, the
    document rows, and moves the offer to In Review, in a single commit.
    """
    details = require_rich_text(request_details, "Request details")
    technical = require_id_list(technical_reviewer_ids, "technical_reviewer_ids")
    commercial = require_id_list(commercial_reviewer_ids, "commercial_reviewer_ids")
    if not technical:
        raise ValidationError("Select at least one technical reviewer")
    if not commercial:
        raise ValidationError("Select at least one commercial reviewer")
    uploads = normalize_documents(documents, ReviewDocument)

    offer = get_row(Offer, offer_id, label="Offer")
    if offer.status != OfferStatus.DRAFT.value:
        raise LifecycleError(f"Only Draft offers can be sent for review (offer is {offer.status})")
    _require_reviewers(sorted(set(technical) | set(commercial)))

    try:
        request = ReviewRequest(offer_id=offer.id, request_details=details, requested_by=actor_id)
        db.session.add(request)
        db.session.flush()

        for review_type, reviewer_ids in (
            (ReviewType.TECHNICAL.value, technical),
            (ReviewType.COMMERCIAL.value, commercial),
        ):
            for reviewer_id in reviewer_ids:
                db.session.add(Review(
                    request_id=request.id,
                    reviewer_id=reviewer_id,
                    review_type=review_type,
                    status=ReviewStatus.PENDING.value,
                ))

        create_document_rows(ReviewDocument, request.id, uploads, uploaded_by=actor_id)
        move_to_review(offer)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Offer %s sent for review (request %s, %d technical, %d commercial)",
        offer.id, request.id, len(technical), len(commercial),
    )
    return request


def _check_reviewer(review: Review, actor: User) -> None:
    if actor is None:
        raise ReviewPermissionError("Authentication required")
    if review.reviewer_id != actor.id and not actor.is_admin:
        raise ReviewPermissionError("Only the assigned reviewer or an admin can submit this review")


def _offer_side_ids(review: Review) -> set[int]:
    """Users on the requesting side: the requester, the offer creator and the opportunity owner."""
    request = review.request
    ids = set()
    if request is None:
        return ids
    ids.add(request.requested_by)
    offer = request.offer
    if offer is not None:
        ids.add(offer.created_by)
        if offer.opportunity is not None:
            ids.add(offer.opportunity.owner_id)
    ids.discard(None)
    return ids


def _check_requester(review: Review, actor: User) -> None:
    if actor is None:
        raise ReviewPermissionError("Authentication required")
    if not actor.is_admin and actor.id not in _offer_side_ids(review):
        raise ReviewPermissionError("Only the requester, the offer owner or an admin can resend this review")


def check_can_view(review: Review, actor: User) -> None:
    """The assigned reviewer, the requesting side and admins may read a review."""
    if actor is None:
        raise ReviewPermissionError("Authentication required")
    if actor.is_admin or review.reviewer_id == actor.id or actor.id in _offer_side_ids(review):
        return
    raise ReviewPermissionError("You do not have access to this review")


def submit_review(review_id: int, *, actor: User, decision: str, comments: str) -> Review:
    """
    Record a reviewer's decision on a pending review.

    The offer status is not touched.
    """
    review = get_row(Review, review_id, label="Review")
    _check_reviewer(review, actor)
    if review.status != ReviewStatus.PENDING.value:
        raise LifecycleError("Review has already been submitted")
    require_choice(decision, REVIEW_DECISIONS, "decision")
    text = require_rich_text(comments, "Comments")

    previous = review.status
    review.status = decision
    review.comments = text
    review.updated_at = utcnow()
    db.session.add(ReviewHistoryEntry(
        review_id=review.id,
        previous_status=previous,
        new_status=decision,
        comments=text,
        changed_by=actor.id,
    ))
    commit_or_rollback()

    current_app.logger.info("Review %s %s by user %s", review.id, decision, actor.id)
    return review


def resend_review(review_id: int, *, actor: User, message: str, documents=None) -> Review:
    """
    Send a decided review back to its reviewer.

    Resolves review -> request -> offer, moves the offer to In Review,
    resets the review to pending (comments cleared), records the message as
    a history entry and attaches any new documents to the original request.
    One commit. Only the requesting side (requester, offer creator,
    opportunity owner) or an admin may resend.
    """
    review = get_row(Review, review_id, label="Review")
    _check_requester(review, actor)
    if review.status == ReviewStatus.PENDING.value:
        raise LifecycleError("Review is still pending")
    text = require_rich_text(message, "Message")
    uploads = normalize_documents(documents, ReviewDocument)

    request = review.request
    offer = request.offer if request else None
    if offer is None:
        raise ValidationError(f"Review {review.id} is not linked to an offer")

    try:
        previous = review.status
        review.status = ReviewStatus.PENDING.value
        review.comments = None
        review.updated_at = utcnow()
        move_to_review(offer)
        db.session.add(ReviewHistoryEntry(
            review_id=review.id,
            previous_status=previous,
            new_status=ReviewStatus.PENDING.value,
            comments=text,
            changed_by=actor.id,
        ))
        create_document_rows(ReviewDocument, request.id, uploads, uploaded_by=actor.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Review %s resent by user %s (was %s); offer %s back In Review",
        review.id, actor.id, previous, offer.id,
    )
    return review


def save_request_documents(request_id: int, *, actor_id: int, documents=None) -> ReviewRequest:
    """Attach new documents to a request and drop the ones marked for deletion."""
    uploads = normalize_documents(documents, ReviewDocument)
    request = get_row(ReviewRequest, request_id, label="Review request")
    try:
        create_document_rows(ReviewDocument, request.id, uploads, uploaded_by=actor_id)
        drop_pending_documents(ReviewDocument, request.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return request


def list_review_requests(offer_id: int) -> list[ReviewRequest]:
    get_row(Offer, offer_id, label="Offer")
    return (
        db.session.query(ReviewRequest)
        .filter(ReviewRequest.offer_id == offer_id)
        .order_by(ReviewRequest.created_at.desc(), ReviewRequest.id.desc())
        .all()
    )


def list_review_history(*, offer_id: int | None = None, review_ids=None) -> list[ReviewHistoryEntry]:
    """History entries for an offer or for a set of reviews, newest first."""
    q = db.session.query(ReviewHistoryEntry).join(Review, ReviewHistoryEntry.review_id == Review.id)
    if offer_id is not None:
        q = q.join(ReviewRequest, Review.request_id == ReviewRequest.id).filter(
            ReviewRequest.offer_id == offer_id
        )
    elif review_ids is not None:
        ids = require_id_list(review_ids, "review_ids")
        if not ids:
            return []
        q = q.filter(ReviewHistoryEntry.review_id.in_(ids))
    else:
        raise ValidationError("offer_id or review_ids is required")
    return q.order_by(ReviewHistoryEntry.created_at.desc(), ReviewHistoryEntry.id.desc()).all()


def list_resend_comments(review_id: int) -> list[ReviewHistoryEntry]:
    """Messages left when the review was sent back, newest first."""
    get_row(Review, review_id, label="Review")
    return (
        db.session.query(ReviewHistoryEntry)
        .filter(
            ReviewHistoryEntry.review_id == review_id,
            ReviewHistoryEntry.new_status == ReviewStatus.PENDING.value,
        )
        .order_by(ReviewHistoryEntry.created_at.desc(), ReviewHistoryEntry.id.desc())
        .all()
    )


def review_inbox_entry(review: Review) -> dict:
    request = review.request
    offer = request.offer
    data = review.to_dict()
    data.update({
        "offer_id": offer.id,
        "offer_human_id": offer.offer_human_id,
        "offer_status": offer.status,
        "request_details": request.request_details,
        "requested_by_name": request.requester.name if request.requester else None,
        "documents": [d.to_dict() for d in request.documents if not d.pending_deletion],
    })
    return data


def list_reviews_for_user(user: User, *, status: str | None = None) -> list[Review]:
    """Deal review inbox: admins see every review, others their own."""
    q = db.session.query(Review)
    if not user.is_admin:
        q = q.filter(Review.reviewer_id == user.id)
    if status:
        q = q.filter(Review.status == status)
    return q.order_by(Review.created_at.desc(), Review.id.desc()).all()


def review_summary(offer_id: int) -> dict:
    """
    Per-track counts for the latest review request of an offer.

    Informational: all_approved does not change the offer.
    """
    get_row(Offer, offer_id, label="Offer")
    request = (
        db.session.query(ReviewRequest)
        .filter(ReviewRequest.offer_id == offer_id)
        .order_by(ReviewRequest.created_at.desc(), ReviewRequest.id.desc())
        .first()
    )
    tracks = {
        t.value: {s.value: 0 for s in ReviewStatus}
        for t in ReviewType
    }
    reviews = request.reviews if request else []
    for review in reviews:
        tracks[review.review_type][review.status] += 1

    all_approved = bool(reviews) and all(r.status == ReviewStatus.APPROVED.value for r in reviews)
    return {
        "offer_id": offer_id,
        "request_id": request.id if request else None,
        "tracks": tracks,
        "all_approved": all_approved,
    }
