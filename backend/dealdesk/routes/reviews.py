# Overview: Flask API routes for the deal review inbox, decisions and resends.

from flask import Blueprint, request, jsonify, g, current_app

from ..constants import REVIEW_STATUSES
from ..decorators import require_auth
from ..models import Review
from ..services import review_service
from ..services.gateway import get_row
from ..services.lifecycle_service import LifecycleError
from ..services.review_service import ReviewPermissionError
from ..storage import StorageError
from ..validation import NotFoundError, ValidationError


reviews_bp = Blueprint("reviews", __name__, url_prefix="/api/reviews")


@reviews_bp.get("")
@require_auth
def review_inbox_route():
    """Admins see every review; everyone else the reviews assigned to them."""
    status = request.args.get("status")
    if status and status not in REVIEW_STATUSES:
        return jsonify({"error": f"Invalid status '{status}'"}), 400
    reviews = review_service.list_reviews_for_user(g.current_user, status=status)
    return jsonify({"items": [review_service.review_inbox_entry(r) for r in reviews]})


@reviews_bp.get("/<int:review_id>")
@require_auth
def get_review_route(review_id: int):
    try:
        review = get_row(Review, review_id, label="Review")
        review_service.check_can_view(review, g.current_user)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ReviewPermissionError as e:
        return jsonify({"error": str(e)}), 403
    return jsonify(review_service.review_inbox_entry(review))


@reviews_bp.post("/<int:review_id>/submit")
@require_auth
def submit_review_route(review_id: int):
    """Body: {"decision": "approved" | "needs_improvement", "comments": "<p>...</p>"}"""
    data = request.get_json(silent=True) or {}
    try:
        review = review_service.submit_review(
            review_id,
            actor=g.current_user,
            decision=data.get("decision"),
            comments=data.get("comments"),
        )
        return jsonify(review_service.review_inbox_entry(review))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ReviewPermissionError as e:
        return jsonify({"error": str(e)}), 403
    except (ValidationError, LifecycleError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to submit review %s", review_id)
        return jsonify({"error": "Internal server error"}), 500


@reviews_bp.post("/<int:review_id>/resend")
@require_auth
def resend_review_route(review_id: int):
    """Body: {"message": "<p>...</p>", "documents": [...]}"""
    data = request.get_json(silent=True) or {}
    try:
        review = review_service.resend_review(
            review_id,
            actor=g.current_user,
            message=data.get("message"),
            documents=data.get("documents"),
        )
        return jsonify(review_service.review_inbox_entry(review))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ReviewPermissionError as e:
        return jsonify({"error": str(e)}), 403
    except (ValidationError, LifecycleError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to resend review %s", review_id)
        return jsonify({"error": "Internal server error"}), 500


@reviews_bp.get("/<int:review_id>/resend-comments")
@require_auth
def resend_comments_route(review_id: int):
    try:
        review_service.check_can_view(get_row(Review, review_id, label="Review"), g.current_user)
        entries = review_service.list_resend_comments(review_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ReviewPermissionError as e:
        return jsonify({"error": str(e)}), 403
    return jsonify({"items": [e.to_dict() for e in entries]})


@reviews_bp.get("/history")
@require_auth
def review_history_route():
    """?review_ids=1,2,3"""
    raw = request.args.get("review_ids", "")
    try:
        ids = [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        return jsonify({"error": "review_ids must be a comma-separated list of ids"}), 400
    entries = review_service.list_review_history(review_ids=ids)
    return jsonify({"items": [e.to_dict() for e in entries]})


@reviews_bp.put("/requests/<int:request_id>/documents")
@require_auth
def save_request_documents_route(request_id: int):
    """Attach new documents and remove the ones marked for deletion."""
    data = request.get_json(silent=True) or {}
    try:
        review_request = review_service.save_request_documents(
            request_id, actor_id=g.current_user.id, documents=data.get("documents")
        )
        return jsonify(review_request.to_dict(include_reviews=True))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StorageError as e:
        current_app.logger.warning("Review request %s document cleanup failed: %s", request_id, e)
        return jsonify({"error": "Failed to delete documents; changes were not saved"}), 502
