# Overview: Flask API routes for offers, their lifecycle and review requests.

"""
Offer Routes

CRUD:
- GET    /api/offers                      list (filters: status, opportunity_id, search)
- POST   /api/offers                      create Draft offer for an opportunity
- GET    /api/offers/<id>                 detail + available_actions + timeline
- PUT    /api/offers/<id>                 summary / environments / service sets
- DELETE /api/offers/<id>                 Draft offers without review history

LIFECYCLE:
- POST /api/offers/<id>/status            {"status": "..."} checked against the transition table
- POST /api/offers/<id>/actions/<action>  same, by action name (approve, mark_won, ...)

REVIEWS:
- POST /api/offers/<id>/review-requests   send a Draft offer for review
- GET  /api/offers/<id>/review-requests   requests with their reviews
- GET  /api/offers/<id>/review-history    newest first
- GET  /api/offers/<id>/review-summary    per-track counts

CONTRACT:
- POST /api/offers/<id>/contract          create the contract of a Won offer
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..models import Offer
from ..services import contract_service, lifecycle_service, offer_service, review_service
from ..services.gateway import get_row
from ..services.lifecycle_service import LifecycleError
from ..validation import ConflictError, NotFoundError, ValidationError


offers_bp = Blueprint("offers", __name__, url_prefix="/api/offers")


def _offer_detail(offer: Offer) -> dict:
    data = offer.to_dict(include_details=True)
    data["available_actions"] = lifecycle_service.available_actions(offer.status)
    data["timeline"] = lifecycle_service.status_timeline(offer)
    data["contract_id"] = offer.contracts[0].id if offer.contracts else None
    return data


@offers_bp.get("")
@require_auth
def list_offers_route():
    offers = offer_service.list_offers(
        search=request.args.get("search"),
        status=request.args.get("status"),
        opportunity_id=request.args.get("opportunity_id", type=int),
    )
    return jsonify({"items": [o.to_dict() for o in offers], "count": len(offers)})


@offers_bp.post("")
@require_auth
def create_offer_route():
    data = request.get_json(silent=True) or {}
    try:
        offer = offer_service.create_offer(data, actor_id=g.current_user.id)
        return jsonify(_offer_detail(offer)), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create offer")
        return jsonify({"error": "Internal server error"}), 500


@offers_bp.get("/<int:offer_id>")
@require_auth
def get_offer_route(offer_id: int):
    try:
        offer = get_row(Offer, offer_id, label="Offer")
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(_offer_detail(offer))


@offers_bp.put("/<int:offer_id>")
@require_auth
def update_offer_route(offer_id: int):
    data = request.get_json(silent=True) or {}
    try:
        offer = offer_service.update_offer(offer_id, data)
        return jsonify(_offer_detail(offer))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update offer %s", offer_id)
        return jsonify({"error": "Internal server error"}), 500


@offers_bp.delete("/<int:offer_id>")
@require_auth
def delete_offer_route(offer_id: int):
    try:
        offer_service.delete_offer(offer_id)
        return jsonify({"message": "Offer deleted"})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except LifecycleError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409


@offers_bp.post("/<int:offer_id>/status")
@require_auth
def change_status_route(offer_id: int):
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not status:
        return jsonify({"error": "status is required"}), 400
    try:
        offer = lifecycle_service.change_offer_status(offer_id, status, actor_id=g.current_user.id)
        return jsonify(_offer_detail(offer))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except LifecycleError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to change status of offer %s", offer_id)
        return jsonify({"error": "Internal server error"}), 500


@offers_bp.post("/<int:offer_id>/actions/<action>")
@require_auth
def apply_action_route(offer_id: int, action: str):
    try:
        offer = lifecycle_service.apply_action(offer_id, action, actor_id=g.current_user.id)
        return jsonify(_offer_detail(offer))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except LifecycleError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to apply %s to offer %s", action, offer_id)
        return jsonify({"error": "Internal server error"}), 500


@offers_bp.post("/<int:offer_id>/review-requests")
@require_auth
def create_review_request_route(offer_id: int):
    """
    Body:
    {
        "request_details": "<p>...</p>",      // rich text, required
        "technical_reviewer_ids": [1, 2],     // at least one
        "commercial_reviewer_ids": [3],       // at least one
        "documents": [{name, path, type, size}]  // from POST /api/uploads/review
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        review_request = review_service.create_review_request(
            offer_id,
            actor_id=g.current_user.id,
            request_details=data.get("request_details"),
            technical_reviewer_ids=data.get("technical_reviewer_ids"),
            commercial_reviewer_ids=data.get("commercial_reviewer_ids"),
            documents=data.get("documents"),
        )
        return jsonify({
            "request": review_request.to_dict(include_reviews=True),
            "offer": _offer_detail(review_request.offer),
        }), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except (ValidationError, LifecycleError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create review request for offer %s", offer_id)
        return jsonify({"error": "Internal server error"}), 500


@offers_bp.get("/<int:offer_id>/review-requests")
@require_auth
def list_review_requests_route(offer_id: int):
    try:
        requests_ = review_service.list_review_requests(offer_id)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"items": [r.to_dict(include_reviews=True) for r in requests_]})


@offers_bp.get("/<int:offer_id>/review-history")
@require_auth
def review_history_route(offer_id: int):
    try:
        get_row(Offer, offer_id, label="Offer")
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    entries = review_service.list_review_history(offer_id=offer_id)
    return jsonify({"items": [e.to_dict() for e in entries]})


@offers_bp.get("/<int:offer_id>/review-summary")
@require_auth
def review_summary_route(offer_id: int):
    try:
        return jsonify(review_service.review_summary(offer_id))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@offers_bp.post("/<int:offer_id>/contract")
@require_auth
def create_contract_route(offer_id: int):
    """
    Body:
    {
        "contract_summary": "<p>...</p>",   // required
        "payment_terms": "Net 30",         // required
        "contract_start_date": "2025-01-01",  // required
        "total_mrr": 2000,                 // optional, derived from the offer otherwise
        "total_services_revenue": 300,     // optional
        "documents": [...]                 // from POST /api/uploads/contract
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        contract = contract_service.create_contract(
            offer_id,
            actor_id=g.current_user.id,
            contract_summary=data.get("contract_summary"),
            payment_terms=data.get("payment_terms"),
            contract_start_date=data.get("contract_start_date"),
            total_mrr=data.get("total_mrr"),
            total_services_revenue=data.get("total_services_revenue"),
            documents=data.get("documents"),
        )
        return jsonify(contract.to_dict(include_documents=True)), 201
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except (ValidationError, LifecycleError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create contract for offer %s", offer_id)
        return jsonify({"error": "Internal server error"}), 500
