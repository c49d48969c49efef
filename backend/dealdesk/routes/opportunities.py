# Overview: Flask API routes for opportunity operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..models import Opportunity
from ..services import offer_service, opportunity_service
from ..services.gateway import get_row
from ..storage import StorageError
from ..validation import ConflictError, NotFoundError, ValidationError


opportunities_bp = Blueprint("opportunities", __name__, url_prefix="/api/opportunities")


@opportunities_bp.get("")
@require_auth
def list_opportunities_route():
    rows = opportunity_service.list_opportunities(
        search=request.args.get("search"),
        stage=request.args.get("stage"),
        customer_id=request.args.get("customer_id", type=int),
        owner_id=request.args.get("owner_id", type=int),
    )
    return jsonify({"items": [o.to_dict() for o in rows], "count": len(rows)})


@opportunities_bp.get("/<int:opportunity_id>")
@require_auth
def get_opportunity_route(opportunity_id: int):
    try:
        opportunity = get_row(Opportunity, opportunity_id, label="Opportunity")
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    data = opportunity.to_dict(include_documents=True)
    data["offers"] = [o.to_dict() for o in offer_service.list_offers(opportunity_id=opportunity.id)]
    return jsonify(data)


@opportunities_bp.post("")
@require_auth
def create_opportunity_route():
    data = request.get_json(silent=True) or {}
    try:
        opportunity = opportunity_service.create_opportunity(data, actor_id=g.current_user.id)
        return jsonify(opportunity.to_dict(include_documents=True)), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create opportunity")
        return jsonify({"error": "Internal server error"}), 500


@opportunities_bp.put("/<int:opportunity_id>")
@require_auth
def update_opportunity_route(opportunity_id: int):
    data = request.get_json(silent=True) or {}
    try:
        opportunity = opportunity_service.update_opportunity(
            opportunity_id, data, actor_id=g.current_user.id
        )
        return jsonify(opportunity.to_dict(include_documents=True))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StorageError as e:
        current_app.logger.warning("Opportunity %s document cleanup failed: %s", opportunity_id, e)
        return jsonify({"error": "Failed to delete documents; changes were not saved"}), 502
    except Exception:
        current_app.logger.exception("Failed to update opportunity %s", opportunity_id)
        return jsonify({"error": "Internal server error"}), 500


@opportunities_bp.delete("/<int:opportunity_id>")
@require_auth
def delete_opportunity_route(opportunity_id: int):
    try:
        opportunity_service.delete_opportunity(opportunity_id)
        return jsonify({"message": "Opportunity deleted"})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except StorageError as e:
        current_app.logger.warning("Opportunity %s document removal failed: %s", opportunity_id, e)
        return jsonify({"error": "Failed to delete documents"}), 502
