# Overview: Flask API routes for partner operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..models import Partner
from ..services import masterdata_service
from ..services.gateway import get_row
from ..storage import StorageError
from ..validation import ConflictError, NotFoundError, ValidationError


partners_bp = Blueprint("partners", __name__, url_prefix="/api/partners")


@partners_bp.get("")
@require_auth
def list_partners_route():
    partners = masterdata_service.list_partners(
        search=request.args.get("search"),
        partner_type=request.args.get("partner_type"),
    )
    return jsonify({"items": [p.to_dict() for p in partners], "count": len(partners)})


@partners_bp.get("/<int:partner_id>")
@require_auth
def get_partner_route(partner_id: int):
    try:
        partner = get_row(Partner, partner_id, label="Partner")
        return jsonify(partner.to_dict(include_documents=True))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@partners_bp.post("")
@require_auth
def create_partner_route():
    """
    Body: partner fields plus optional ``documents`` (metadata returned by
    POST /api/uploads/partner).
    """
    data = request.get_json(silent=True) or {}
    try:
        partner = masterdata_service.create_partner(data, actor_id=g.current_user.id)
        return jsonify(partner.to_dict(include_documents=True)), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create partner")
        return jsonify({"error": "Internal server error"}), 500


@partners_bp.put("/<int:partner_id>")
@require_auth
def update_partner_route(partner_id: int):
    """Save: applies field changes, attaches new documents, drops marked ones."""
    data = request.get_json(silent=True) or {}
    try:
        partner = masterdata_service.update_partner(partner_id, data, actor_id=g.current_user.id)
        return jsonify(partner.to_dict(include_documents=True))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StorageError as e:
        current_app.logger.warning("Partner %s document cleanup failed: %s", partner_id, e)
        return jsonify({"error": "Failed to delete documents; changes were not saved"}), 502
    except Exception:
        current_app.logger.exception("Failed to update partner %s", partner_id)
        return jsonify({"error": "Internal server error"}), 500


@partners_bp.delete("/<int:partner_id>")
@require_auth
def delete_partner_route(partner_id: int):
    try:
        masterdata_service.delete_partner(partner_id)
        return jsonify({"message": "Partner deleted"})
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except StorageError as e:
        current_app.logger.warning("Partner %s document removal failed: %s", partner_id, e)
        return jsonify({"error": "Failed to delete documents"}), 502
