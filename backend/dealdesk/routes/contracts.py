# Overview: Flask API routes for contract operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth
from ..models import Contract
from ..services import contract_service
from ..services.gateway import get_row
from ..storage import StorageError
from ..validation import NotFoundError, ValidationError


contracts_bp = Blueprint("contracts", __name__, url_prefix="/api/contracts")


@contracts_bp.get("")
@require_auth
def list_contracts_route():
    contracts = contract_service.list_contracts(
        status=request.args.get("status"),
        search=request.args.get("search"),
    )
    return jsonify({"items": [c.to_dict() for c in contracts], "count": len(contracts)})


@contracts_bp.get("/<int:contract_id>")
@require_auth
def get_contract_route(contract_id: int):
    try:
        contract = get_row(Contract, contract_id, label="Contract")
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify(contract.to_dict(include_documents=True))


@contracts_bp.put("/<int:contract_id>")
@require_auth
def update_contract_route(contract_id: int):
    data = request.get_json(silent=True) or {}
    try:
        contract = contract_service.update_contract(contract_id, data, actor_id=g.current_user.id)
        return jsonify(contract.to_dict(include_documents=True))
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except StorageError as e:
        current_app.logger.warning("Contract %s document cleanup failed: %s", contract_id, e)
        return jsonify({"error": "Failed to delete documents; changes were not saved"}), 502
    except Exception:
        current_app.logger.exception("Failed to update contract %s", contract_id)
        return jsonify({"error": "Internal server error"}), 500
