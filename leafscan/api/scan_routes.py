# leafscan/api/scan_routes.py
from flask import Blueprint, current_app, jsonify, request

from leafscan.core.errors import (
    DecodeError,
    GateUnavailableError,
    IncompleteInferenceError,
    InferenceError,
    NotAuthenticatedError,
    NothingToSaveError,
    PersistenceError,
    PreprocessingError,
    ScanBusyError,
    ScanError,
    ScanOwnershipError,
)
from leafscan.models.scan_types import RawCapture

scan_bp = Blueprint("scan", __name__)

ERROR_STATUS = (
    (ScanBusyError, 409),
    (NothingToSaveError, 409),
    (NotAuthenticatedError, 401),
    (ScanOwnershipError, 403),
    (PreprocessingError, 422),
    (GateUnavailableError, 502),
    (IncompleteInferenceError, 500),
    (DecodeError, 500),
    (InferenceError, 500),
    (PersistenceError, 500),
)


def _orchestrator():
    return current_app.extensions["scan_orchestrator"]


def current_user_id() -> str:
    # multi-user without server-side sessions: identity comes from the client
    return (request.headers.get("X-User-Id") or "").strip() or None


def _error_response(e: ScanError):
    status = 500
    for cls, code in ERROR_STATUS:
        if isinstance(e, cls):
            status = code
            break
    return jsonify({"error": type(e).__name__, "message": e.user_message, "detail": str(e)}), status


@scan_bp.route("/scan", methods=["POST"])
def scan():
    """
    Main scan endpoint:
    - accepts file "image" (multipart/form-data)
    - returns the fused diagnosis or the rejection message
    """
    if "image" not in request.files:
        return jsonify({"error": "No image file provided"}), 400

    file = request.files["image"]
    if file.filename == "":
        return jsonify({"error": "Empty filename"}), 400

    try:
        outcome = _orchestrator().scan(RawCapture(source=file.read()))
    except ScanError as e:
        return _error_response(e)

    return jsonify(outcome.to_dict()), 200


@scan_bp.route("/scan/save", methods=["POST"])
def save_scan():
    try:
        leaf_id = _orchestrator().save()
    except ScanError as e:
        return _error_response(e)
    return jsonify({"saved": True, "leaf_id": leaf_id}), 201


@scan_bp.route("/scan/discard", methods=["POST"])
def discard_scan():
    try:
        _orchestrator().discard()
    except ScanError as e:
        return _error_response(e)
    return jsonify({"discarded": True}), 200


@scan_bp.route("/scan/state", methods=["GET"])
def scan_state():
    orch = _orchestrator()
    result = orch.result_for(current_user_id())
    return jsonify({
        "state": orch.state.value,
        "result": result.to_dict() if result is not None else None,
    }), 200


@scan_bp.route("/leaves", methods=["GET"])
def list_leaves():
    user_id = current_user_id()
    if not user_id:
        return jsonify({"error": "X-User-Id is required"}), 401

    repo = current_app.extensions["leaf_repository"]
    limit = request.args.get("limit", 50, type=int)
    offset = request.args.get("offset", 0, type=int)
    return jsonify(repo.list_leaves(user_id, limit=limit, offset=offset)), 200
