"""
Flask route handlers for the REST API.
"""

import sys
import traceback

from flask import jsonify, request, send_from_directory
from werkzeug.exceptions import HTTPException

from checkup_portal.config import ROLE_DENTIST, ROLE_PATIENT, TOKEN_EXPIRY_HOURS
from checkup_portal.directory import list_dentists
from checkup_portal.errors import PortalError, ValidationError
from checkup_portal.identity import authenticate, register
from checkup_portal.ledger import create_request, list_for_dentist, list_for_patient
from checkup_portal.results import get_result, get_result_for_dentist, submit_result
from checkup_portal.api.auth import generate_token, token_required


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _credentials():
    data = _json_body()
    username, password = data.get("username", ""), data.get("password", "")
    if not isinstance(username, str) or not isinstance(password, str):
        raise ValidationError("username and password must be strings")
    return username, password


def register_routes(app, engine, blob_store):
    """Register all API routes on the Flask *app*."""

    # ── Health / info ────────────────────────────────────────────────

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "service": "Dental Checkup Portal API",
            "version": "1.0.0",
            "status": "running",
            "endpoints": {
                "patient_signup": "/api/user/signup",
                "patient_login": "/api/user/login",
                "dentist_signup": "/api/dentists/signup",
                "dentist_login": "/api/dentists/login",
                "dentists": "/api/dentists",
                "checkup_requests": "/api/checkup-requests",
                "dentist_requests": "/api/dentist/checkup-requests",
                "upload_result": "/api/dentist/upload-result/<request_id>",
                "checkup_results": "/api/checkup-results/<request_id>",
                "health": "/health",
            },
        })

    @app.route("/health", methods=["GET"])
    def health():
        from sqlalchemy import text as sa_text

        checks = {"database": False, "uploads": False}
        try:
            with engine.connect() as conn:
                conn.execute(sa_text("SELECT 1"))
            checks["database"] = True
        except Exception as e:
            print(f"[WARN] Health check database failure: {e}", file=sys.stderr)

        checks["uploads"] = blob_store is not None
        all_healthy = all(checks.values())

        return jsonify({
            "status": "healthy" if all_healthy else "unhealthy",
            "checks": checks,
        }), 200 if all_healthy else 503

    # ── Auth ─────────────────────────────────────────────────────────

    def _signup(role):
        username, password = _credentials()
        identity = register(engine, username, password, role)
        return jsonify({
            "message": f"{role.capitalize()} registered",
            "user": {"id": identity.id, "username": identity.username, "role": identity.role},
        }), 201

    def _login(role):
        username, password = _credentials()
        identity = authenticate(engine, username, password, role)
        return jsonify({
            "token": generate_token(identity),
            "user": {"id": identity.id, "username": identity.username, "role": identity.role},
            "expires_in": TOKEN_EXPIRY_HOURS * 3600,
        }), 200

    # Both prefixes are served; older clients call /api/users/*.
    @app.route("/api/user/signup", methods=["POST"], endpoint="patient_signup")
    @app.route("/api/users/signup", methods=["POST"], endpoint="patient_signup")
    def patient_signup():
        return _signup(ROLE_PATIENT)

    @app.route("/api/user/login", methods=["POST"], endpoint="patient_login")
    @app.route("/api/users/login", methods=["POST"], endpoint="patient_login")
    def patient_login():
        return _login(ROLE_PATIENT)

    @app.route("/api/dentists/signup", methods=["POST"])
    def dentist_signup():
        return _signup(ROLE_DENTIST)

    @app.route("/api/dentists/login", methods=["POST"])
    def dentist_login():
        return _login(ROLE_DENTIST)

    # ── Directory ────────────────────────────────────────────────────

    @app.route("/api/dentists", methods=["GET"])
    def dentists():
        return jsonify(list_dentists(engine)), 200

    # ── Checkup requests ─────────────────────────────────────────────

    @app.route("/api/checkup-requests", methods=["POST"])
    @token_required
    def open_request(caller):
        dentist_id = _json_body().get("dentistId")
        if dentist_id in (None, ""):
            raise ValidationError("dentistId is required")
        created = create_request(engine, caller, dentist_id)
        payload = created.to_dict()
        payload.update({"patientId": created.patient_id, "dentistId": created.dentist_id})
        return jsonify(payload), 201

    @app.route("/api/checkup-requests", methods=["GET"])
    @token_required
    def patient_requests(caller):
        return jsonify([r.to_dict() for r in list_for_patient(engine, caller)]), 200

    @app.route("/api/dentist/checkup-requests", methods=["GET"])
    @token_required
    def dentist_requests(caller):
        return jsonify([r.to_dict() for r in list_for_dentist(engine, caller)]), 200

    # ── Results ──────────────────────────────────────────────────────

    @app.route("/api/dentist/upload-result/<int:request_id>", methods=["POST"])
    @token_required
    def upload_result(caller, request_id):
        files = request.files.getlist("images")
        images = [(f.filename, f.stream) for f in files if f and f.filename]
        notes = request.form.get("notes", "")
        result = submit_result(engine, blob_store, request_id, caller, notes, images)
        return jsonify(result.to_dict()), 201

    @app.route("/api/checkup-results/<int:request_id>", methods=["GET"])
    @token_required
    def patient_result(caller, request_id):
        return jsonify(get_result(engine, request_id, caller).to_dict()), 200

    @app.route("/api/dentist/checkup-results/<int:request_id>", methods=["GET"])
    @token_required
    def dentist_result(caller, request_id):
        return jsonify(get_result_for_dentist(engine, request_id, caller).to_dict()), 200

    @app.route("/uploads/<path:name>", methods=["GET"])
    def uploaded_file(name):
        return send_from_directory(blob_store.root, name)

    # ── Error handlers ───────────────────────────────────────────────

    @app.errorhandler(PortalError)
    def portal_error(e):
        return jsonify(e.to_dict()), e.status

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "not_found", "message": str(e)}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "method_not_allowed", "message": str(e)}), 405

    @app.errorhandler(413)
    def too_large(e):
        return jsonify({"error": "validation_error", "message": "Upload too large"}), 413

    @app.errorhandler(Exception)
    def internal_error(e):
        if isinstance(e, HTTPException):
            return jsonify({"error": e.name, "message": e.description}), e.code
        print(f"[ERROR] Unhandled error on {request.method} {request.path}: {e}", file=sys.stderr)
        traceback.print_exc()
        return jsonify({"error": "internal_error", "message": "Internal server error"}), 500
