"""
Flask route handlers for the REST API.
"""

import logging

from flask import jsonify, request
from sqlalchemy import text as sa_text

from ivprep import __version__
from ivprep.api.auth import cleanup_expired_sessions, open_session, sessions, token_required
from ivprep.errors import (
    AuthError,
    IVPrepError,
    NotFound,
    PermissionDenied,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Most specific first
_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (AuthError, 401),
    (PermissionDenied, 403),
    (NotFound, 404),
    (StorageError, 500),
)


def error_response(e: IVPrepError):
    status = next((code for cls, code in _STATUS_BY_ERROR if isinstance(e, cls)), 500)
    if status >= 500:
        # Detail goes to the log, the client gets a terse message
        logger.error("Command failed: %s", e, exc_info=e)
        return jsonify({"success": False, "error": "Internal server error"}), status
    return jsonify({"success": False, "error": str(e)}), status


def register_routes(app, surface):
    """Register all API routes on the Flask *app* for the given CommandSurface."""

    # ── Health / info ────────────────────────────────────────────────

    @app.route("/", methods=["GET"])
    def index():
        return jsonify({
            "service": "IV Preparation Manager API",
            "version": __version__,
            "status": "running",
            "endpoints": {
                "auth": "/api/auth/login",
                "commands": "/api/commands/<name>",
                "profile": "/api/user/profile",
                "logout": "/api/auth/logout",
                "health": "/health",
            },
            "commands": surface.command_names,
        })

    @app.route("/health", methods=["GET"])
    def health():
        checks = {"database": False}
        try:
            with surface.engine.connect() as conn:
                conn.execute(sa_text("SELECT 1"))
            checks["database"] = True
        except Exception:
            logger.exception("Health check: database unreachable")

        healthy = all(checks.values())
        return jsonify({
            "status": "healthy" if healthy else "unhealthy",
            "checks": checks,
            "active_sessions": len(sessions),
        }), 200 if healthy else 503

    # ── Auth ─────────────────────────────────────────────────────────

    @app.route("/api/auth/login", methods=["POST"])
    def login():
        if not request.is_json:
            return jsonify({"error": "Content-Type must be application/json"}), 400

        data = request.get_json(silent=True) or {}
        username = str(data.get("username", "")).strip()
        password = data.get("password", "")
        if not username or not password:
            return jsonify({"error": "username and password are required"}), 400

        cleanup_expired_sessions()
        try:
            identity = surface.login(username, password)
        except IVPrepError as e:
            return error_response(e)

        token = open_session(identity)
        return jsonify({
            "success": True,
            "token": token,
            "user": identity.to_dict(),
        }), 200

    @app.route("/api/auth/logout", methods=["POST"])
    @token_required
    def logout():
        sessions.pop(request.token, None)
        return jsonify({"success": True, "message": "Logged out successfully"}), 200

    # ── Commands ─────────────────────────────────────────────────────

    @app.route("/api/commands/<name>", methods=["POST"])
    @token_required
    def run_command(name):
        if request.data and not request.is_json:
            return jsonify({"error": "Content-Type must be application/json"}), 400

        payload = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            return jsonify({"error": "Command payload must be a JSON object"}), 400

        identity = request.session_data["identity"]
        try:
            result = surface.invoke(name, identity, payload)
        except IVPrepError as e:
            return error_response(e)

        return jsonify({"success": True, "command": name, "result": result}), 200

    # ── Profile ──────────────────────────────────────────────────────

    @app.route("/api/user/profile", methods=["GET"])
    @token_required
    def get_profile():
        session_data = request.session_data
        return jsonify({
            "success": True,
            "user": session_data["identity"].to_dict(),
            "session": {
                "created_at": session_data["created_at"].isoformat(),
                "last_activity": session_data["last_activity"].isoformat(),
            },
        }), 200

    # ── Error handlers ───────────────────────────────────────────────

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({"error": "Endpoint not found", "message": str(e)}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({"error": "Method not allowed", "message": str(e)}), 405

    @app.errorhandler(500)
    def internal_error(e):
        return jsonify({"error": "Internal server error"}), 500
