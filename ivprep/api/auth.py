"""
JWT authentication helpers and middleware for the Flask API.
"""

import logging
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Dict, Optional

import jwt
from flask import jsonify, request

from ivprep.config import SECRET_KEY, TOKEN_EXPIRY_HOURS
from ivprep.models import UserIdentity

logger = logging.getLogger(__name__)

# In-memory session store, one entry per issued token
# Structure: {token: {"identity": UserIdentity, "created_at": datetime, "last_activity": datetime}}
sessions: Dict[str, Dict[str, Any]] = {}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def generate_token(identity: UserIdentity) -> str:
    """Generate a JWT token for an authenticated user."""
    payload = {
        "sub": str(identity.id),
        "username": identity.username,
        "role": identity.role,
        "iat": _now(),
        "exp": _now() + timedelta(hours=TOKEN_EXPIRY_HOURS),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm="HS256")


def verify_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify a JWT token and return the decoded payload (or None)."""
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def open_session(identity: UserIdentity) -> str:
    token = generate_token(identity)
    sessions[token] = {
        "identity": identity,
        "created_at": _now(),
        "last_activity": _now(),
    }
    return token


def token_required(f):
    """Decorator that protects endpoints with JWT authentication."""
    @wraps(f)
    def decorated(*args, **kwargs):
        token = None

        # Authorization: Bearer <token>
        if "Authorization" in request.headers:
            auth_header = request.headers["Authorization"]
            try:
                token = auth_header.split(" ")[1]
            except IndexError:
                return jsonify({"error": "Invalid authorization header format"}), 401

        if not token:
            token = request.args.get("token")

        if not token:
            return jsonify({"error": "Authentication token is missing"}), 401

        if not verify_token(token):
            sessions.pop(token, None)
            return jsonify({"error": "Invalid or expired token"}), 401

        if token not in sessions:
            return jsonify({"error": "Session not found. Please login again."}), 401

        session = sessions[token]
        session["last_activity"] = _now()
        request.session_data = session
        request.token = token

        return f(*args, **kwargs)

    return decorated


def cleanup_expired_sessions() -> int:
    """Remove sessions that have been inactive beyond TOKEN_EXPIRY_HOURS."""
    now = _now()
    expired = [
        tok for tok, data in sessions.items()
        if (now - data["last_activity"]).total_seconds() > TOKEN_EXPIRY_HOURS * 3600
    ]
    for tok in expired:
        del sessions[tok]
    if expired:
        logger.info("Removed %d expired sessions", len(expired))
    return len(expired)
