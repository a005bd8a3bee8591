"""
JWT authentication helpers and middleware for the Flask API.

Tokens are the only credential: every protected call presents one and the
server keeps no session state between calls.
"""

from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import Any, Dict, Optional

import jwt
from flask import current_app, request

from checkup_portal.config import SECRET_KEY, TOKEN_ALGORITHM, TOKEN_EXPIRY_HOURS
from checkup_portal.errors import Unauthenticated
from checkup_portal.models import Identity
from checkup_portal.rbac import caller_from_claims


def _secret() -> str:
    return current_app.config.get("JWT_SECRET_KEY", SECRET_KEY)


def generate_token(identity: Identity, secret: Optional[str] = None) -> str:
    """Generate a JWT carrying the identity id and role."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(identity.id),
        "role": identity.role,
        "username": identity.username,
        "iat": now,
        "exp": now + timedelta(hours=TOKEN_EXPIRY_HOURS),
    }
    return jwt.encode(payload, secret or _secret(), algorithm=TOKEN_ALGORITHM)


def verify_token(token: str, secret: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Verify a JWT token and return the decoded payload (or None)."""
    try:
        return jwt.decode(token, secret or _secret(), algorithms=[TOKEN_ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def token_required(f):
    """Decorator that authenticates the bearer token and passes the caller to the view."""
    @wraps(f)
    def decorated(*args, **kwargs):
        auth_header = request.headers.get("Authorization", "")
        if not auth_header:
            raise Unauthenticated("Authentication token is missing")

        parts = auth_header.split(" ")
        if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1]:
            raise Unauthenticated("Invalid authorization header format")

        payload = verify_token(parts[1])
        if not payload:
            raise Unauthenticated("Invalid or expired token")

        caller = caller_from_claims(payload)
        return f(caller, *args, **kwargs)

    return decorated
