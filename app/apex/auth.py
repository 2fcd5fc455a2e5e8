from __future__ import annotations

import uuid
from typing import Any

from flask import Blueprint, current_app, g, jsonify, request
from sqlalchemy import func

from app.apex.constants import APPLICATION_ROLES, DEFAULT_APPLICATION_ROLE
from app.apex.db import db_session
from app.apex.errors import Forbidden, NotFound, Unauthorized, ValidationError
from app.apex.modules.employees.models import Employee
from app.apex.modules.employees.service import employee_profile_details

bp = Blueprint("auth", __name__)

_PUBLIC_PATHS = frozenset({"/health", "/healthz"})


class TokenError(Exception):
    pass


def _firebase_app():
    """Lazily initialize the default firebase_admin app from config."""
    import firebase_admin
    from firebase_admin import credentials

    try:
        return firebase_admin.get_app()
    except ValueError:
        pass  # no default app yet
    cred_path = current_app.config.get("FIREBASE_CREDENTIALS") or ""
    options: dict[str, Any] = {}
    if current_app.config.get("FIREBASE_PROJECT_ID"):
        options["projectId"] = current_app.config["FIREBASE_PROJECT_ID"]
    cred = credentials.Certificate(cred_path) if cred_path else credentials.ApplicationDefault()
    current_app.logger.info("Initializing Firebase Admin (credentials=%s)", "file" if cred_path else "default")
    return firebase_admin.initialize_app(cred, options or None)


def verify_token(id_token: str) -> dict[str, Any]:
    """
    Verify a Firebase ID token and return its decoded claims.
    Raises TokenError for any invalid/expired/revoked token.
    """
    from firebase_admin import auth as firebase_auth

    app = _firebase_app()
    try:
        return firebase_auth.verify_id_token(id_token, app=app)
    except (ValueError, firebase_auth.InvalidIdTokenError, firebase_auth.ExpiredIdTokenError,
            firebase_auth.RevokedIdTokenError, firebase_auth.CertificateFetchError) as e:
        raise TokenError(str(e)) from e


def _bearer_token() -> str | None:
    header = request.headers.get("Authorization") or ""
    if not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    return token or None


def load_current_user() -> None:
    """
    Resolves g.current_user (an Employee) from the Firebase bearer token.
    Also assigns a per-request request_id (for activity/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    g.current_user = None
    g.token_claims = None
    if request.method == "OPTIONS" or request.path in _PUBLIC_PATHS:
        return

    token = _bearer_token()
    if not token:
        raise Unauthorized("Unauthorized: No token provided.")
    try:
        claims = verify_token(token)
    except TokenError as e:
        current_app.logger.warning("Token verification failed (request_id=%s): %s", g.request_id, e)
        raise Forbidden("Forbidden: Invalid or expired token.") from e

    email = (claims.get("email") or "").strip().lower()
    if not email:
        raise ValidationError("Token does not contain an email.")

    s = db_session()
    employee = s.query(Employee).filter(func.lower(Employee.email) == email).one_or_none()
    if employee is None:
        current_app.logger.warning("No employee record for authenticated email %s", email)
        raise NotFound("Employee profile not found for this account.")

    g.firebase_uid = claims.get("uid") or claims.get("sub")
    g.token_claims = claims
    g.current_user = employee


def application_role(employee: Employee | None) -> str:
    """Role used by the permission matrix; a `role` custom claim overrides the stored value."""
    claims = getattr(g, "token_claims", None) or {}
    claimed = (claims.get("role") or "").strip()
    if claimed in APPLICATION_ROLES:
        return claimed
    if employee is not None and employee.application_role in APPLICATION_ROLES:
        return employee.application_role
    return DEFAULT_APPLICATION_ROLE


@bp.get("/user-profile")
def user_profile():
    user: Employee = g.current_user
    body = {
        "uid": getattr(g, "firebase_uid", None),
        "email": user.email,
        "applicationRole": application_role(user),
    }
    body.update(employee_profile_details(user))
    return jsonify(body)
