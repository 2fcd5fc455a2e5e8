from flask import Blueprint, jsonify

from app.apex.constants import ENUMS
from app.apex.errors import NotFound

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for load balancer probes. No DB access.
    """
    return "ok", 200


@bp.get("/api/enums/<name>")
def enum_values(name: str):
    values = ENUMS.get(name)
    if values is None:
        raise NotFound(f"Unknown enum '{name}'.")
    return jsonify(list(values))
