from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import g

from app.apex.auth import application_role
from app.apex.constants import (
    APP_ROLE_ACCOUNT_MANAGER,
    APP_ROLE_ADMIN,
    APP_ROLE_LEAD,
    APP_ROLE_PRESALES,
    APP_ROLE_PROJECT_MANAGER,
    APP_ROLE_TECHNICAL_TEAM,
)
from app.apex.errors import Forbidden, Unauthorized
from app.apex.modules.employees.models import Employee

_BASE_PERMISSIONS = frozenset({"poc.view", "customer.view", "comment.add"})

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    APP_ROLE_LEAD: _BASE_PERMISSIONS | {"poc.edit"},
    APP_ROLE_ACCOUNT_MANAGER: _BASE_PERMISSIONS | {"poc.create", "customer.edit"},
    APP_ROLE_PRESALES: _BASE_PERMISSIONS | {"poc.approve"},
    APP_ROLE_PROJECT_MANAGER: _BASE_PERMISSIONS,
    APP_ROLE_TECHNICAL_TEAM: _BASE_PERMISSIONS,
}


def user_has_permission(user: Employee | None, permission_key: str) -> bool:
    if user is None:
        return False
    role = application_role(user)
    if role == APP_ROLE_ADMIN:
        return True
    return permission_key in ROLE_PERMISSIONS.get(role, frozenset())


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: Employee | None = getattr(g, "current_user", None)
            if user is None:
                raise Unauthorized("Unauthorized: No token provided.")
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                raise Forbidden("You do not have permission to perform this action.")
            return fn(*args, **kwargs)

        return wrapped

    return decorator
