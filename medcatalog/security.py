"""
medcatalog/security.py

Role-based access control helpers.

Rules:
- Every admin route requires a logged-in session (flask_login.login_required).
- Roles form a total order: Graphic Designer < Product Specialist < Admin < Super Admin.
- Destructive operations (delete user / category / setting / package) need Admin or above.
- Super Admin accounts are visible to and editable by Super Admins only.
- Unauthorized attempts get a terminal 403 page, never a redirect.

IMPORTANT:
- Decorators must preserve wrapped function metadata to avoid Flask endpoint collisions.
  We use functools.wraps everywhere.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Tuple

from flask import render_template, request
from flask_login import current_user

from .models import ROLE_ADMIN, ROLE_SUPER_ADMIN

logger = logging.getLogger(__name__)


def _forbidden() -> Tuple[str, int]:
    """Render a consistent 403 page."""
    logger.info(
        "Forbidden: %s %s by %s",
        request.method,
        request.path,
        getattr(current_user, "email", "anonymous"),
    )
    return render_template("errors/403.html"), 403


def has_role(minimum: str) -> bool:
    """Return True if the current user is authenticated and ranks at least `minimum`."""
    return bool(current_user.is_authenticated and current_user.has_role(minimum))


def is_admin() -> bool:
    return has_role(ROLE_ADMIN)


def is_super_admin() -> bool:
    return has_role(ROLE_SUPER_ADMIN)


def role_required(minimum: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator factory: require a minimum role.

    Usage:
        @bp.route("/x/<int:x_id>/delete", methods=["POST"])
        @login_required
        @role_required(ROLE_ADMIN)
        def delete_x(x_id): ...
    """
    def decorator(view_func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view_func)
        def wrapper(*args: Any, **kwargs: Any):
            if not has_role(minimum):
                return _forbidden()
            return view_func(*args, **kwargs)

        return wrapper

    return decorator


admin_required = role_required(ROLE_ADMIN)
