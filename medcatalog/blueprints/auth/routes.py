"""
Authentication Routes

Provides:
- /auth/login
- /auth/logout

Sessions are Flask-Login sessions on a signed cookie with a fixed 24h
lifetime (PERMANENT_SESSION_LIFETIME). There is no self-registration; the
first Super Admin is created at boot or with `flask create-user`.
"""

import logging

from flask import (
    Blueprint,
    render_template,
    redirect,
    url_for,
    flash,
    request,
    session,
)
from flask_login import (
    login_user,
    logout_user,
    login_required,
    current_user,
)

from ...models import User
from ...utils import safe_next_url

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


# ============================================================
# LOGIN
# ============================================================

@auth_bp.route("/login", methods=["GET", "POST"])
def login():
    """Authenticate a user by email + password."""

    if current_user.is_authenticated:
        return redirect(url_for("admin.dashboard"))

    if request.method == "POST":
        email = (request.form.get("email") or "").strip().lower()
        password = request.form.get("password", "")

        user = User.query.filter_by(email=email).first()

        if not user or not user.check_password(password):
            logger.info("Failed login for %s", email or "<blank>")
            flash("Invalid email or password.", "danger")
            return render_template("auth/login.html", email=email), 401

        session.permanent = True
        login_user(user)
        logger.info("User %s logged in", user.email)
        flash("Welcome back!", "success")

        next_url = safe_next_url(request.args.get("next"))
        return redirect(next_url or url_for("admin.dashboard"))

    return render_template("auth/login.html", email="")


# ============================================================
# LOGOUT
# ============================================================

@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """Log out the current user. POST only, so the CSRF token is required."""
    logout_user()
    flash("You have been logged out.", "info")
    return redirect(url_for("auth.login"))
