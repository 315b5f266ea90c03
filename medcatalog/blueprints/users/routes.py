"""
User Management (Admin and above).

Rules enforced server-side:
- The whole area requires Admin or Super Admin.
- Super Admin accounts are listed, created, edited and deleted by Super Admins only.
  An Admin asking for one gets a 403, not a redirect.
- Nobody can delete their own account.
- Emails are unique (case-insensitive, stored lowercased).
"""

import logging

from flask import (
    Blueprint,
    render_template,
    request,
    redirect,
    url_for,
    flash,
)
from flask_login import current_user, login_required
from sqlalchemy.exc import SQLAlchemyError

from ...extensions import db
from ...models import ROLE_SUPER_ADMIN, ROLES, User
from ...security import _forbidden, admin_required, is_super_admin

logger = logging.getLogger(__name__)

users_bp = Blueprint(
    "users",
    __name__,
    url_prefix="/admin/users",
)


def _assignable_roles():
    """Roles the current user may hand out."""
    if is_super_admin():
        return list(ROLES)
    return [r for r in ROLES if r != ROLE_SUPER_ADMIN]


# ---------------------------------------------------------------------
# LIST USERS
# ---------------------------------------------------------------------

@users_bp.route("")
@login_required
@admin_required
def list_users():
    query = User.query
    if not is_super_admin():
        query = query.filter(User.role != ROLE_SUPER_ADMIN)
    users = query.order_by(User.email.asc()).all()

    return render_template("users/list.html", users=users)


# ---------------------------------------------------------------------
# CREATE USER
# ---------------------------------------------------------------------

@users_bp.route("/new", methods=["GET", "POST"])
@login_required
@admin_required
def create_user():
    """
    Create a new console user.

    Required:
    - email (unique)
    - password
    - role (Super Admin only assignable by a Super Admin)
    """
    roles = _assignable_roles()

    if request.method == "POST":
        email = (request.form.get("email") or "").strip().lower()
        password = (request.form.get("password") or "").strip()
        role = (request.form.get("role") or "").strip()

        if role == ROLE_SUPER_ADMIN and not is_super_admin():
            return _forbidden()

        if not email or not password:
            flash("Email and password are required.", "danger")
            return redirect(url_for("users.create_user"))

        if role not in ROLES:
            flash("Invalid role.", "danger")
            return redirect(url_for("users.create_user"))

        if User.query.filter_by(email=email).first():
            flash("A user with this email already exists.", "danger")
            return redirect(url_for("users.create_user"))

        user = User(email=email, role=role)
        user.set_password(password)

        try:
            db.session.add(user)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to create user %s", email)
            flash("Could not create user.", "danger")
            return redirect(url_for("users.create_user"))

        logger.info("User %s created %s (%s)", current_user.email, email, role)
        flash("User created.", "success")
        return redirect(url_for("users.list_users"))

    return render_template("users/form.html", user=None, roles=roles)


# ---------------------------------------------------------------------
# EDIT USER
# ---------------------------------------------------------------------

@users_bp.route("/<int:user_id>/edit", methods=["GET", "POST"])
@login_required
@admin_required
def edit_user(user_id):
    """Change email, role or password. Blank password keeps the current one."""
    user = User.query.get_or_404(user_id)

    if not current_user.can_manage_user(user):
        return _forbidden()

    roles = _assignable_roles()

    if request.method == "POST":
        email = (request.form.get("email") or "").strip().lower()
        role = (request.form.get("role") or "").strip()
        new_password = (request.form.get("password") or "").strip()

        if role == ROLE_SUPER_ADMIN and not is_super_admin():
            return _forbidden()

        if not email or role not in ROLES:
            flash("Email and a valid role are required.", "danger")
            return redirect(url_for("users.edit_user", user_id=user.id))

        clash = User.query.filter(User.email == email, User.id != user.id).first()
        if clash:
            flash("A user with this email already exists.", "danger")
            return redirect(url_for("users.edit_user", user_id=user.id))

        user.email = email
        user.role = role
        if new_password:
            user.set_password(new_password)

        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to update user %s", user_id)
            flash("Could not update user.", "danger")
            return redirect(url_for("users.edit_user", user_id=user_id))

        flash("User updated.", "success")
        return redirect(url_for("users.list_users"))

    return render_template("users/form.html", user=user, roles=roles)


# ---------------------------------------------------------------------
# DELETE USER
# ---------------------------------------------------------------------

@users_bp.route("/<int:user_id>/delete", methods=["POST"])
@login_required
@admin_required
def delete_user(user_id):
    user = User.query.get_or_404(user_id)

    if not current_user.can_manage_user(user):
        return _forbidden()

    if user.id == current_user.id:
        flash("You cannot delete your own account.", "danger")
        return redirect(url_for("users.list_users"))

    try:
        db.session.delete(user)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to delete user %s", user_id)
        flash("Could not delete user.", "danger")
        return redirect(url_for("users.list_users"))

    logger.info("User %s deleted user %s", current_user.email, user.email)
    flash("User deleted.", "success")
    return redirect(url_for("users.list_users"))
