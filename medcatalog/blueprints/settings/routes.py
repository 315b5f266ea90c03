"""
medcatalog/blueprints/settings/routes.py

Settings & master data routes.

Scope:
- Lookup values (countries, product types): one page, POST action in {create, update, delete}
- Categories tree: same pattern, with re-parent cycle rejection
- Bulk import of countries / product types / categories from .xlsx

SECURITY:
- Every page requires a logged-in user.
- Deleting a setting or a category requires Admin or Super Admin (403 otherwise).
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask_login import login_required
from sqlalchemy.exc import SQLAlchemyError

from ...category_tree import flatten_tree, would_create_cycle
from ...extensions import db
from ...importer import IMPORTERS, ImportFileError
from ...models import SETTING_TYPES, Category, Setting
from ...security import _forbidden, is_admin
from ...utils import get_all_categories, get_settings, parse_optional_int

logger = logging.getLogger(__name__)

settings_bp = Blueprint("settings", __name__, url_prefix="/admin")


def _commit_or_flash(message: str) -> bool:
    """Commit the session; on failure roll back, log and flash `message`."""
    try:
        db.session.commit()
        return True
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception(message)
        flash(message, "danger")
        return False


# ----------------------------------------------------------------------
# Lookup values
# ----------------------------------------------------------------------
@settings_bp.route("/settings", methods=["GET", "POST"])
@login_required
def list_settings():
    """
    Countries and product types.

    Pattern:
    - GET: list grouped by type
    - POST: action in {create, update, delete}
    """
    if request.method == "POST":
        action = (request.form.get("action") or "").strip()

        # CREATE
        if action == "create":
            setting_type = (request.form.get("type") or "").strip()
            value = (request.form.get("value") or "").strip()

            if setting_type not in SETTING_TYPES or not value:
                flash("A valid type and a value are required.", "danger")
                return redirect(request.path)

            if Setting.query.filter_by(type=setting_type, value=value).first():
                flash(f"{SETTING_TYPES[setting_type]} '{value}' already exists.", "danger")
                return redirect(request.path)

            db.session.add(Setting(type=setting_type, value=value))
            if _commit_or_flash("Failed to add setting."):
                flash("Setting added.", "success")
            return redirect(request.path)

        setting_id = parse_optional_int(request.form.get("id"))
        setting = db.session.get(Setting, setting_id) if setting_id is not None else None
        if setting is None:
            flash("Setting not found.", "danger")
            return redirect(request.path)

        # UPDATE
        if action == "update":
            value = (request.form.get("value") or "").strip()
            if not value:
                flash("Value is required.", "danger")
                return redirect(request.path)

            clash = Setting.query.filter(
                Setting.type == setting.type,
                Setting.value == value,
                Setting.id != setting.id,
            ).first()
            if clash:
                flash(f"'{value}' already exists.", "danger")
                return redirect(request.path)

            setting.value = value
            if _commit_or_flash("Failed to update setting."):
                flash("Setting updated.", "success")
            return redirect(request.path)

        # DELETE
        if action == "delete":
            if not is_admin():
                return _forbidden()

            db.session.delete(setting)
            if _commit_or_flash("Failed to delete setting."):
                flash("Setting deleted.", "success")
            return redirect(request.path)

        flash("Unknown action.", "danger")
        return redirect(request.path)

    grouped = {setting_type: get_settings(setting_type) for setting_type in SETTING_TYPES}
    return render_template("settings/list.html", grouped=grouped, setting_types=SETTING_TYPES)


# ----------------------------------------------------------------------
# Categories
# ----------------------------------------------------------------------
@settings_bp.route("/settings/categories", methods=["GET", "POST"])
@login_required
def list_categories():
    """Category tree. Deleting a category removes its whole subtree and product links."""
    categories = get_all_categories()

    if request.method == "POST":
        action = (request.form.get("action") or "").strip()
        name = (request.form.get("name") or "").strip()
        parent_id = parse_optional_int(request.form.get("parent_id"))

        if parent_id is not None and not any(c.id == parent_id for c in categories):
            flash("Parent category not found.", "danger")
            return redirect(request.path)

        if action == "create":
            if not name:
                flash("Category name is required.", "danger")
                return redirect(request.path)

            db.session.add(Category(name=name, parent_id=parent_id))
            if _commit_or_flash("Failed to add category."):
                flash("Category added.", "success")
            return redirect(request.path)

        category_id = parse_optional_int(request.form.get("id"))
        category = db.session.get(Category, category_id) if category_id is not None else None
        if category is None:
            flash("Category not found.", "danger")
            return redirect(request.path)

        if action == "update":
            if not name:
                flash("Category name is required.", "danger")
                return redirect(request.path)
            if would_create_cycle(categories, category.id, parent_id):
                flash("A category cannot be moved under itself or one of its subcategories.", "danger")
                return redirect(request.path)

            category.name = name
            category.parent_id = parent_id
            if _commit_or_flash("Failed to update category."):
                flash("Category updated.", "success")
            return redirect(request.path)

        if action == "delete":
            if not is_admin():
                return _forbidden()

            db.session.delete(category)
            if _commit_or_flash("Failed to delete category."):
                flash("Category deleted.", "success")
            return redirect(request.path)

        flash("Unknown action.", "danger")
        return redirect(request.path)

    return render_template(
        "settings/categories.html",
        tree=flatten_tree(categories),
        categories=categories,
    )


# ----------------------------------------------------------------------
# Bulk import
# ----------------------------------------------------------------------
@settings_bp.route("/import")
@login_required
def bulk_import():
    return render_template(
        "settings/import_index.html",
        importers=IMPORTERS,
        templates=current_app.config["IMPORT_TEMPLATE_LINKS"],
    )


@settings_bp.route("/import/<kind>", methods=["GET", "POST"])
@login_required
def import_upload(kind):
    if kind not in IMPORTERS:
        return render_template("errors/404.html"), 404

    importer, template_key, label = IMPORTERS[kind]
    template_url = current_app.config["IMPORT_TEMPLATE_LINKS"].get(template_key)
    result = None

    if request.method == "POST":
        upload = request.files.get("file")
        if upload is None or not upload.filename:
            flash("No file uploaded.", "danger")
            return redirect(request.path)

        try:
            result = importer(upload.read())
            db.session.commit()
        except ImportFileError as exc:
            db.session.rollback()
            flash(str(exc), "danger")
            return redirect(request.path)
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Bulk import of %s failed", kind)
            flash(f"Failed to process {label.lower()} import.", "danger")
            return redirect(request.path)

        flash(f"{result.added} {label.lower()} added, {result.skip_count} skipped.", "success")

    return render_template(
        "settings/import_upload.html",
        kind=kind,
        label=label,
        template_url=template_url,
        result=result,
    )
