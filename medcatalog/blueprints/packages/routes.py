"""
Packages (admin): curated product bundles.

- Member products keep the order they were submitted in (sort_order = position);
  repeated ids are collapsed to their first position.
- Bullet specs (icon + text) keep their submitted order too; a blank icon falls
  back to "fa-solid fa-circle" and blank texts are dropped.
- Both child sets are replaced wholesale on edit, in the package's transaction.
- Deleting a package requires Admin or Super Admin.
"""

from __future__ import annotations

import logging

from flask import (
    Blueprint,
    render_template,
    request,
    redirect,
    url_for,
    flash,
)
from flask_login import login_required
from sqlalchemy.exc import SQLAlchemyError

from ...catalog import filter_packages
from ...extensions import db
from ...models import Package, PackageProduct, PackageSpec, Product, ROLE_ADMIN
from ...security import role_required
from ...uploads import PACKAGE_IMAGE, UploadError, delete_asset, discard_replaced, resolve_upload
from ...utils import form_text, parse_id_list, render_invalid_form

logger = logging.getLogger(__name__)

packages_bp = Blueprint("packages", __name__, url_prefix="/admin/packages")

DEFAULT_SPEC_ICON = "fa-solid fa-circle"


def _spec_rows(form):
    icons = form.getlist("spec_icons")
    texts = form.getlist("spec_texts")
    rows = []
    for idx, text in enumerate(texts):
        text = (text or "").strip()
        if not text:
            continue
        icon = ((icons[idx] if idx < len(icons) else "") or "").strip() or DEFAULT_SPEC_ICON
        rows.append((icon, text))
    return rows


def _apply_form(package: Package, form) -> str | None:
    package.name = form_text(form, "name")
    package.description = form_text(form, "description") or None
    package.bundle_label = form_text(form, "bundle_label") or None
    if not package.name:
        return "Package name is required."
    return None


def _replace_children(package: Package, form) -> None:
    product_ids = parse_id_list(form.getlist("product_ids"))
    known = {p.id for p in Product.query.filter(Product.id.in_(product_ids)).all()} if product_ids else set()

    # old rows must be gone before re-inserting the same (package, product) pairs
    package.members = []
    package.specs = []
    db.session.flush()

    package.members = [
        PackageProduct(product_id=product_id, sort_order=position)
        for position, product_id in enumerate(pid for pid in product_ids if pid in known)
    ]
    package.specs = [
        PackageSpec(icon=icon, spec_text=text, sort_order=position)
        for position, (icon, text) in enumerate(_spec_rows(form))
    ]


def _form_context(package=None):
    return {
        "package": package,
        "products": Product.query.order_by(Product.model.asc(), Product.code.asc()).all(),
        "selected_product_ids": [m.product_id for m in package.members] if package else [],
    }


def _invalid_form(package: Package, message: str):
    """Re-render the form with the submitted members and highlights."""
    with db.session.no_autoflush:
        package.specs = [
            PackageSpec(icon=icon, spec_text=text, sort_order=position)
            for position, (icon, text) in enumerate(_spec_rows(request.form))
        ]
        context = _form_context(package)
        context["selected_product_ids"] = parse_id_list(request.form.getlist("product_ids"))
        return render_invalid_form("packages/form.html", message, **context)


@packages_bp.route("")
@login_required
def list_packages():
    search = (request.args.get("search") or "").strip()
    packages = filter_packages(search=search).order_by(Package.created_at.desc()).all()
    return render_template("packages/list.html", packages=packages, search=search)


@packages_bp.route("/new", methods=["GET", "POST"])
@login_required
def create_package():
    if request.method == "POST":
        package = Package()
        error = _apply_form(package, request.form)
        if error:
            return _invalid_form(package, error)

        new_image = None
        try:
            stored = resolve_upload(request.files, request.form, "main_image", PACKAGE_IMAGE)
            new_image = stored.path if stored else None
            package.main_image = new_image

            db.session.add(package)
            _replace_children(package, request.form)
            db.session.commit()
        except (SQLAlchemyError, UploadError, OSError) as exc:
            db.session.rollback()
            delete_asset(new_image)
            logger.exception("Failed to create package")
            flash(str(exc) if isinstance(exc, UploadError) else "Failed to create package.", "danger")
            return redirect(url_for("packages.create_package"))

        flash("Package created.", "success")
        return redirect(url_for("packages.list_packages"))

    return render_template("packages/form.html", **_form_context())


@packages_bp.route("/<int:package_id>/edit", methods=["GET", "POST"])
@login_required
def edit_package(package_id):
    package = Package.query.get_or_404(package_id)

    if request.method == "POST":
        old_image = package.main_image

        error = _apply_form(package, request.form)
        if error:
            return _invalid_form(package, error)

        new_image = None
        try:
            stored = resolve_upload(request.files, request.form, "main_image", PACKAGE_IMAGE)
            if stored is not None:
                new_image = stored.path
                package.main_image = new_image
            elif request.form.get("remove_main_image"):
                package.main_image = None

            _replace_children(package, request.form)
            db.session.commit()
        except (SQLAlchemyError, UploadError, OSError) as exc:
            db.session.rollback()
            discard_replaced(new_image, old_image)
            logger.exception("Failed to update package %s", package_id)
            flash(str(exc) if isinstance(exc, UploadError) else "Failed to update package.", "danger")
            return redirect(url_for("packages.edit_package", package_id=package_id))

        discard_replaced(old_image, package.main_image)
        flash("Package updated.", "success")
        return redirect(url_for("packages.list_packages"))

    return render_template("packages/form.html", **_form_context(package))


@packages_bp.route("/<int:package_id>/delete", methods=["POST"])
@login_required
@role_required(ROLE_ADMIN)
def delete_package(package_id):
    package = Package.query.get_or_404(package_id)
    image = package.main_image

    try:
        db.session.delete(package)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to delete package %s", package_id)
        flash("Failed to delete package.", "danger")
        return redirect(url_for("packages.list_packages"))

    delete_asset(image)
    flash("Package deleted.", "success")
    return redirect(url_for("packages.list_packages"))
