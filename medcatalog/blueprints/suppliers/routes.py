"""
Suppliers (admin).

A supplier has a name, an optional country (a `country` Setting) and a set of
affiliated companies. The company set is replaced wholesale on every edit, in
the same transaction as the supplier row.
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
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from ...extensions import db
from ...models import SETTING_TYPE_COUNTRY, AffiliatedCompany, Setting, Supplier
from ...utils import form_text, get_countries, parse_id_list, parse_optional_int

logger = logging.getLogger(__name__)

suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/admin/suppliers")


def _form_context(supplier=None):
    return {
        "supplier": supplier,
        "countries": get_countries(),
        "companies": AffiliatedCompany.query.order_by(AffiliatedCompany.name.asc()).all(),
    }


def _apply_form(supplier: Supplier, form) -> str | None:
    """Copy form values onto `supplier`. Returns a validation error message or None."""
    name = form_text(form, "name")
    if not name:
        return "Supplier name is required."

    country_id = parse_optional_int(form.get("country_id"))
    if country_id is not None:
        country = Setting.query.filter_by(id=country_id, type=SETTING_TYPE_COUNTRY).first()
        if country is None:
            return "Selected country does not exist."

    company_ids = parse_id_list(form.getlist("company_ids"))
    companies = []
    if company_ids:
        companies = AffiliatedCompany.query.filter(AffiliatedCompany.id.in_(company_ids)).all()

    supplier.name = name
    supplier.country_id = country_id
    supplier.companies = companies
    return None


@suppliers_bp.route("")
@login_required
def list_suppliers():
    search = (request.args.get("search") or "").strip()
    query = Supplier.query.outerjoin(Supplier.country)
    if search:
        term = f"%{search}%"
        query = query.filter(or_(Supplier.name.ilike(term), Setting.value.ilike(term)))
    suppliers = query.order_by(Supplier.id.desc()).all()
    return render_template("suppliers/list.html", suppliers=suppliers, search=search)


@suppliers_bp.route("/new", methods=["GET", "POST"])
@login_required
def create_supplier():
    if request.method == "POST":
        supplier = Supplier()
        error = _apply_form(supplier, request.form)
        if error:
            flash(error, "danger")
            return render_template("suppliers/form.html", **_form_context(supplier)), 400

        try:
            db.session.add(supplier)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to create supplier")
            flash("Failed to add supplier.", "danger")
            return redirect(url_for("suppliers.create_supplier"))

        flash("Supplier created.", "success")
        return redirect(url_for("suppliers.list_suppliers"))

    return render_template("suppliers/form.html", **_form_context())


@suppliers_bp.route("/<int:supplier_id>/edit", methods=["GET", "POST"])
@login_required
def edit_supplier(supplier_id):
    supplier = Supplier.query.get_or_404(supplier_id)

    if request.method == "POST":
        error = _apply_form(supplier, request.form)
        if error:
            db.session.rollback()
            flash(error, "danger")
            return redirect(url_for("suppliers.edit_supplier", supplier_id=supplier_id))

        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to update supplier %s", supplier_id)
            flash("Failed to update supplier.", "danger")
            return redirect(url_for("suppliers.edit_supplier", supplier_id=supplier_id))

        flash("Supplier updated.", "success")
        return redirect(url_for("suppliers.list_suppliers"))

    return render_template("suppliers/form.html", **_form_context(supplier))


@suppliers_bp.route("/<int:supplier_id>/delete", methods=["POST"])
@login_required
def delete_supplier(supplier_id):
    """Delete a supplier. Its products keep existing with no supplier (SET NULL)."""
    supplier = Supplier.query.get_or_404(supplier_id)

    try:
        db.session.delete(supplier)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to delete supplier %s", supplier_id)
        flash("Failed to delete supplier.", "danger")
        return redirect(url_for("suppliers.list_suppliers"))

    flash("Supplier deleted.", "success")
    return redirect(url_for("suppliers.list_suppliers"))
