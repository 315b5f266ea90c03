"""
Affiliated Companies (admin).

- List with search over name / shortname
- Create / edit with optional logo (direct upload or chunk-assembled `logo_path`)
- Delete removes the logo file (best effort) then the row; supplier links cascade

The shortname becomes the public storefront URL segment, so it is validated
against a URL-safe pattern and the reserved top-level route names.
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
from ...models import AffiliatedCompany
from ...storefront import normalize_shortname, shortname_error
from ...uploads import LOGO, UploadError, delete_asset, discard_replaced, resolve_upload
from ...utils import form_text, parse_optional_date

logger = logging.getLogger(__name__)

companies_bp = Blueprint("companies", __name__, url_prefix="/admin/companies")


def _apply_form(company: AffiliatedCompany, form) -> None:
    company.name = form_text(form, "name")
    company.shortname = normalize_shortname(form.get("shortname"))
    company.reg_no = form_text(form, "reg_no") or None
    company.reg_date = parse_optional_date(form.get("reg_date"))
    company.address = form_text(form, "address") or None
    company.website = form_text(form, "website") or None
    company.email = form_text(form, "email") or None
    company.contact_number = form_text(form, "contact_number") or None


def _validate(company: AffiliatedCompany) -> str | None:
    if not company.name:
        return "Company name is required."
    error = shortname_error(company.shortname)
    if error:
        return error
    with db.session.no_autoflush:
        clash = AffiliatedCompany.query.filter(AffiliatedCompany.shortname == company.shortname)
        if company.id is not None:
            clash = clash.filter(AffiliatedCompany.id != company.id)
        if clash.first():
            return f"Shortname '{company.shortname}' is already taken."
    return None


# ---------------------------------------------------------------------
# LIST
# ---------------------------------------------------------------------

@companies_bp.route("")
@login_required
def list_companies():
    search = (request.args.get("search") or "").strip()
    query = AffiliatedCompany.query
    if search:
        term = f"%{search}%"
        query = query.filter(or_(AffiliatedCompany.name.ilike(term), AffiliatedCompany.shortname.ilike(term)))
    companies = query.order_by(AffiliatedCompany.name.asc()).all()
    return render_template("companies/list.html", companies=companies, search=search)


# ---------------------------------------------------------------------
# CREATE
# ---------------------------------------------------------------------

@companies_bp.route("/new", methods=["GET", "POST"])
@login_required
def create_company():
    if request.method == "POST":
        company = AffiliatedCompany()
        _apply_form(company, request.form)

        error = _validate(company)
        if error:
            flash(error, "danger")
            return render_template("companies/form.html", company=company), 400

        new_logo = None
        try:
            stored = resolve_upload(request.files, request.form, "logo", LOGO)
            new_logo = stored.path if stored else None
            company.logo = new_logo

            db.session.add(company)
            db.session.commit()
        except (SQLAlchemyError, UploadError, OSError) as exc:
            db.session.rollback()
            delete_asset(new_logo)
            logger.exception("Failed to create company %s", company.shortname)
            flash(str(exc) if isinstance(exc, UploadError) else "Failed to add company.", "danger")
            return render_template("companies/form.html", company=company), 400

        flash("Company created.", "success")
        return redirect(url_for("companies.list_companies"))

    return render_template("companies/form.html", company=None)


# ---------------------------------------------------------------------
# EDIT
# ---------------------------------------------------------------------

@companies_bp.route("/<int:company_id>/edit", methods=["GET", "POST"])
@login_required
def edit_company(company_id):
    """Update fields; a new logo replaces the old one, `remove_logo` clears it."""
    company = AffiliatedCompany.query.get_or_404(company_id)

    if request.method == "POST":
        old_logo = company.logo
        _apply_form(company, request.form)

        error = _validate(company)
        if error:
            db.session.rollback()
            flash(error, "danger")
            return redirect(url_for("companies.edit_company", company_id=company_id))

        new_logo = None
        try:
            stored = resolve_upload(request.files, request.form, "logo", LOGO)
            if stored is not None:
                new_logo = stored.path
                company.logo = new_logo
            elif request.form.get("remove_logo"):
                company.logo = None

            db.session.commit()
        except (SQLAlchemyError, UploadError, OSError) as exc:
            db.session.rollback()
            discard_replaced(new_logo, old_logo)
            logger.exception("Failed to update company %s", company_id)
            flash(str(exc) if isinstance(exc, UploadError) else "Failed to update company.", "danger")
            return redirect(url_for("companies.edit_company", company_id=company_id))

        discard_replaced(old_logo, company.logo)

        flash("Company updated.", "success")
        return redirect(url_for("companies.list_companies"))

    return render_template("companies/form.html", company=company)


# ---------------------------------------------------------------------
# DELETE
# ---------------------------------------------------------------------

@companies_bp.route("/<int:company_id>/delete", methods=["POST"])
@login_required
def delete_company(company_id):
    company = AffiliatedCompany.query.get_or_404(company_id)
    logo = company.logo

    try:
        db.session.delete(company)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to delete company %s", company_id)
        flash("Failed to delete company.", "danger")
        return redirect(url_for("companies.list_companies"))

    delete_asset(logo)
    flash("Company deleted.", "success")
    return redirect(url_for("companies.list_companies"))
