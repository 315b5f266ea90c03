"""
Marketing (admin): materials, events, testimonies.

One listing page with three tabs, filterable by free text and by linked product.

- Materials carry one file (image -> WebP, or a PDF / office document kept as is),
  a display category and, for brochures, an optional owning company.
- Events and testimonies carry a list of links; the first YouTube/Vimeo link is
  shown as the video on public pages.
- Product links and link rows are replaced wholesale on every edit.
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
from ...models import (
    MATERIAL_CATEGORIES,
    AffiliatedCompany,
    Event,
    EventLink,
    MarketingMaterial,
    Product,
    Testimony,
    TestimonyLink,
)
from ...uploads import MARKETING, UploadError, delete_asset, discard_replaced, resolve_upload
from ...utils import (
    form_text,
    parse_id_list,
    parse_optional_date,
    parse_optional_int,
    render_invalid_form,
)

logger = logging.getLogger(__name__)

marketing_bp = Blueprint("marketing", __name__, url_prefix="/admin/marketing")

TABS = ("materials", "events", "testimonies")


# -------------------------------------------------------
# HELPERS
# -------------------------------------------------------
def _products_for_ids(ids):
    if not ids:
        return []
    return Product.query.filter(Product.id.in_(ids)).order_by(Product.code.asc()).all()


def _link_rows(form):
    """(title, url) rows from parallel link_titles[] / link_urls[] inputs; rows without a URL are dropped."""
    titles = form.getlist("link_titles")
    urls = form.getlist("link_urls")
    rows = []
    for idx, url in enumerate(urls):
        url = (url or "").strip()
        if not url:
            continue
        title = (titles[idx] if idx < len(titles) else "") or ""
        rows.append((title.strip() or None, url))
    return rows


def _form_context(**extra):
    context = {
        "products": Product.query.order_by(Product.code.asc()).all(),
        "companies": AffiliatedCompany.query.order_by(AffiliatedCompany.name.asc()).all(),
        "material_categories": MATERIAL_CATEGORIES,
    }
    context.update(extra)
    return context


def _save(entity_label: str, redirect_to: str, **redirect_args):
    """Commit; on failure roll back, log, flash and return a redirect response."""
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to save %s", entity_label)
        flash(f"Failed to save {entity_label}.", "danger")
        return redirect(url_for(redirect_to, **redirect_args))
    return None


# -------------------------------------------------------
# LISTING
# -------------------------------------------------------
@marketing_bp.route("")
@login_required
def index():
    return redirect(url_for("marketing.list_tab", tab="materials"))


@marketing_bp.route("/<any(materials, events, testimonies):tab>")
@login_required
def list_tab(tab):
    search = (request.args.get("search") or "").strip()
    product_id = parse_optional_int(request.args.get("product_id"))
    term = f"%{search}%"

    materials = MarketingMaterial.query
    events = Event.query
    testimonies = Testimony.query

    if search:
        materials = materials.filter(MarketingMaterial.name.ilike(term))
        events = events.filter(Event.name.ilike(term))
        testimonies = testimonies.filter(
            or_(
                Testimony.client_name.ilike(term),
                Testimony.treatment.ilike(term),
                Testimony.location.ilike(term),
            )
        )

    if product_id is not None:
        materials = materials.filter(MarketingMaterial.products.any(Product.id == product_id))
        events = events.filter(Event.products.any(Product.id == product_id))
        testimonies = testimonies.filter(Testimony.products.any(Product.id == product_id))

    return render_template(
        "marketing/index.html",
        active_tab=tab,
        materials=materials.order_by(MarketingMaterial.id.desc()).all(),
        events=events.order_by(Event.start_date.desc()).all(),
        testimonies=testimonies.order_by(Testimony.start_date.desc()).all(),
        products=Product.query.order_by(Product.code.asc()).all(),
        search=search,
        selected_product=product_id,
    )


# ==========================================
# MATERIALS
# ==========================================
def _apply_material(material: MarketingMaterial, form) -> str | None:
    material.name = form_text(form, "name")
    material.category = form_text(form, "category").upper() or "OTHERS"
    material.products = _products_for_ids(parse_id_list(form.getlist("product_ids")))

    company_id = parse_optional_int(form.get("company_id"))
    if company_id is not None and db.session.get(AffiliatedCompany, company_id) is None:
        return "Selected company does not exist."
    # only brochures are white-labelled per company
    material.company_id = company_id if material.category == "BROCHURE" else None

    if not material.name:
        return "Material name is required."
    if material.category not in MATERIAL_CATEGORIES:
        return "Invalid material category."
    return None


@marketing_bp.route("/materials/new", methods=["GET", "POST"])
@login_required
def create_material():
    if request.method == "POST":
        material = MarketingMaterial()
        error = _apply_material(material, request.form)
        if error:
            return render_invalid_form("marketing/material_form.html", error, **_form_context(material=material))

        new_file = None
        try:
            stored = resolve_upload(request.files, request.form, "file", MARKETING)
            if stored is None:
                return render_invalid_form(
                    "marketing/material_form.html", "A file is required.", **_form_context(material=material)
                )
            new_file = stored.path
            material.file_path = stored.path
            material.file_type = stored.content_type

            db.session.add(material)
            db.session.commit()
        except (SQLAlchemyError, UploadError, OSError) as exc:
            db.session.rollback()
            delete_asset(new_file)
            logger.exception("Failed to create marketing material")
            flash(str(exc) if isinstance(exc, UploadError) else "Failed to create material.", "danger")
            return redirect(url_for("marketing.create_material"))

        flash("Material created.", "success")
        return redirect(url_for("marketing.list_tab", tab="materials"))

    return render_template("marketing/material_form.html", **_form_context(material=None))


@marketing_bp.route("/materials/<int:material_id>/edit", methods=["GET", "POST"])
@login_required
def edit_material(material_id):
    material = MarketingMaterial.query.get_or_404(material_id)

    if request.method == "POST":
        old_file = material.file_path

        error = _apply_material(material, request.form)
        if error:
            return render_invalid_form("marketing/material_form.html", error, **_form_context(material=material))

        new_file = None
        try:
            stored = resolve_upload(request.files, request.form, "file", MARKETING)
            if stored is not None:
                new_file = stored.path
                material.file_path = stored.path
                material.file_type = stored.content_type
            db.session.commit()
        except (SQLAlchemyError, UploadError, OSError) as exc:
            db.session.rollback()
            discard_replaced(new_file, old_file)
            logger.exception("Failed to update marketing material %s", material_id)
            flash(str(exc) if isinstance(exc, UploadError) else "Failed to update material.", "danger")
            return redirect(url_for("marketing.edit_material", material_id=material_id))

        discard_replaced(old_file, material.file_path)
        flash("Material updated.", "success")
        return redirect(url_for("marketing.list_tab", tab="materials"))

    return render_template("marketing/material_form.html", **_form_context(material=material))


@marketing_bp.route("/materials/<int:material_id>/delete", methods=["POST"])
@login_required
def delete_material(material_id):
    material = MarketingMaterial.query.get_or_404(material_id)
    file_path = material.file_path

    db.session.delete(material)
    failed = _save("material", "marketing.list_tab", tab="materials")
    if failed:
        return failed

    delete_asset(file_path)
    flash("Material deleted.", "success")
    return redirect(url_for("marketing.list_tab", tab="materials"))


# ==========================================
# EVENTS
# ==========================================
def _apply_event(event: Event, form) -> str | None:
    event.name = form_text(form, "name")
    event.location = form_text(form, "location") or None
    event.start_date = parse_optional_date(form.get("start_date"))
    event.end_date = parse_optional_date(form.get("end_date"))
    event.links = [EventLink(title=title, url=url) for title, url in _link_rows(form)]
    event.products = _products_for_ids(parse_id_list(form.getlist("product_ids")))
    if not event.name:
        return "Event name is required."
    return None


@marketing_bp.route("/events/new", methods=["GET", "POST"])
@login_required
def create_event():
    if request.method == "POST":
        event = Event()
        error = _apply_event(event, request.form)
        if error:
            return render_invalid_form("marketing/event_form.html", error, **_form_context(event=event))

        db.session.add(event)
        failed = _save("event", "marketing.create_event")
        if failed:
            return failed

        flash("Event created.", "success")
        return redirect(url_for("marketing.list_tab", tab="events"))

    return render_template("marketing/event_form.html", **_form_context(event=None))


@marketing_bp.route("/events/<int:event_id>/edit", methods=["GET", "POST"])
@login_required
def edit_event(event_id):
    event = Event.query.get_or_404(event_id)

    if request.method == "POST":
        error = _apply_event(event, request.form)
        if error:
            return render_invalid_form("marketing/event_form.html", error, **_form_context(event=event))

        failed = _save("event", "marketing.edit_event", event_id=event_id)
        if failed:
            return failed

        flash("Event updated.", "success")
        return redirect(url_for("marketing.list_tab", tab="events"))

    return render_template("marketing/event_form.html", **_form_context(event=event))


@marketing_bp.route("/events/<int:event_id>/delete", methods=["POST"])
@login_required
def delete_event(event_id):
    event = Event.query.get_or_404(event_id)
    db.session.delete(event)
    failed = _save("event", "marketing.list_tab", tab="events")
    if failed:
        return failed

    flash("Event deleted.", "success")
    return redirect(url_for("marketing.list_tab", tab="events"))


# ==========================================
# TESTIMONIES
# ==========================================
def _apply_testimony(testimony: Testimony, form) -> str | None:
    testimony.client_name = form_text(form, "client_name")
    testimony.location = form_text(form, "location") or None
    testimony.start_date = parse_optional_date(form.get("start_date"))
    testimony.end_date = parse_optional_date(form.get("end_date"))
    testimony.treatment = form_text(form, "treatment") or None
    testimony.links = [TestimonyLink(title=title, url=url) for title, url in _link_rows(form)]
    testimony.products = _products_for_ids(parse_id_list(form.getlist("product_ids")))
    if not testimony.client_name:
        return "Client name is required."
    return None


@marketing_bp.route("/testimonies/new", methods=["GET", "POST"])
@login_required
def create_testimony():
    if request.method == "POST":
        testimony = Testimony()
        error = _apply_testimony(testimony, request.form)
        if error:
            return render_invalid_form("marketing/testimony_form.html", error, **_form_context(testimony=testimony))

        db.session.add(testimony)
        failed = _save("testimony", "marketing.create_testimony")
        if failed:
            return failed

        flash("Testimony created.", "success")
        return redirect(url_for("marketing.list_tab", tab="testimonies"))

    return render_template("marketing/testimony_form.html", **_form_context(testimony=None))


@marketing_bp.route("/testimonies/<int:testimony_id>/edit", methods=["GET", "POST"])
@login_required
def edit_testimony(testimony_id):
    testimony = Testimony.query.get_or_404(testimony_id)

    if request.method == "POST":
        error = _apply_testimony(testimony, request.form)
        if error:
            return render_invalid_form("marketing/testimony_form.html", error, **_form_context(testimony=testimony))

        failed = _save("testimony", "marketing.edit_testimony", testimony_id=testimony_id)
        if failed:
            return failed

        flash("Testimony updated.", "success")
        return redirect(url_for("marketing.list_tab", tab="testimonies"))

    return render_template("marketing/testimony_form.html", **_form_context(testimony=testimony))


@marketing_bp.route("/testimonies/<int:testimony_id>/delete", methods=["POST"])
@login_required
def delete_testimony(testimony_id):
    testimony = Testimony.query.get_or_404(testimony_id)
    db.session.delete(testimony)
    failed = _save("testimony", "marketing.list_tab", tab="testimonies")
    if failed:
        return failed

    flash("Testimony deleted.", "success")
    return redirect(url_for("marketing.list_tab", tab="testimonies"))
