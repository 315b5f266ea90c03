"""
Public storefront.

The same pages are served twice:

- `public`   /home, /products, /product/<id>, ...       all products, default branding
- `company`  /<shortname>/home, /<shortname>/products, ...  scoped to one affiliated company

For the company blueprint the shortname is resolved once per request in a URL
value preprocessor: unknown or reserved shortnames end in the branded 404, a
known one is stored in `g.company`. Every product and package query below then
goes through the company scope (products whose supplier is linked to it).
Templates build links with `url_for(sf ~ '.products')`, where `sf` names the
blueprint serving the request; the company blueprint's url_defaults fills in
the shortname.
"""

from __future__ import annotations

from flask import Blueprint, abort, g, redirect, render_template, request, url_for

from ...catalog import (
    company_packages_query,
    company_products_query,
    filter_packages,
    filter_products,
    visible_package_products,
)
from ...category_tree import flatten_tree
from ...extensions import db
from ...models import AffiliatedCompany, EventLink, Package, Product, TestimonyLink
from ...storefront import RESERVED_SHORTNAMES, categorize_materials, embed_url, is_pdf
from ...utils import get_all_categories, parse_optional_int

public_bp = Blueprint("public", __name__)
company_bp = Blueprint("company", __name__, url_prefix="/<shortname>")


# ---------------------------------------------------------------------
# Tenant resolution
# ---------------------------------------------------------------------
@company_bp.url_value_preprocessor
def _resolve_company(endpoint, values):
    shortname = (values.pop("shortname", None) or "").lower()
    if not shortname or shortname in RESERVED_SHORTNAMES:
        abort(404)
    company = AffiliatedCompany.query.filter_by(shortname=shortname).first()
    if company is None:
        abort(404)
    g.company = company


@company_bp.url_defaults
def _add_shortname(endpoint, values):
    company = g.get("company")
    if company is not None and "shortname" not in values:
        values["shortname"] = company.shortname


@public_bp.context_processor
@company_bp.context_processor
def _inject_storefront():
    return {"sf": request.blueprint}


@company_bp.route("")
def company_root():
    return redirect(url_for("company.home"))


# ---------------------------------------------------------------------
# Scoped lookups
# ---------------------------------------------------------------------
def _products_query():
    company = g.get("company")
    if company is None:
        return Product.query
    return company_products_query(company)


def _product_or_404(product_id: int) -> Product:
    product = _products_query().filter(Product.id == product_id).first()
    if product is None:
        abort(404)
    return product


def _packages_query():
    company = g.get("company")
    if company is None:
        return Package.query
    return company_packages_query(company)


def _package_or_404(package_id: int) -> Package:
    package = _packages_query().filter(Package.id == package_id).first()
    if package is None:
        abort(404)
    return package


# ---------------------------------------------------------------------
# Pages
# ---------------------------------------------------------------------
def product_list():
    """Product grid with free-text search and a recursive category filter."""
    search = (request.args.get("search") or "").strip()
    category_id = parse_optional_int(request.args.get("category"))

    categories = get_all_categories()
    products = (
        filter_products(
            _products_query(),
            search=search,
            category_ids=[category_id] if category_id is not None else None,
            all_categories=categories,
        )
        .order_by(Product.created_at.desc(), Product.id.desc())
        .all()
    )

    return render_template(
        "public/products.html",
        products=products,
        category_tree=flatten_tree(categories),
        selected_category=category_id,
        search=search,
    )


def product_detail(product_id):
    product = _product_or_404(product_id)
    company = g.get("company")

    materials = categorize_materials(product.marketing_materials, company)

    return render_template(
        "public/product_detail.html",
        product=product,
        main_image=product.main_image,
        images=product.images,
        specs=product.specifications,
        materials=materials,
        featured_brochure=materials["featured_brochure"],
        events=product.events,
        testimonies=product.testimonies,
        product_categories=product.categories,
        supplier=product.supplier,
    )


def mda_cert(product_id):
    product = _product_or_404(product_id)
    if not product.mda_cert:
        abort(404)
    return render_template(
        "public/mda_cert.html",
        product=product,
        cert_path=product.mda_cert,
        is_pdf=is_pdf(product.mda_cert),
    )


def package_list():
    search = (request.args.get("search") or "").strip()
    company = g.get("company")
    packages = filter_packages(_packages_query(), search=search).order_by(Package.created_at.desc()).all()
    entries = [(package, visible_package_products(package, company)) for package in packages]
    return render_template("public/packages.html", entries=entries, search=search)


def package_detail(package_id):
    package = _package_or_404(package_id)
    return render_template(
        "public/package_detail.html",
        package=package,
        products=visible_package_products(package, g.get("company")),
    )


def watch(kind, link_id):
    """Embedded player for an event or testimony video link."""
    if kind == "event":
        link = db.session.get(EventLink, link_id)
        owner = link.event if link else None
    else:
        link = db.session.get(TestimonyLink, link_id)
        owner = link.testimony if link else None

    if link is None or owner is None:
        abort(404)

    company = g.get("company")
    if company is not None:
        visible = _products_query().filter(Product.id.in_([p.id for p in owner.products])).first()
        if visible is None:
            abort(404)

    return render_template(
        "public/watch.html",
        kind=kind,
        owner=owner,
        link=link,
        embed_url=embed_url(link.url),
    )


def _register(bp: Blueprint) -> None:
    bp.add_url_rule("/home", "home", product_list)
    bp.add_url_rule("/products", "products", product_list)
    bp.add_url_rule("/product/<int:product_id>", "product_detail", product_detail)
    bp.add_url_rule("/product/<int:product_id>/mda-cert", "mda_cert", mda_cert)
    bp.add_url_rule("/packages", "packages", package_list)
    bp.add_url_rule("/package/<int:package_id>", "package_detail", package_detail)
    bp.add_url_rule("/watch/<any(event, testimony):kind>/<int:link_id>", "watch", watch)


_register(public_bp)
_register(company_bp)
