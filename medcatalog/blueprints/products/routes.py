"""
Products (admin).

Includes:
- List with free-text search and category / supplier / type filters
  (category selections include all subcategories)
- Detail page
- Create / edit in ONE transaction: the product row, its images, and every
  child set (types, categories, specifications, marketing materials, events,
  testimonies). Child sets are replaced wholesale on edit.
- Delete: row first (cascades clear join rows, specs and images), then the
  certificate and image files, best effort.

Files:
- `mda_cert`: PDF or image, direct upload or chunk-assembled `mda_cert_path`
- `product_images`: several direct uploads and/or `product_images_paths`
- On create `main_image_index` picks the main image (0-based, default first)
- On edit `deleted_images` removes existing images, new ones are appended and
  `main_image_id` reselects the main one

NOTES:
- Files are written before the transaction; if it fails, the files written by
  this request are removed again.
- `Product.product_image` mirrors the main image for older listings.
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

from ...catalog import filter_products
from ...category_tree import flatten_tree
from ...extensions import db
from ...models import (
    SETTING_TYPE_PRODUCT_TYPE,
    Category,
    Event,
    MarketingMaterial,
    Product,
    ProductImage,
    ProductSpecification,
    Setting,
    Supplier,
    Testimony,
)
from ...uploads import (
    CERTIFICATE,
    PRODUCT_IMAGE,
    UploadError,
    claim_stored_path,
    delete_asset,
    discard_replaced,
    resolve_upload,
    store_file_storage,
)
from ...utils import (
    form_pairs,
    form_text,
    get_all_categories,
    get_product_types,
    parse_id_list,
    parse_optional_int,
    render_invalid_form,
)

logger = logging.getLogger(__name__)

products_bp = Blueprint("products", __name__, url_prefix="/admin/products")


# -------------------------------------------------------
# HELPERS
# -------------------------------------------------------
def _form_context(product=None):
    categories = get_all_categories()
    return {
        "product": product,
        "types": get_product_types(),
        "category_tree": flatten_tree(categories),
        "suppliers": Supplier.query.order_by(Supplier.name.asc()).all(),
        "materials": MarketingMaterial.query.order_by(MarketingMaterial.name.asc()).all(),
        "events": Event.query.order_by(Event.start_date.desc(), Event.name.asc()).all(),
        "testimonies": Testimony.query.order_by(Testimony.client_name.asc()).all(),
    }


def _rows_by_ids(model, ids, *criteria):
    """Rows of `model` for `ids`, in the submitted order; unknown ids are dropped."""
    if not ids:
        return []
    rows = {row.id: row for row in model.query.filter(model.id.in_(ids), *criteria).all()}
    return [rows[i] for i in ids if i in rows]


def _apply_fields(product: Product, form) -> str | None:
    """Copy the scalar fields onto `product`. Returns a validation error message or None."""
    product.code = form_text(form, "code")
    product.model = form_text(form, "model") or None
    product.mda_reg_no = form_text(form, "mda_reg_no") or None
    product.description = form_text(form, "description") or None

    supplier_id = parse_optional_int(form.get("supplier_id"))
    if supplier_id is not None and db.session.get(Supplier, supplier_id) is None:
        return "Selected supplier does not exist."
    product.supplier_id = supplier_id

    if not product.code:
        return "Product code is required."
    return None


def _replace_associations(product: Product, form) -> None:
    """Replace every many-to-many set with exactly the submitted ids."""
    product.types = _rows_by_ids(
        Setting, parse_id_list(form.getlist("product_types")), Setting.type == SETTING_TYPE_PRODUCT_TYPE
    )
    product.categories = _rows_by_ids(Category, parse_id_list(form.getlist("product_categories")))
    product.marketing_materials = _rows_by_ids(MarketingMaterial, parse_id_list(form.getlist("material_ids")))
    product.events = _rows_by_ids(Event, parse_id_list(form.getlist("event_ids")))
    product.testimonies = _rows_by_ids(Testimony, parse_id_list(form.getlist("testimony_ids")))


def _replace_specifications(product: Product, pairs) -> None:
    product.specifications = [
        ProductSpecification(spec_key=key, spec_value=value)
        for key, value in pairs
        if value
    ]
    db.session.flush()


def _invalid_form(product: Product, message: str):
    """Re-render the form with the submitted associations and specifications selected."""
    with db.session.no_autoflush:
        _replace_associations(product, request.form)
        product.specifications = [
            ProductSpecification(spec_key=key, spec_value=value)
            for key, value in form_pairs(request.form, "spec_key", "spec_value")
        ]
        return render_invalid_form("products/form.html", message, **_form_context(product))


def _store_new_images(files, form, written: list) -> list[str]:
    """Direct uploads first, then chunk-assembled paths. Every file taken is appended to `written`."""
    paths = []
    for file_storage in files.getlist("product_images"):
        stored = store_file_storage(file_storage, PRODUCT_IMAGE)
        if stored is not None:
            written.append(stored.path)
            paths.append(stored.path)
    for raw in form.getlist("product_images_paths"):
        path = claim_stored_path(raw, PRODUCT_IMAGE)
        if path:
            written.append(path)
            paths.append(path)
    return paths


def _set_main(product: Product, main: ProductImage | None) -> None:
    """Flag exactly one image as main (or none if there are no images)."""
    if main is None and product.images:
        main = next((img for img in product.images if img.is_main), product.images[0])
    for image in product.images:
        image.is_main = image is main
    product.product_image = main.image_path if main is not None else None


def _resolve_certificate(written: list):
    stored = resolve_upload(request.files, request.form, "mda_cert", CERTIFICATE)
    if stored is None:
        return None
    written.append(stored.path)
    return stored.path


# -------------------------------------------------------
# LIST / DETAIL
# -------------------------------------------------------
@products_bp.route("")
@login_required
def list_products():
    search = (request.args.get("search") or "").strip()
    category_ids = parse_id_list(request.args.getlist("categories"))
    supplier_ids = parse_id_list(request.args.getlist("suppliers"))
    type_ids = parse_id_list(request.args.getlist("types"))

    categories = get_all_categories()
    products = (
        filter_products(
            search=search,
            category_ids=category_ids,
            supplier_ids=supplier_ids,
            type_ids=type_ids,
            all_categories=categories,
        )
        .order_by(Product.id.desc())
        .all()
    )

    return render_template(
        "products/list.html",
        products=products,
        category_tree=flatten_tree(categories),
        suppliers=Supplier.query.order_by(Supplier.name.asc()).all(),
        types=get_product_types(),
        search=search,
        selected_categories=category_ids,
        selected_suppliers=supplier_ids,
        selected_types=type_ids,
    )


@products_bp.route("/<int:product_id>")
@login_required
def view_product(product_id):
    product = Product.query.get_or_404(product_id)
    return render_template("products/detail.html", product=product)


# -------------------------------------------------------
# CREATE
# -------------------------------------------------------
@products_bp.route("/new", methods=["GET", "POST"])
@login_required
def create_product():
    if request.method == "POST":
        product = Product()
        error = _apply_fields(product, request.form)
        if error:
            return _invalid_form(product, error)

        written: list[str] = []
        try:
            product.mda_cert = _resolve_certificate(written)
            image_paths = _store_new_images(request.files, request.form, written)

            main_index = parse_optional_int(request.form.get("main_image_index")) or 0
            if not 0 <= main_index < len(image_paths):
                main_index = 0
            product.images = [
                ProductImage(image_path=path, is_main=(idx == main_index))
                for idx, path in enumerate(image_paths)
            ]
            product.product_image = image_paths[main_index] if image_paths else None

            db.session.add(product)
            _replace_associations(product, request.form)
            _replace_specifications(product, form_pairs(request.form, "spec_key", "spec_value"))

            db.session.commit()
        except (SQLAlchemyError, UploadError, OSError) as exc:
            db.session.rollback()
            for path in written:
                delete_asset(path)
            logger.exception("Failed to create product")
            flash(str(exc) if isinstance(exc, UploadError) else "Failed to create product.", "danger")
            return redirect(url_for("products.create_product"))

        logger.info("Product %s created (id=%s)", product.code, product.id)
        flash("Product created.", "success")
        return redirect(url_for("products.list_products"))

    return render_template("products/form.html", **_form_context())


# -------------------------------------------------------
# EDIT
# -------------------------------------------------------
@products_bp.route("/<int:product_id>/edit", methods=["GET", "POST"])
@login_required
def edit_product(product_id):
    product = Product.query.get_or_404(product_id)

    if request.method == "POST":
        old_cert = product.mda_cert

        error = _apply_fields(product, request.form)
        if error:
            return _invalid_form(product, error)

        written: list[str] = []
        removed_images: list[str] = []
        try:
            new_cert = _resolve_certificate(written)
            if new_cert is not None:
                product.mda_cert = new_cert
            elif request.form.get("remove_mda_cert"):
                product.mda_cert = None

            deleted_ids = set(parse_id_list(request.form.getlist("deleted_images")))
            for image in list(product.images):
                if image.id in deleted_ids:
                    removed_images.append(image.image_path)
                    product.images.remove(image)

            for path in _store_new_images(request.files, request.form, written):
                product.images.append(ProductImage(image_path=path, is_main=False))

            main_id = parse_optional_int(request.form.get("main_image_id"))
            main = next((img for img in product.images if img.id is not None and img.id == main_id), None)
            _set_main(product, main)

            _replace_associations(product, request.form)
            _replace_specifications(product, form_pairs(request.form, "spec_key", "spec_value"))

            db.session.commit()
        except (SQLAlchemyError, UploadError, OSError) as exc:
            db.session.rollback()
            for path in written:
                delete_asset(path)
            logger.exception("Failed to update product %s", product_id)
            flash(str(exc) if isinstance(exc, UploadError) else "Failed to update product.", "danger")
            return redirect(url_for("products.edit_product", product_id=product_id))

        discard_replaced(old_cert, product.mda_cert)
        for path in removed_images:
            delete_asset(path)

        flash("Product updated.", "success")
        return redirect(url_for("products.list_products"))

    return render_template("products/form.html", **_form_context(product))


# -------------------------------------------------------
# DELETE
# -------------------------------------------------------
@products_bp.route("/<int:product_id>/delete", methods=["POST"])
@login_required
def delete_product(product_id):
    product = Product.query.get_or_404(product_id)
    assets = [product.mda_cert, product.product_image] + [img.image_path for img in product.images]

    try:
        db.session.delete(product)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to delete product %s", product_id)
        flash("Failed to delete product.", "danger")
        return redirect(url_for("products.list_products"))

    for path in dict.fromkeys(p for p in assets if p):
        delete_asset(path)

    flash("Product deleted.", "success")
    return redirect(url_for("products.list_products"))
