"""
medcatalog/blueprints/admin/routes.py

Admin dashboard: entity counts and the latest products.
"""

from __future__ import annotations

from flask import Blueprint, render_template
from flask_login import login_required

from ...models import (
    AffiliatedCompany,
    Event,
    MarketingMaterial,
    Package,
    Product,
    Supplier,
    Testimony,
)

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


@admin_bp.route("")
@login_required
def dashboard():
    counts = {
        "Products": Product.query.count(),
        "Suppliers": Supplier.query.count(),
        "Affiliated Companies": AffiliatedCompany.query.count(),
        "Packages": Package.query.count(),
        "Marketing Materials": MarketingMaterial.query.count(),
        "Events": Event.query.count(),
        "Testimonies": Testimony.query.count(),
    }
    recent_products = Product.query.order_by(Product.created_at.desc()).limit(5).all()

    return render_template(
        "admin/dashboard.html",
        counts=counts,
        recent_products=recent_products,
    )
