"""
Query building for product and package listings.

All filters are optional and combine with AND. Within a multi-valued filter
(selected categories, suppliers, types) membership is OR'd through IN.
Category selections are expanded to include every descendant category first,
so picking a parent also matches products tagged only with its children.

Tenant scoping: a company sees the products whose supplier is linked to it
through supplier_companies, and the packages containing at least one such
product.
"""

from __future__ import annotations

from sqlalchemy import or_

from .category_tree import expand_category_ids
from .models import Category, Package, PackageProduct, Product, Setting, Supplier


def _like(term: str) -> str:
    return f"%{term}%"


def search_products(query, search: str | None):
    search = (search or "").strip()
    if not search:
        return query
    pattern = _like(search)
    return query.filter(
        or_(
            Product.model.ilike(pattern),
            Product.code.ilike(pattern),
            Product.description.ilike(pattern),
            Product.mda_reg_no.ilike(pattern),
        )
    )


def filter_products(
    query=None,
    search: str | None = None,
    category_ids=None,
    supplier_ids=None,
    type_ids=None,
    all_categories=None,
):
    """
    Apply the product list filters to `query` (defaults to Product.query).

    `all_categories` is the full category list used for descendant expansion;
    it is loaded once when not supplied.
    """
    if query is None:
        query = Product.query

    query = search_products(query, search)

    if category_ids:
        if all_categories is None:
            all_categories = Category.query.all()
        expanded = expand_category_ids(all_categories, category_ids)
        query = query.filter(Product.categories.any(Category.id.in_(expanded)))

    if supplier_ids:
        query = query.filter(Product.supplier_id.in_(list(supplier_ids)))

    if type_ids:
        query = query.filter(Product.types.any(Setting.id.in_(list(type_ids))))

    return query


def company_products_query(company, query=None):
    if query is None:
        query = Product.query
    return query.filter(Product.supplier.has(Supplier.companies.any(id=company.id)))


def filter_packages(query=None, search: str | None = None):
    if query is None:
        query = Package.query
    search = (search or "").strip()
    if search:
        pattern = _like(search)
        query = query.filter(or_(Package.name.ilike(pattern), Package.description.ilike(pattern)))
    return query


def company_packages_query(company, query=None):
    if query is None:
        query = Package.query
    return query.filter(
        Package.members.any(
            PackageProduct.product.has(Product.supplier.has(Supplier.companies.any(id=company.id)))
        )
    )


def visible_package_products(package, company=None) -> list:
    """Member products in sort order, limited to the company's products when scoped."""
    products = package.products
    if company is None:
        return products
    return [
        p for p in products
        if p.supplier is not None and any(c.id == company.id for c in p.supplier.companies)
    ]
