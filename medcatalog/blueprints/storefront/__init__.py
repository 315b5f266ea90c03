"""
Storefront blueprint package.

Exposes the unscoped public blueprint and the per-company (/<shortname>) blueprint.
"""

from .routes import company_bp, public_bp  # noqa: F401
