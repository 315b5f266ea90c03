"""
Companies blueprint package.

This file just exposes the Blueprint object to be imported in medcatalog.__init__.
The actual routes and logic are in routes.py.
"""

from .routes import companies_bp  # noqa: F401
