"""
medcatalog/__init__.py

Flask application factory for the Product Catalog.

- Admin console under /admin (session-gated, role-aware).
- Public storefront at /home, /products, ... with default branding, and the
  same pages per affiliated company under /<shortname>/...
- Uploaded assets served from /uploads/<subdir>/<file>.

Routing:
- Fixed routes (/admin, /auth, /uploads, /static, /home, ...) are static
  segments and always beat the /<shortname> tenant routes. Company shortnames
  are validated against the same reserved words, so no company can shadow them.

Navigation:
- Sidebar items are filtered by role for visibility, BUT all permissions are
  enforced server-side.
"""

from __future__ import annotations

import logging

import click
from flask import Flask, g, jsonify, redirect, render_template, request, send_from_directory, url_for
from flask_login import current_user
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import RequestEntityTooLarge

from .extensions import csrf, db, login_manager, migrate
from .models import ROLE_ADMIN, ROLE_GRAPHIC_DESIGNER, ROLES, User

logger = logging.getLogger(__name__)


# -------------------------------------------------------------------
# NAVIGATION STRUCTURE (UI visibility only; security enforced in routes)
# -------------------------------------------------------------------

NAV_SECTIONS = [
    {
        "key": "catalog",
        "label": "Catalog",
        "items": [
            {"label": "Dashboard", "endpoint": "admin.dashboard", "min_role": ROLE_GRAPHIC_DESIGNER},
            {"label": "Products", "endpoint": "products.list_products", "min_role": ROLE_GRAPHIC_DESIGNER},
            {"label": "Packages", "endpoint": "packages.list_packages", "min_role": ROLE_GRAPHIC_DESIGNER},
            {"label": "Marketing", "endpoint": "marketing.index", "min_role": ROLE_GRAPHIC_DESIGNER},
        ],
    },
    {
        "key": "partners",
        "label": "Partners",
        "items": [
            {"label": "Suppliers", "endpoint": "suppliers.list_suppliers", "min_role": ROLE_GRAPHIC_DESIGNER},
            {"label": "Affiliated Companies", "endpoint": "companies.list_companies", "min_role": ROLE_GRAPHIC_DESIGNER},
        ],
    },
    {
        "key": "management",
        "label": "Management",
        "items": [
            {"label": "Settings", "endpoint": "settings.list_settings", "min_role": ROLE_GRAPHIC_DESIGNER},
            {"label": "Categories", "endpoint": "settings.list_categories", "min_role": ROLE_GRAPHIC_DESIGNER},
            {"label": "Bulk Import", "endpoint": "settings.bulk_import", "min_role": ROLE_GRAPHIC_DESIGNER},
            {"label": "Users", "endpoint": "users.list_users", "min_role": ROLE_ADMIN},
        ],
    },
]


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("medcatalog").setLevel(level)
    app.logger.setLevel(level)


@event.listens_for(Engine, "connect")
def _sqlite_foreign_keys(dbapi_connection, connection_record):
    """Turn on FK enforcement for SQLite so ON DELETE CASCADE / SET NULL apply."""
    module = type(dbapi_connection).__module__
    if not module.startswith("sqlite3"):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def init_database(app: Flask) -> None:
    """
    Create missing tables and the first-run Super Admin.

    Any failure here is fatal: the app must not serve traffic on a half-built schema.
    """
    from .seed import ensure_bootstrap_admin

    with app.app_context():
        try:
            db.create_all()
            ensure_bootstrap_admin()
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.critical("Database initialization failed", exc_info=True)
            raise SystemExit(1)


def create_app(config_object="config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    _configure_logging(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    login_manager.init_app(app)
    login_manager.login_view = "auth.login"
    login_manager.login_message_category = "info"

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login."""
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.admin import admin_bp
    from .blueprints.users import users_bp
    from .blueprints.settings import settings_bp
    from .blueprints.companies import companies_bp
    from .blueprints.suppliers import suppliers_bp
    from .blueprints.products import products_bp
    from .blueprints.marketing import marketing_bp
    from .blueprints.packages import packages_bp
    from .blueprints.chunks import chunks_bp
    from .blueprints.storefront import company_bp, public_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(companies_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(marketing_bp)
    app.register_blueprint(packages_bp)
    app.register_blueprint(chunks_bp)
    app.register_blueprint(public_bp)
    # tenant routes last; static prefixes above win regardless
    app.register_blueprint(company_bp)

    # ----------------------------------------------------------------------
    # Context globals (navigation, branding)
    # ----------------------------------------------------------------------
    @app.context_processor
    def inject_globals():
        """
        Inject navigation filtered by role and the current storefront branding.

        SECURITY NOTE:
        - This only filters visibility. Routes enforce permissions.
        """
        visible_sections = []
        if current_user.is_authenticated:
            for section in NAV_SECTIONS:
                items = [i for i in section["items"] if current_user.has_role(i["min_role"])]
                if items:
                    visible_sections.append({"key": section["key"], "label": section["label"], "items": items})

        company = g.get("company")
        return {
            "config": app.config,
            "nav_sections": visible_sections,
            "roles": ROLES,
            "current_company": company,
            "brand_name": company.name if company else app.config["PUBLIC_BRAND_NAME"],
            "brand_logo": (company.logo if company and company.logo else app.config["PUBLIC_BRAND_LOGO"]),
        }

    # ----------------------------------------------------------------------
    # Error pages
    # ----------------------------------------------------------------------
    @app.errorhandler(404)
    def not_found(error):
        return render_template("errors/404.html"), 404

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(error):
        if request.path.startswith("/admin/upload-chunk"):
            return jsonify(success=False, error="Request body is too large."), 413
        return render_template("errors/413.html"), 413

    @app.errorhandler(500)
    def server_error(error):
        db.session.rollback()
        return render_template("errors/500.html"), 500

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("seed-settings")
    def seed_settings_command():
        """Seed default countries and product types."""
        from .seed import seed_default_settings

        added = seed_default_settings()
        db.session.commit()
        click.echo(f"Default settings seeded ({added} added).")

    @app.cli.command("create-user")
    @click.option("--email", prompt=True)
    @click.option("--role", type=click.Choice(ROLES), default=ROLES[-1], prompt=True, show_default=True)
    @click.password_option()
    def create_user_command(email, role, password):
        """Create an admin console user."""
        email = email.strip().lower()
        if User.query.filter_by(email=email).first():
            raise click.ClickException(f"User {email} already exists.")
        user = User(email=email, role=role)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        click.echo(f"Created {role} {email}.")

    # ----------------------------------------------------------------------
    # Home / uploads
    # ----------------------------------------------------------------------
    @app.route("/")
    def index():
        """Root: the default storefront."""
        return redirect(url_for("public.home"))

    @app.route("/uploads/<path:filename>")
    def uploaded_file(filename):
        return send_from_directory(app.config["UPLOAD_ROOT"], filename)

    init_database(app)

    return app
