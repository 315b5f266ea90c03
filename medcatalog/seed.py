"""
medcatalog/seed.py

First-run data.

Rules:
- Safe to run multiple times (idempotent).
- No hard-coded credentials: the bootstrap Super Admin gets the configured
  BOOTSTRAP_ADMIN_PASSWORD or a random one that is logged exactly once.
"""

from __future__ import annotations

import logging
import secrets

from flask import current_app

from .extensions import db
from .models import ROLE_SUPER_ADMIN, SETTING_TYPE_COUNTRY, SETTING_TYPE_PRODUCT_TYPE, Setting, User

logger = logging.getLogger(__name__)


DEFAULT_SETTINGS = {
    SETTING_TYPE_COUNTRY: ["Malaysia", "Singapore", "Germany", "United States", "China", "Japan"],
    SETTING_TYPE_PRODUCT_TYPE: ["Equipment", "Consumable", "Accessory", "Software"],
}


def seed_default_settings() -> int:
    """
    Create default countries / product types that don't exist yet.

    Returns the number of rows added. Caller commits.
    """
    added = 0
    for setting_type, values in DEFAULT_SETTINGS.items():
        for value in values:
            exists = Setting.query.filter_by(type=setting_type, value=value).first()
            if exists:
                continue
            db.session.add(Setting(type=setting_type, value=value))
            added += 1

    db.session.flush()
    return added


def ensure_bootstrap_admin() -> User | None:
    """
    Create the first Super Admin if the users table is empty.

    Returns the created user, or None when users already exist. Caller commits.
    """
    if User.query.count() > 0:
        return None

    email = (current_app.config.get("BOOTSTRAP_ADMIN_EMAIL") or "admin@localhost").strip().lower()
    password = current_app.config.get("BOOTSTRAP_ADMIN_PASSWORD")
    generated = not password
    if generated:
        password = secrets.token_urlsafe(16)

    user = User(email=email, role=ROLE_SUPER_ADMIN)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()

    if generated:
        logger.warning(
            "Created bootstrap Super Admin %s with generated password: %s "
            "(change it after first login)",
            email,
            password,
        )
    else:
        logger.info("Created bootstrap Super Admin %s", email)

    return user
