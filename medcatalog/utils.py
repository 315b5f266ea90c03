"""
Form-parsing helpers shared across blueprints.

Forms are never trusted: every value coming from request.form / request.args
is parsed leniently here and validated by the route.
"""

from __future__ import annotations

from datetime import date, datetime
from urllib.parse import urlparse

from flask import flash, render_template

from .extensions import db
from .models import SETTING_TYPE_COUNTRY, SETTING_TYPE_PRODUCT_TYPE, Category, Setting


def parse_optional_int(value):
    """Parse an optional int from form data. Returns None if empty/invalid."""
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def parse_id_list(values) -> list[int]:
    """Parse a multi-select into unique ints, first occurrence wins, invalid entries dropped."""
    out: list[int] = []
    seen: set[int] = set()
    for raw in values or []:
        parsed = parse_optional_int(raw)
        if parsed is None or parsed in seen:
            continue
        seen.add(parsed)
        out.append(parsed)
    return out


def parse_optional_date(value) -> date | None:
    """Parse YYYY-MM-DD (HTML date input). Returns None if empty/invalid."""
    value = (value or "").strip()
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None


def form_text(form, key: str) -> str:
    return (form.get(key) or "").strip()


def form_pairs(form, first_key: str, second_key: str) -> list[tuple[str, str]]:
    """
    Zip two parallel list inputs (e.g. spec_key[] / spec_value[]) into pairs.

    Rows where the first field is blank are dropped.
    """
    firsts = form.getlist(first_key)
    seconds = form.getlist(second_key)
    pairs = []
    for idx, first in enumerate(firsts):
        first = (first or "").strip()
        second = (seconds[idx] if idx < len(seconds) else "") or ""
        if not first:
            continue
        pairs.append((first, second.strip()))
    return pairs


def safe_next_url(target: str | None) -> str | None:
    """Only allow same-site relative redirects."""
    if not target:
        return None
    parsed = urlparse(target)
    if parsed.scheme or parsed.netloc or not target.startswith("/") or target.startswith("//"):
        return None
    return target


def get_settings(setting_type: str):
    return Setting.query.filter_by(type=setting_type).order_by(Setting.value.asc()).all()


def get_countries():
    return get_settings(SETTING_TYPE_COUNTRY)


def get_product_types():
    return get_settings(SETTING_TYPE_PRODUCT_TYPE)


def get_all_categories():
    return Category.query.order_by(Category.name.asc()).all()


def render_invalid_form(template: str, message: str, **context):
    """
    Re-render a rejected form pre-filled with the submitted values, status 400.

    The entity in `context` carries the rejected input; every pending change
    is rolled back once the page is rendered.
    """
    flash(message, "danger")
    with db.session.no_autoflush:
        body = render_template(template, **context)
    db.session.rollback()
    return body, 400
