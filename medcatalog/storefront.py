"""
Page-context builders for the public storefront.

Kept separate from the blueprint so the product-detail enrichment
(material buckets, featured brochure, video embed) can be tested without HTTP.
"""

from __future__ import annotations

import re

# company shortnames double as the first URL segment
SHORTNAME_PATTERN = re.compile(r"^[a-z0-9](?:[a-z0-9_-]{0,98}[a-z0-9])?$")
RESERVED_SHORTNAMES = frozenset({
    "admin",
    "auth",
    "uploads",
    "static",
    "home",
    "products",
    "product",
    "packages",
    "package",
    "watch",
})

MATERIAL_BUCKETS = {
    "FLIERS": "flyers",
    "BACK-DROP": "backdrops",
    "POSTER": "posters",
    "ROLL-UP": "rollups",
    "BROCHURE": "brochures",
}

_YOUTUBE_WATCH = re.compile(r"(?:https?://)?(?:www\.|m\.)?youtube\.com/watch\?(?:.*&)?v=([\w-]+)")
_YOUTUBE_SHORT = re.compile(r"(?:https?://)?youtu\.be/([\w-]+)")
_VIMEO = re.compile(r"(?:https?://)?(?:www\.)?vimeo\.com/(\d+)")


def normalize_shortname(value: str | None) -> str:
    return (value or "").strip().lower()


def shortname_error(shortname: str) -> str | None:
    """Return a message if `shortname` can't be used as a storefront URL segment."""
    if not shortname:
        return "Shortname is required."
    if not SHORTNAME_PATTERN.match(shortname):
        return "Shortname may contain lowercase letters, digits, '-' and '_' only."
    if shortname in RESERVED_SHORTNAMES:
        return f"'{shortname}' is reserved and cannot be used as a shortname."
    return None


def categorize_materials(materials, company=None) -> dict:
    """
    Bucket a product's marketing materials for display.

    Brochures scoped to another company are dropped. `featured_brochure` is the
    newest brochure scoped to `company`, else the newest unscoped one.
    """
    buckets = {name: [] for name in MATERIAL_BUCKETS.values()}
    buckets["others"] = []

    company_id = company.id if company is not None else None

    for material in materials:
        if material.category == "BROCHURE" and material.company_id not in (None, company_id):
            continue
        buckets[MATERIAL_BUCKETS.get(material.category, "others")].append(material)

    def _newest(items):
        return max(items, key=lambda m: (m.created_at is not None, m.created_at, m.id), default=None)

    brochures = buckets["brochures"]
    own = [m for m in brochures if company_id is not None and m.company_id == company_id]
    generic = [m for m in brochures if m.company_id is None]
    buckets["featured_brochure"] = _newest(own) or _newest(generic)
    return buckets


def embed_url(url: str | None) -> str | None:
    """Turn a YouTube/Vimeo page link into its embeddable player URL."""
    if not url:
        return None
    match = _YOUTUBE_WATCH.match(url)
    if match:
        return f"https://www.youtube.com/embed/{match.group(1)}"
    match = _YOUTUBE_SHORT.match(url)
    if match:
        return f"https://www.youtube.com/embed/{match.group(1)}"
    match = _VIMEO.match(url)
    if match:
        return f"https://player.vimeo.com/video/{match.group(1)}"
    return url


def is_pdf(path: str | None) -> bool:
    return bool(path) and path.lower().endswith(".pdf")

