"""
Upload / transcode utility.

Every binary asset the catalog stores goes through `store_upload()`:

- Size is checked against the asset kind's ceiling before anything is written.
- Raster images (by extension or an `image/` mimetype) are decoded with Pillow,
  shrunk to fit the kind's bounding box (never enlarged) and re-encoded as WebP.
- Documents (PDF, office files) are written unchanged, keeping their extension.
- Filenames are `<prefix>-<ms timestamp>-<9 random digits>.<ext>` so concurrent
  uploads into the same directory never collide.

Stored paths are root-relative strings ("/uploads/<subdir>/<file>") and are what
the models persist. `delete_asset()` maps them back onto UPLOAD_ROOT.
"""

from __future__ import annotations

import io
import logging
import mimetypes
import os
import secrets
import time
from dataclasses import dataclass
from pathlib import Path

from flask import current_app, session
from PIL import Image, UnidentifiedImageError

from .models import asset_in_use

logger = logging.getLogger(__name__)

MiB = 1024 * 1024

WEBP_QUALITY = 80

IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif", ".bmp", ".tiff", ".tif"}
DOCUMENT_EXTENSIONS = {".pdf", ".ppt", ".pptx", ".xls", ".xlsx", ".doc", ".docx"}

URL_PREFIX = "/uploads/"

# chunk-assembled files this session may still attach to a form
CHUNK_SESSION_KEY = "chunk_uploads"
MAX_PENDING_CHUNK_UPLOADS = 20


# ---------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------
class UploadError(Exception):
    """Base class for upload failures shown to the admin user."""


class PayloadTooLarge(UploadError):
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"File is too large ({size} bytes). Maximum allowed is {limit // MiB} MB.")


class UnsupportedFileType(UploadError):
    pass


class TranscodeError(UploadError):
    pass


# ---------------------------------------------------------------------
# Asset kinds
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class AssetKind:
    name: str
    subdir: str
    prefix: str
    max_bytes: int
    max_width: int
    max_height: int
    # extensions accepted as verbatim documents; empty means images only
    document_extensions: frozenset = frozenset()


LOGO = AssetKind("LOGO", "logos", "logo", 2 * MiB, 1000, 1000)
PRODUCT_IMAGE = AssetKind("PRODUCT_IMAGE", "products", "prod", 5 * MiB, 800, 800)
CERTIFICATE = AssetKind(
    "CERTIFICATE", "products", "cert", 5 * MiB, 1200, 1200, frozenset({".pdf"})
)
MARKETING = AssetKind(
    "MARKETING", "marketing", "material", 5 * MiB, 1920, 1080, frozenset(DOCUMENT_EXTENSIONS)
)
PACKAGE_IMAGE = AssetKind("PACKAGE_IMAGE", "packages", "package", 5 * MiB, 1200, 1200)

ASSET_KINDS = {kind.name: kind for kind in (LOGO, PRODUCT_IMAGE, CERTIFICATE, MARKETING, PACKAGE_IMAGE)}


def get_kind(name: str) -> AssetKind:
    try:
        return ASSET_KINDS[(name or "").upper()]
    except KeyError:
        raise UnsupportedFileType(f"Unknown upload kind: {name!r}") from None


@dataclass(frozen=True)
class StoredFile:
    path: str
    content_type: str


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _extension(name: str) -> str:
    return os.path.splitext(name or "")[1].lower()


def is_image(original_name: str, mimetype: str | None = None) -> bool:
    if _extension(original_name) in IMAGE_EXTENSIONS:
        return True
    return bool(mimetype and mimetype.lower().startswith("image/"))


def unique_filename(prefix: str, extension: str) -> str:
    millis = int(time.time() * 1000)
    suffix = secrets.randbelow(10**9)
    return f"{prefix}-{millis}-{suffix:09d}{extension}"


def _upload_root() -> Path:
    return Path(current_app.config["UPLOAD_ROOT"])


def _target_dir(kind: AssetKind) -> Path:
    target = _upload_root() / kind.subdir
    target.mkdir(parents=True, exist_ok=True)
    return target


def local_path(stored_path: str) -> Path | None:
    """Map a stored "/uploads/..." path onto the filesystem, or None if it lies outside UPLOAD_ROOT."""
    if not stored_path or not stored_path.startswith(URL_PREFIX):
        return None
    root = _upload_root().resolve()
    candidate = (root / stored_path[len(URL_PREFIX):]).resolve()
    if root != candidate and root not in candidate.parents:
        return None
    return candidate


def transcode_image(data: bytes, max_width: int, max_height: int) -> bytes:
    """Shrink `data` to fit the box (aspect preserved, no upscaling) and encode it as WebP."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA")
            img.thumbnail((max_width, max_height), Image.LANCZOS)

            out = io.BytesIO()
            img.save(out, format="WEBP", quality=WEBP_QUALITY)
            return out.getvalue()
    except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.warning("Image transcode failed: %s", exc)
        raise TranscodeError("The uploaded image could not be processed.") from exc


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------
def store_upload(
    data: bytes,
    original_name: str,
    kind: AssetKind | str,
    mimetype: str | None = None,
) -> StoredFile:
    """
    Persist one uploaded file and return its stored path and content type.

    Raises PayloadTooLarge, UnsupportedFileType or TranscodeError; nothing is
    written when any of them is raised.
    """
    if isinstance(kind, str):
        kind = get_kind(kind)

    size = len(data)
    if size > kind.max_bytes:
        logger.info("Rejected %s upload %r: %d bytes over %d", kind.name, original_name, size, kind.max_bytes)
        raise PayloadTooLarge(size, kind.max_bytes)
    if size == 0:
        raise UnsupportedFileType("The uploaded file is empty.")

    ext = _extension(original_name)

    if is_image(original_name, mimetype):
        payload = transcode_image(data, kind.max_width, kind.max_height)
        filename = unique_filename(kind.prefix, ".webp")
        content_type = "image/webp"
    elif ext in kind.document_extensions:
        payload = data
        filename = unique_filename(kind.prefix, ext)
        content_type = mimetype or mimetypes.guess_type(original_name)[0] or "application/octet-stream"
    else:
        raise UnsupportedFileType(f"File type not allowed for {kind.name.lower().replace('_', ' ')}: {original_name}")

    target = _target_dir(kind) / filename
    target.write_bytes(payload)

    stored = f"{URL_PREFIX}{kind.subdir}/{filename}"
    logger.debug("Stored %s upload %r as %s", kind.name, original_name, stored)
    return StoredFile(path=stored, content_type=content_type)


def store_file_storage(file_storage, kind: AssetKind | str) -> StoredFile | None:
    """Store a werkzeug FileStorage from request.files. Returns None for an empty file input."""
    if file_storage is None or not file_storage.filename:
        return None
    return store_upload(file_storage.read(), file_storage.filename, kind, file_storage.mimetype)


def accept_stored_path(stored_path: str | None, kind: AssetKind | str) -> str | None:
    """
    Validate a path returned earlier by the chunk endpoint and posted back with a form.

    Only existing files inside the kind's own subdirectory that no row
    references yet are accepted.
    """
    if isinstance(kind, str):
        kind = get_kind(kind)
    stored_path = (stored_path or "").strip()
    if not stored_path.startswith(f"{URL_PREFIX}{kind.subdir}/"):
        return None
    path = local_path(stored_path)
    if path is None or not path.is_file():
        return None
    if asset_in_use(stored_path):
        logger.warning("Rejected posted path already referenced by another row: %s", stored_path)
        return None
    return stored_path


def remember_chunk_output(stored_path: str) -> None:
    """Record a file assembled by the chunk endpoint so this session can attach it once."""
    pending = [p for p in session.get(CHUNK_SESSION_KEY, []) if p != stored_path]
    pending.append(stored_path)
    session[CHUNK_SESSION_KEY] = pending[-MAX_PENDING_CHUNK_UPLOADS:]


def claim_stored_path(stored_path: str | None, kind: AssetKind | str) -> str | None:
    """
    Take ownership of a chunk-assembled path posted back with a form.

    The path must have been handed to this session by the chunk endpoint and
    pass `accept_stored_path`. A claimed path is forgotten, so it can be
    attached to one row only; the claiming request owns the file from then on.
    """
    stored_path = (stored_path or "").strip()
    pending = session.get(CHUNK_SESSION_KEY, [])
    if not stored_path or stored_path not in pending:
        return None
    accepted = accept_stored_path(stored_path, kind)
    if accepted is None:
        return None
    session[CHUNK_SESSION_KEY] = [p for p in pending if p != stored_path]
    return accepted


def resolve_upload(files, form, field: str, kind: AssetKind | str) -> StoredFile | None:
    """
    Return the asset submitted for `field`, either as a direct file input or as
    `<field>_path` pointing at a chunk-assembled file. Direct files win.

    Either way the file is new to this request; callers delete it on rollback.
    """
    stored = store_file_storage(files.get(field), kind)
    if stored is not None:
        return stored
    path = claim_stored_path(form.get(f"{field}_path"), kind)
    if path is None:
        return None
    content_type = form.get(f"{field}_type") or mimetypes.guess_type(path)[0] or "application/octet-stream"
    return StoredFile(path=path, content_type=content_type)


def delete_asset(stored_path: str | None) -> None:
    """Best-effort delete of a stored file. Failures are logged and swallowed."""
    if not stored_path:
        return
    path = local_path(stored_path)
    if path is None:
        logger.warning("Refusing to delete asset outside upload root: %s", stored_path)
        return
    try:
        path.unlink()
    except FileNotFoundError:
        logger.warning("Asset already missing: %s", stored_path)
    except OSError:
        logger.warning("Could not delete asset %s", stored_path, exc_info=True)


def discard_replaced(old_path: str | None, new_path: str | None) -> None:
    """Delete `old_path` once `new_path` is durably stored, unless both name the same file."""
    if old_path and old_path != new_path:
        delete_asset(old_path)
