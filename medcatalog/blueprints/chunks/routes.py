"""
Chunked upload endpoint.

POST /admin/upload-chunk (multipart):
- chunk        the bytes of this piece (file field)
- uploadId     client-generated id, [A-Za-z0-9_-]{1,64}
- chunkIndex   0-based index of this piece
- totalChunks  number of pieces
- fileName     original file name (extension picks image vs document path)
- kind         LOGO | PRODUCT_IMAGE | CERTIFICATE | MARKETING | PACKAGE_IMAGE

Responses are JSON, never pages:
- {"success": true, "message": "Chunk uploaded"} while pieces are missing
- {"success": true, "filePath": ..., "mimeType": ...} once the file is stored
- {"success": false, "error": ...} with 400 / 413 / 500

The returned filePath is then submitted with the entity form in a hidden field.
The session remembers it, and a form can attach it once.
CSRF token travels in the X-CSRFToken header.
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from ...chunked_upload import ChunkAssembler, InvalidChunk
from ...uploads import PayloadTooLarge, UploadError, remember_chunk_output
from ...utils import parse_optional_int

logger = logging.getLogger(__name__)

chunks_bp = Blueprint("chunks", __name__, url_prefix="/admin/upload-chunk")


def _error(message: str, status: int):
    return jsonify(success=False, error=message), status


@chunks_bp.route("", methods=["POST"])
@login_required
def upload_chunk():
    chunk = request.files.get("chunk")
    if chunk is None:
        return _error("No chunk uploaded.", 400)

    upload_id = (request.form.get("uploadId") or "").strip()
    chunk_index = parse_optional_int(request.form.get("chunkIndex"))
    total_chunks = parse_optional_int(request.form.get("totalChunks"))
    file_name = (request.form.get("fileName") or chunk.filename or "").strip()
    kind = (request.form.get("kind") or "").strip()
    mimetype = (request.form.get("mimeType") or "").strip() or None

    assembler = ChunkAssembler(current_app.config["CHUNK_STAGING_ROOT"])

    try:
        result = assembler.receive(
            upload_id,
            chunk_index,
            total_chunks,
            file_name,
            chunk.read(),
            kind,
            mimetype,
        )
    except InvalidChunk as exc:
        return _error(str(exc), 400)
    except PayloadTooLarge as exc:
        return _error(str(exc), 413)
    except UploadError as exc:
        return _error(str(exc), 400)
    except OSError:
        logger.exception("Chunk upload %s failed", upload_id)
        return _error("Upload failed.", 500)

    if not result.complete:
        return jsonify(success=True, message="Chunk uploaded")

    remember_chunk_output(result.stored.path)
    return jsonify(
        success=True,
        filePath=result.stored.path,
        mimeType=result.stored.content_type,
    )
