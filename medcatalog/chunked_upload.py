"""
Chunked upload reassembly.

The browser splits a large file into numbered chunks and posts them one by one
under a client-generated upload id. Each chunk lands in its own file inside a
per-upload staging directory:

    <CHUNK_STAGING_ROOT>/<upload_id>/chunk-<index>

An upload is complete when the set of received indices equals 0..total-1.
Re-sending an index overwrites the same file, so retries never inflate the
count. On completion the chunks are concatenated in index order (the size
ceiling is checked while concatenating), handed to `store_upload()`, and the
staging directory is removed whether that succeeds or not.
"""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path

from .uploads import AssetKind, PayloadTooLarge, StoredFile, UploadError, get_kind, store_upload

logger = logging.getLogger(__name__)

UPLOAD_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")
CHUNK_PREFIX = "chunk-"


class InvalidChunk(UploadError):
    """Malformed chunk metadata (bad id, index out of range, ...)."""


@dataclass
class ChunkResult:
    complete: bool
    stored: StoredFile | None = None


class ChunkAssembler:
    def __init__(self, staging_root):
        self.staging_root = Path(staging_root)

    def staging_dir(self, upload_id: str) -> Path:
        if not upload_id or not UPLOAD_ID_PATTERN.match(upload_id):
            raise InvalidChunk("Invalid upload id.")
        return self.staging_root / upload_id

    @staticmethod
    def received_indices(staging: Path) -> set[int]:
        indices = set()
        if not staging.is_dir():
            return indices
        for entry in staging.iterdir():
            name = entry.name
            if not name.startswith(CHUNK_PREFIX):
                continue
            try:
                indices.add(int(name[len(CHUNK_PREFIX):]))
            except ValueError:
                continue
        return indices

    def receive(
        self,
        upload_id: str,
        chunk_index: int,
        total_chunks: int,
        file_name: str,
        data: bytes,
        kind: AssetKind | str,
        mimetype: str | None = None,
    ) -> ChunkResult:
        """
        Store one chunk; reassemble and store the file once every index has arrived.

        Returns ChunkResult(complete=False) while chunks are missing and
        ChunkResult(complete=True, stored=...) after the final one.
        """
        if isinstance(kind, str):
            kind = get_kind(kind)

        if total_chunks is None or total_chunks < 1:
            raise InvalidChunk("totalChunks must be at least 1.")
        if chunk_index is None or not 0 <= chunk_index < total_chunks:
            raise InvalidChunk(f"chunkIndex {chunk_index} is out of range for {total_chunks} chunks.")
        if not file_name:
            raise InvalidChunk("fileName is required.")

        staging = self.staging_dir(upload_id)
        staging.mkdir(parents=True, exist_ok=True)
        (staging / f"{CHUNK_PREFIX}{chunk_index}").write_bytes(data)

        received = self.received_indices(staging)
        if received != set(range(total_chunks)):
            if len(received) > total_chunks:
                logger.warning(
                    "Upload %s has chunks beyond declared total %d: %s",
                    upload_id, total_chunks, sorted(received),
                )
            return ChunkResult(complete=False)

        try:
            buffer = bytearray()
            for index in range(total_chunks):
                buffer += (staging / f"{CHUNK_PREFIX}{index}").read_bytes()
                if len(buffer) > kind.max_bytes:
                    logger.info("Chunked upload %s exceeded %d bytes at chunk %d", upload_id, kind.max_bytes, index)
                    raise PayloadTooLarge(len(buffer), kind.max_bytes)

            stored = store_upload(bytes(buffer), file_name, kind, mimetype)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        logger.info("Reassembled upload %s (%d chunks) into %s", upload_id, total_chunks, stored.path)
        return ChunkResult(complete=True, stored=stored)
