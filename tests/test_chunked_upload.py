import io
from pathlib import Path

import pytest

from conftest import image_bytes
from medcatalog.chunked_upload import ChunkAssembler, InvalidChunk
from medcatalog.uploads import LOGO, PRODUCT_IMAGE, PayloadTooLarge


def _split(data: bytes, parts: int):
    size = -(-len(data) // parts)
    return [data[i * size:(i + 1) * size] for i in range(parts)]


@pytest.fixture
def assembler(app):
    return ChunkAssembler(app.config["CHUNK_STAGING_ROOT"])


def test_out_of_order_chunks_reassemble(app, assembler):
    chunks = _split(image_bytes(size=(300, 200)), 3)
    with app.app_context():
        assert not assembler.receive("up-1", 2, 3, "photo.png", chunks[2], "PRODUCT_IMAGE").complete
        assert not assembler.receive("up-1", 0, 3, "photo.png", chunks[0], "PRODUCT_IMAGE").complete
        result = assembler.receive("up-1", 1, 3, "photo.png", chunks[1], "PRODUCT_IMAGE")

    assert result.complete
    assert result.stored.path.startswith("/uploads/products/")
    assert result.stored.content_type == "image/webp"
    assert not (Path(app.config["CHUNK_STAGING_ROOT"]) / "up-1").exists()


def test_resent_chunk_does_not_complete_early(app, assembler):
    chunks = _split(image_bytes(), 3)
    with app.app_context():
        assembler.receive("up-2", 0, 3, "a.png", chunks[0], PRODUCT_IMAGE)
        assert not assembler.receive("up-2", 0, 3, "a.png", chunks[0], PRODUCT_IMAGE).complete
        assert not assembler.receive("up-2", 1, 3, "a.png", chunks[1], PRODUCT_IMAGE).complete
        assert assembler.receive("up-2", 2, 3, "a.png", chunks[2], PRODUCT_IMAGE).complete


def test_oversized_assembly_is_rejected_and_staging_removed(app, assembler):
    piece = b"\0" * (LOGO.max_bytes // 2 + 1)
    with app.app_context():
        assembler.receive("big", 0, 2, "huge.png", piece, LOGO)
        with pytest.raises(PayloadTooLarge):
            assembler.receive("big", 1, 2, "huge.png", piece, LOGO)
    assert not (Path(app.config["CHUNK_STAGING_ROOT"]) / "big").exists()
    assert not (Path(app.config["UPLOAD_ROOT"]) / "logos").exists()


@pytest.mark.parametrize(
    "upload_id, index, total, name",
    [
        ("../escape", 0, 1, "a.png"),
        ("ok", 3, 3, "a.png"),
        ("ok", -1, 3, "a.png"),
        ("ok", 0, 0, "a.png"),
        ("ok", None, 2, "a.png"),
        ("ok", 0, 1, ""),
    ],
)
def test_invalid_metadata(app, assembler, upload_id, index, total, name):
    with app.app_context():
        with pytest.raises(InvalidChunk):
            assembler.receive(upload_id, index, total, name, b"x", PRODUCT_IMAGE)


def _post_chunk(client, upload_id, index, total, data, kind="PRODUCT_IMAGE", name="photo.png"):
    return client.post(
        "/admin/upload-chunk",
        data={
            "chunk": (io.BytesIO(data), name),
            "uploadId": upload_id,
            "chunkIndex": str(index),
            "totalChunks": str(total),
            "fileName": name,
            "kind": kind,
        },
        content_type="multipart/form-data",
    )


def test_chunk_endpoint_requires_login(client):
    response = _post_chunk(client, "anon", 0, 1, image_bytes())
    assert response.status_code == 302
    assert "/auth/login" in response.headers["Location"]


def test_chunk_endpoint_round_trip(client, login, specialist):
    login(specialist)
    chunks = _split(image_bytes(size=(120, 90)), 2)

    first = _post_chunk(client, "web-1", 0, 2, chunks[0])
    assert first.status_code == 200
    assert first.get_json() == {"success": True, "message": "Chunk uploaded"}

    last = _post_chunk(client, "web-1", 1, 2, chunks[1])
    body = last.get_json()
    assert body["success"] is True
    assert body["filePath"].startswith("/uploads/products/")
    assert body["mimeType"] == "image/webp"

    served = client.get(body["filePath"])
    assert served.status_code == 200


def test_chunk_endpoint_errors(client, login, specialist):
    login(specialist)

    bad_index = _post_chunk(client, "web-2", 5, 2, b"x")
    assert bad_index.status_code == 400
    assert bad_index.get_json()["success"] is False

    bad_kind = _post_chunk(client, "web-3", 0, 1, b"x", kind="NOPE")
    assert bad_kind.status_code == 400

    piece = b"\0" * (LOGO.max_bytes + 1)
    too_big = _post_chunk(client, "web-4", 0, 1, piece, kind="LOGO")
    assert too_big.status_code == 413


def test_document_reassembly_is_byte_identical(app, assembler):
    original = b"%PDF-1.4\n" + bytes(range(256)) * 40
    chunks = _split(original, 4)
    with app.app_context():
        for index in (3, 1, 0):
            assert not assembler.receive("doc", index, 4, "cert.pdf", chunks[index], "CERTIFICATE").complete
        result = assembler.receive("doc", 2, 4, "cert.pdf", chunks[2], "CERTIFICATE")

    stored = Path(app.config["UPLOAD_ROOT"]) / result.stored.path[len("/uploads/"):]
    assert stored.read_bytes() == original
    assert result.stored.content_type == "application/pdf"
