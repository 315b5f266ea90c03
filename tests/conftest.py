"""
Shared fixtures: an app bound to a throwaway database and upload tree, plus
user factories and a login helper.

No application context stays pushed while the test client runs, so every
request gets a fresh `g` (tenant, logged-in user). Tests open
`app.app_context()` themselves for direct database work.
"""

from __future__ import annotations

import io
from types import SimpleNamespace

import pytest
from PIL import Image

from config import TestConfig
from medcatalog import create_app
from medcatalog.extensions import db
from medcatalog.models import (
    ROLE_ADMIN,
    ROLE_GRAPHIC_DESIGNER,
    ROLE_PRODUCT_SPECIALIST,
    ROLE_SUPER_ADMIN,
    User,
)

PASSWORD = "correct-horse-battery"


def image_bytes(size=(40, 30), color=(200, 30, 30), fmt="PNG") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def app(tmp_path):
    config = type(
        "PerTestConfig",
        (TestConfig,),
        {
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}",
            "UPLOAD_ROOT": str(tmp_path / "uploads"),
            "CHUNK_STAGING_ROOT": str(tmp_path / "chunks"),
        },
    )
    app = create_app(config)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(role=ROLE_PRODUCT_SPECIALIST, email=None):
        email = email or f"{role.lower().replace(' ', '-')}@example.com"
        with app.app_context():
            user = User(email=email, role=role)
            user.set_password(PASSWORD)
            db.session.add(user)
            db.session.commit()
            return SimpleNamespace(id=user.id, email=user.email, role=user.role)

    return _make


@pytest.fixture
def login(client):
    def _login(user):
        response = client.post("/auth/login", data={"email": user.email, "password": PASSWORD})
        assert response.status_code == 302
        return client

    return _login


@pytest.fixture
def specialist(make_user):
    return make_user(ROLE_PRODUCT_SPECIALIST)


@pytest.fixture
def designer(make_user):
    return make_user(ROLE_GRAPHIC_DESIGNER)


@pytest.fixture
def admin(make_user):
    return make_user(ROLE_ADMIN)


@pytest.fixture
def super_admin(make_user):
    return make_user(ROLE_SUPER_ADMIN, email="root@example.com")
