from conftest import PASSWORD
from medcatalog.extensions import db
from medcatalog.models import ROLE_GRAPHIC_DESIGNER, ROLE_SUPER_ADMIN, User


def test_bootstrap_super_admin_is_created(app):
    with app.app_context():
        users = User.query.all()
        assert len(users) == 1
        assert users[0].email == "admin@localhost"
        assert users[0].role == ROLE_SUPER_ADMIN
        assert users[0].check_password("bootstrap-test-password")


def test_admin_pages_require_login(client):
    response = client.get("/admin/products")
    assert response.status_code == 302
    assert "/auth/login" in response.headers["Location"]


def test_login_failure_and_success(client, specialist):
    bad = client.post("/auth/login", data={"email": specialist.email, "password": "nope"})
    assert bad.status_code == 401
    assert b"Invalid email or password." in bad.data

    good = client.post("/auth/login", data={"email": specialist.email.upper(), "password": PASSWORD})
    assert good.status_code == 302
    assert good.headers["Location"].endswith("/admin")
    assert client.get("/admin").status_code == 200


def test_login_ignores_offsite_next(client, specialist):
    response = client.post(
        "/auth/login?next=https://evil.example.com/",
        data={"email": specialist.email, "password": PASSWORD},
    )
    assert response.headers["Location"].endswith("/admin")


def test_logout(client, login, specialist):
    login(specialist)
    client.post("/auth/logout")
    assert client.get("/admin").status_code == 302


def test_logout_link_cannot_end_session(client, login, specialist):
    login(specialist)
    assert client.get("/auth/logout").status_code == 405
    assert client.get("/admin").status_code == 200


def test_users_page_is_admin_only(client, login, specialist):
    login(specialist)
    assert client.get("/admin/users").status_code == 403


def test_admin_does_not_see_super_admins(client, login, admin, super_admin):
    login(admin)
    page = client.get("/admin/users")
    assert page.status_code == 200
    assert admin.email.encode() in page.data
    assert super_admin.email.encode() not in page.data


def test_admin_cannot_delete_super_admin(app, client, login, admin, super_admin):
    login(admin)
    response = client.post(f"/admin/users/{super_admin.id}/delete")
    assert response.status_code == 403
    with app.app_context():
        assert db.session.get(User, super_admin.id) is not None


def test_admin_cannot_create_super_admin(app, client, login, admin):
    login(admin)
    response = client.post(
        "/admin/users/new",
        data={"email": "boss@example.com", "password": "pw", "role": ROLE_SUPER_ADMIN},
    )
    assert response.status_code == 403
    with app.app_context():
        assert User.query.filter_by(email="boss@example.com").first() is None


def test_admin_creates_and_deletes_user(app, client, login, admin):
    login(admin)
    response = client.post(
        "/admin/users/new",
        data={"email": "New.Designer@Example.com", "password": "pw", "role": ROLE_GRAPHIC_DESIGNER},
    )
    assert response.status_code == 302

    with app.app_context():
        created = User.query.filter_by(email="new.designer@example.com").one()
        created_id = created.id
        assert created.role == ROLE_GRAPHIC_DESIGNER

    duplicate = client.post(
        "/admin/users/new",
        data={"email": "new.designer@example.com", "password": "pw", "role": ROLE_GRAPHIC_DESIGNER},
        follow_redirects=True,
    )
    assert b"already exists" in duplicate.data

    assert client.post(f"/admin/users/{created_id}/delete").status_code == 302
    with app.app_context():
        assert db.session.get(User, created_id) is None


def test_cannot_delete_self(app, client, login, admin):
    login(admin)
    response = client.post(f"/admin/users/{admin.id}/delete", follow_redirects=True)
    assert b"You cannot delete your own account." in response.data
    with app.app_context():
        assert db.session.get(User, admin.id) is not None


def test_super_admin_can_promote(app, client, login, super_admin, admin):
    login(super_admin)
    response = client.post(
        f"/admin/users/{admin.id}/edit",
        data={"email": admin.email, "role": ROLE_SUPER_ADMIN, "password": ""},
    )
    assert response.status_code == 302
    with app.app_context():
        promoted = db.session.get(User, admin.id)
        assert promoted.role == ROLE_SUPER_ADMIN
        assert promoted.check_password(PASSWORD)


def test_nav_hides_users_from_non_admins(client, login, designer):
    login(designer)
    page = client.get("/admin")
    assert b"/admin/users" not in page.data
