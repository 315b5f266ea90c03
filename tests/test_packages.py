import io

import pytest

from conftest import image_bytes
from medcatalog.extensions import db
from medcatalog.models import Package, PackageProduct, PackageSpec, Product


@pytest.fixture
def products(app):
    with app.app_context():
        rows = [Product(code=f"P-{n}", model=f"Model {n}") for n in range(1, 4)]
        db.session.add_all(rows)
        db.session.commit()
        return [p.id for p in rows]


def _package_form(product_ids, **overrides):
    data = {
        "name": "Clinic starter",
        "description": "Everything a new clinic needs",
        "bundle_label": "Best value",
        "product_ids": [str(pid) for pid in product_ids],
        "spec_icons": ["fa-solid fa-truck", "", "fa-solid fa-star"],
        "spec_texts": ["Free delivery", "Training included", ""],
    }
    data.update(overrides)
    return data


def test_create_package_keeps_member_and_spec_order(app, client, login, specialist, products):
    login(specialist)
    ordered = [products[2], products[0], products[2]]
    data = _package_form(ordered)
    data["main_image"] = (io.BytesIO(image_bytes(size=(1500, 1500))), "bundle.png")

    response = client.post("/admin/packages/new", data=data, content_type="multipart/form-data")
    assert response.status_code == 302

    with app.app_context():
        package = Package.query.one()
        assert [p.id for p in package.products] == [products[2], products[0]]
        assert [(s.icon, s.spec_text) for s in package.specs] == [
            ("fa-solid fa-truck", "Free delivery"),
            ("fa-solid fa-circle", "Training included"),
        ]
        assert package.main_image.startswith("/uploads/packages/package-")


def test_edit_replaces_members_including_same_products(app, client, login, specialist, products):
    login(specialist)
    client.post("/admin/packages/new", data=_package_form(products[:2]))
    with app.app_context():
        package_id = Package.query.one().id

    response = client.post(
        f"/admin/packages/{package_id}/edit",
        data=_package_form([products[1], products[0], products[2]], spec_texts=["Only one"], spec_icons=[""]),
    )
    assert response.status_code == 302

    with app.app_context():
        package = db.session.get(Package, package_id)
        assert [p.id for p in package.products] == [products[1], products[0], products[2]]
        assert [m.sort_order for m in package.members] == [0, 1, 2]
        assert [s.spec_text for s in package.specs] == ["Only one"]
        assert PackageProduct.query.count() == 3
        assert PackageSpec.query.count() == 1


def test_name_is_required(app, client, login, specialist, products):
    login(specialist)
    response = client.post("/admin/packages/new", data=_package_form(products, name=""))
    assert response.status_code == 400
    assert b"Everything a new clinic needs" in response.data
    assert b'value="Free delivery"' in response.data
    with app.app_context():
        assert Package.query.count() == 0


def test_delete_requires_admin(app, client, login, specialist, admin, products):
    login(specialist)
    client.post("/admin/packages/new", data=_package_form(products))
    with app.app_context():
        package_id = Package.query.one().id

    assert client.post(f"/admin/packages/{package_id}/delete").status_code == 403

    client.post("/auth/logout")
    login(admin)
    assert client.post(f"/admin/packages/{package_id}/delete").status_code == 302
    with app.app_context():
        assert Package.query.count() == 0
        assert PackageProduct.query.count() == 0
        assert Product.query.count() == 3


def test_deleting_product_drops_it_from_packages(app, client, login, specialist, products):
    login(specialist)
    client.post("/admin/packages/new", data=_package_form(products))
    client.post(f"/admin/products/{products[0]}/delete")

    with app.app_context():
        package = Package.query.one()
        assert [p.id for p in package.products] == products[1:]


def test_package_search(client, login, specialist, products):
    login(specialist)
    client.post("/admin/packages/new", data=_package_form(products))
    client.post("/admin/packages/new", data=_package_form(products, name="Surgery suite", description=""))

    page = client.get("/admin/packages?search=clinic")
    assert b"Clinic starter" in page.data
    assert b"Surgery suite" not in page.data


def test_rejected_edit_keeps_input_and_saves_nothing(app, client, login, specialist, products):
    login(specialist)
    client.post("/admin/packages/new", data=_package_form(products[:2]))
    with app.app_context():
        package_id = Package.query.one().id

    response = client.post(
        f"/admin/packages/{package_id}/edit",
        data=_package_form([products[2]], name="", bundle_label="Clearance", spec_texts=["Changed"], spec_icons=[""]),
    )
    assert response.status_code == 400
    assert b"Package name is required." in response.data
    assert b'value="Clearance"' in response.data
    assert b'value="Changed"' in response.data

    with app.app_context():
        package = db.session.get(Package, package_id)
        assert package.name == "Clinic starter"
        assert package.bundle_label == "Best value"
        assert [p.id for p in package.products] == products[:2]
        assert [s.spec_text for s in package.specs] == ["Free delivery", "Training included"]
