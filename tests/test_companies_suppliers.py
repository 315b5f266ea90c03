import io
from pathlib import Path

from conftest import image_bytes
from medcatalog.extensions import db
from medcatalog.models import SETTING_TYPE_COUNTRY, AffiliatedCompany, Product, Setting, Supplier


def _company_form(**overrides):
    data = {
        "name": "Acme Health",
        "shortname": "Acme",
        "reg_no": "REG-1",
        "reg_date": "2020-02-29",
        "email": "hello@acme.example",
    }
    data.update(overrides)
    return data


def test_create_company_normalizes_shortname_and_stores_logo(app, client, login, specialist):
    login(specialist)
    data = _company_form()
    data["logo"] = (io.BytesIO(image_bytes(size=(2000, 500))), "logo.png")
    response = client.post("/admin/companies/new", data=data, content_type="multipart/form-data")
    assert response.status_code == 302

    with app.app_context():
        company = AffiliatedCompany.query.one()
        assert company.shortname == "acme"
        assert company.reg_date.isoformat() == "2020-02-29"
        assert company.logo.startswith("/uploads/logos/logo-")
        assert company.logo.endswith(".webp")
        logo_path = company.logo

    assert (Path(app.config["UPLOAD_ROOT"]) / logo_path[len("/uploads/"):]).is_file()
    assert client.get("/acme/home").status_code == 200


def test_reserved_and_duplicate_shortnames_rejected(app, client, login, specialist):
    login(specialist)
    reserved = client.post("/admin/companies/new", data=_company_form(shortname="admin"))
    assert reserved.status_code == 400
    assert b"reserved" in reserved.data

    assert client.post("/admin/companies/new", data=_company_form()).status_code == 302
    duplicate = client.post("/admin/companies/new", data=_company_form(name="Other"))
    assert duplicate.status_code == 400
    assert b"already taken" in duplicate.data

    with app.app_context():
        assert AffiliatedCompany.query.count() == 1


def test_oversized_logo_is_reported(app, client, login, specialist):
    login(specialist)
    data = _company_form()
    data["logo"] = (io.BytesIO(b"\0" * (2 * 1024 * 1024 + 1)), "logo.png")
    response = client.post(
        "/admin/companies/new", data=data, content_type="multipart/form-data", follow_redirects=True
    )
    assert b"File is too large" in response.data
    with app.app_context():
        assert AffiliatedCompany.query.count() == 0


def test_replacing_logo_removes_old_file(app, client, login, specialist):
    login(specialist)
    data = _company_form()
    data["logo"] = (io.BytesIO(image_bytes()), "first.png")
    client.post("/admin/companies/new", data=data, content_type="multipart/form-data")
    with app.app_context():
        company = AffiliatedCompany.query.one()
        company_id, old_logo = company.id, company.logo

    data = _company_form()
    data["logo"] = (io.BytesIO(image_bytes(color=(0, 0, 0))), "second.png")
    client.post(f"/admin/companies/{company_id}/edit", data=data, content_type="multipart/form-data")

    with app.app_context():
        new_logo = db.session.get(AffiliatedCompany, company_id).logo
    assert new_logo != old_logo
    root = Path(app.config["UPLOAD_ROOT"])
    assert not (root / old_logo[len("/uploads/"):]).exists()
    assert (root / new_logo[len("/uploads/"):]).exists()


def test_supplier_country_and_companies(app, client, login, specialist):
    with app.app_context():
        malaysia = Setting(type=SETTING_TYPE_COUNTRY, value="Malaysia")
        acme = AffiliatedCompany(name="Acme", shortname="acme")
        beta = AffiliatedCompany(name="Beta", shortname="beta")
        db.session.add_all([malaysia, acme, beta])
        db.session.commit()
        ids = {"malaysia": malaysia.id, "acme": acme.id, "beta": beta.id}

    login(specialist)
    response = client.post(
        "/admin/suppliers/new",
        data={"name": "MedSupply", "country_id": str(ids["malaysia"]), "company_ids": [str(ids["acme"]), str(ids["beta"])]},
    )
    assert response.status_code == 302

    with app.app_context():
        supplier = Supplier.query.one()
        assert supplier.country_name == "Malaysia"
        assert sorted(c.shortname for c in supplier.companies) == ["acme", "beta"]
        supplier_id = supplier.id

    client.post(
        f"/admin/suppliers/{supplier_id}/edit",
        data={"name": "MedSupply", "country_id": "", "company_ids": [str(ids["beta"])]},
    )
    with app.app_context():
        supplier = db.session.get(Supplier, supplier_id)
        assert supplier.country_id is None
        assert [c.shortname for c in supplier.companies] == ["beta"]

    listing = client.get("/admin/suppliers?search=medsup")
    assert b"MedSupply" in listing.data


def test_supplier_rejects_non_country_setting(app, client, login, specialist):
    with app.app_context():
        not_a_country = Setting(type="product_type", value="Equipment")
        db.session.add(not_a_country)
        db.session.commit()
        bogus_id = not_a_country.id

    login(specialist)
    response = client.post(
        "/admin/suppliers/new", data={"name": "X", "country_id": str(bogus_id)}, follow_redirects=True
    )
    assert b"Selected country does not exist." in response.data
    with app.app_context():
        assert Supplier.query.count() == 0


def test_deleting_supplier_keeps_products(app, client, login, specialist):
    with app.app_context():
        supplier = Supplier(name="Gone Soon")
        product = Product(code="KEEP-1", supplier=supplier)
        db.session.add_all([supplier, product])
        db.session.commit()
        supplier_id, product_id = supplier.id, product.id

    login(specialist)
    assert client.post(f"/admin/suppliers/{supplier_id}/delete").status_code == 302

    with app.app_context():
        assert db.session.get(Supplier, supplier_id) is None
        assert db.session.get(Product, product_id).supplier_id is None


def test_deleting_company_unlinks_suppliers(app, client, login, specialist):
    with app.app_context():
        acme = AffiliatedCompany(name="Acme", shortname="acme")
        supplier = Supplier(name="Linked", companies=[acme])
        db.session.add_all([acme, supplier])
        db.session.commit()
        company_id, supplier_id = acme.id, supplier.id

    login(specialist)
    assert client.post(f"/admin/companies/{company_id}/delete").status_code == 302
    with app.app_context():
        assert db.session.get(Supplier, supplier_id).companies == []
    assert client.get("/acme/home").status_code == 404
