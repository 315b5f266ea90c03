from datetime import datetime
from types import SimpleNamespace

import pytest

from medcatalog.extensions import db
from medcatalog.models import (
    AffiliatedCompany,
    Event,
    EventLink,
    MarketingMaterial,
    Package,
    PackageProduct,
    Product,
    ProductSpecification,
    Supplier,
)
from medcatalog.storefront import categorize_materials, embed_url, normalize_shortname, shortname_error


@pytest.fixture
def tenants(app):
    """Two companies; each supplier serves one of them; one product per supplier."""
    with app.app_context():
        acme = AffiliatedCompany(name="Acme Health", shortname="acme")
        beta = AffiliatedCompany(name="Beta Care", shortname="beta")
        acme_supplier = Supplier(name="Acme Supplies", companies=[acme])
        beta_supplier = Supplier(name="Beta Supplies", companies=[beta])

        scanner = Product(code="SCAN-1", model="Acme Scanner", supplier=acme_supplier)
        scanner.specifications = [ProductSpecification(spec_key="Weight", spec_value="2 kg")]
        pump = Product(code="PUMP-1", model="Beta Pump", supplier=beta_supplier)

        own = MarketingMaterial(name="Acme brochure", category="BROCHURE", company=acme,
                                file_path="/uploads/marketing/acme.pdf", file_type="application/pdf")
        other = MarketingMaterial(name="Beta brochure", category="BROCHURE", company=beta,
                                  file_path="/uploads/marketing/beta.pdf", file_type="application/pdf")
        generic = MarketingMaterial(name="Generic brochure", category="BROCHURE",
                                    file_path="/uploads/marketing/generic.pdf", file_type="application/pdf")
        scanner.marketing_materials = [own, other, generic]

        expo = Event(name="Medical Expo", links=[EventLink(title="Demo", url="https://youtu.be/abc123")])
        scanner.events = [expo]

        bundle = Package(name="Clinic starter")
        bundle.members = [PackageProduct(product=scanner, sort_order=0), PackageProduct(product=pump, sort_order=1)]
        beta_only = Package(name="Beta bundle")
        beta_only.members = [PackageProduct(product=pump, sort_order=0)]

        db.session.add_all([acme, beta, scanner, pump, bundle, beta_only])
        db.session.commit()
        return SimpleNamespace(
            scanner=scanner.id,
            pump=pump.id,
            bundle=bundle.id,
            beta_only=beta_only.id,
            link=expo.links[0].id,
        )


def test_public_storefront_lists_everything(client, tenants):
    page = client.get("/products")
    assert page.status_code == 200
    assert b"Acme Scanner" in page.data
    assert b"Beta Pump" in page.data
    assert client.get("/home").status_code == 200


def test_company_storefront_is_scoped(client, tenants):
    page = client.get("/acme/products")
    assert page.status_code == 200
    assert b"Acme Scanner" in page.data
    assert b"Beta Pump" not in page.data
    assert b"Acme Health" in page.data

    assert client.get(f"/acme/product/{tenants.scanner}").status_code == 200
    assert client.get(f"/acme/product/{tenants.pump}").status_code == 404


def test_company_root_redirects_home(client, tenants):
    response = client.get("/acme")
    assert response.status_code == 302
    assert response.headers["Location"].endswith("/acme/home")


def test_unknown_and_reserved_shortnames_404(client, tenants):
    assert client.get("/nobody/products").status_code == 404
    assert client.get("/admin/products").status_code == 302


def test_shortname_lookup_is_case_insensitive(client, tenants):
    assert client.get("/ACME/products").status_code == 200


def test_product_detail_brochures_per_company(client, tenants):
    acme_page = client.get(f"/acme/product/{tenants.scanner}")
    assert b"Acme brochure" in acme_page.data
    assert b"Beta brochure" not in acme_page.data
    assert b"Generic brochure" in acme_page.data
    assert b"/uploads/marketing/acme.pdf" in acme_page.data
    assert b"Weight" in acme_page.data

    public_page = client.get(f"/product/{tenants.scanner}")
    assert b"Acme brochure" not in public_page.data
    assert b"Generic brochure" in public_page.data


def test_packages_are_scoped_with_visible_members(client, tenants):
    acme = client.get("/acme/packages")
    assert b"Clinic starter" in acme.data
    assert b"Beta bundle" not in acme.data

    detail = client.get(f"/acme/package/{tenants.bundle}")
    assert b"Acme Scanner" in detail.data
    assert b"Beta Pump" not in detail.data

    assert client.get(f"/acme/package/{tenants.beta_only}").status_code == 404
    public = client.get(f"/package/{tenants.bundle}")
    assert b"Beta Pump" in public.data


def test_watch_embeds_video(client, tenants):
    page = client.get(f"/watch/event/{tenants.link}")
    assert page.status_code == 200
    assert b"https://www.youtube.com/embed/abc123" in page.data

    assert client.get(f"/acme/watch/event/{tenants.link}").status_code == 200
    assert client.get(f"/beta/watch/event/{tenants.link}").status_code == 404
    assert client.get("/watch/event/9999").status_code == 404


def test_mda_cert_page_404_without_certificate(client, tenants):
    assert client.get(f"/product/{tenants.scanner}/mda-cert").status_code == 404


def test_search_on_storefront(client, tenants):
    page = client.get("/products?search=pump")
    assert b"Beta Pump" in page.data
    assert b"Acme Scanner" not in page.data



def test_company_sees_exactly_its_suppliers_products(app, client):
    with app.app_context():
        acme = AffiliatedCompany(name="Acme Health", shortname="acme")
        other = AffiliatedCompany(name="Other Co", shortname="other")
        supplier = Supplier(name="Acme Supplies", companies=[acme])
        elsewhere = Supplier(name="Elsewhere", companies=[other])
        db.session.add_all([
            Product(code="A-1", model="Alpha One", supplier=supplier),
            Product(code="A-2", model="Alpha Two", supplier=supplier),
            Product(code="Z-1", model="Zulu", supplier=elsewhere),
            Product(code="N-1", model="Nobody"),
        ])
        db.session.commit()

    page = client.get("/acme/products")
    assert b"Alpha One" in page.data and b"Alpha Two" in page.data
    assert b"Zulu" not in page.data and b"Nobody" not in page.data
    assert page.data.count(b"card-body") == 2

# ---------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------
def _material(id, category, company_id=None, created_at=None):
    return SimpleNamespace(id=id, category=category, company_id=company_id, created_at=created_at)


def test_categorize_materials_buckets_and_featured_brochure():
    company = SimpleNamespace(id=1)
    materials = [
        _material(1, "FLIERS"),
        _material(2, "BROCHURE", None, datetime(2024, 1, 1)),
        _material(3, "BROCHURE", None, datetime(2024, 6, 1)),
        _material(4, "BROCHURE", 1, datetime(2023, 1, 1)),
        _material(5, "BROCHURE", 2, datetime(2025, 1, 1)),
        _material(6, "ROLL-UP"),
        _material(7, "SOMETHING"),
    ]

    scoped = categorize_materials(materials, company)
    assert [m.id for m in scoped["flyers"]] == [1]
    assert [m.id for m in scoped["brochures"]] == [2, 3, 4]
    assert [m.id for m in scoped["rollups"]] == [6]
    assert [m.id for m in scoped["others"]] == [7]
    assert scoped["featured_brochure"].id == 4

    unscoped = categorize_materials(materials)
    assert [m.id for m in unscoped["brochures"]] == [2, 3]
    assert unscoped["featured_brochure"].id == 3


def test_categorize_materials_without_brochures():
    assert categorize_materials([])["featured_brochure"] is None


@pytest.mark.parametrize(
    "url, expected",
    [
        ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", "https://www.youtube.com/embed/dQw4w9WgXcQ"),
        ("https://youtube.com/watch?feature=share&v=abc_DEF-1", "https://www.youtube.com/embed/abc_DEF-1"),
        ("https://youtu.be/xyz789", "https://www.youtube.com/embed/xyz789"),
        ("https://vimeo.com/123456", "https://player.vimeo.com/video/123456"),
        ("https://example.com/video.mp4", "https://example.com/video.mp4"),
        (None, None),
    ],
)
def test_embed_url(url, expected):
    assert embed_url(url) == expected


def test_shortname_validation():
    assert normalize_shortname("  Acme ") == "acme"
    assert shortname_error("acme") is None
    assert shortname_error("") is not None
    assert shortname_error("has space") is not None
    assert shortname_error("admin") is not None
    assert shortname_error("uploads") is not None
