"""
Product Catalog – Domain Models

Covers:
- Users with an ordered role (Graphic Designer < Product Specialist < Admin < Super Admin)
- Settings: generic (type, value) lookup used for countries and product types
- Categories: self-referencing tree
- Affiliated companies, suppliers (many-to-many through supplier_companies)
- Products with types, categories, specifications, images and marketing/event/testimony links
- Marketing materials, events (+links), testimonies (+links)
- Packages: ordered product bundles with bullet specs

IMPORTANT:
- Child rows (links, specs, images, package members) are replaced wholesale on edit.
  Their ids are not stable across edits; nothing may key on them.
- Filesystem assets are referenced by root-relative path strings ("/uploads/...").
"""

from __future__ import annotations

import re
from datetime import datetime

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .extensions import db


# ---------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------
ROLE_GRAPHIC_DESIGNER = "Graphic Designer"
ROLE_PRODUCT_SPECIALIST = "Product Specialist"
ROLE_ADMIN = "Admin"
ROLE_SUPER_ADMIN = "Super Admin"

# Lowest privilege first
ROLES = [ROLE_GRAPHIC_DESIGNER, ROLE_PRODUCT_SPECIALIST, ROLE_ADMIN, ROLE_SUPER_ADMIN]
ROLE_RANK = {role: rank for rank, role in enumerate(ROLES)}

SETTING_TYPE_COUNTRY = "country"
SETTING_TYPE_PRODUCT_TYPE = "product_type"
SETTING_TYPES = {
    SETTING_TYPE_COUNTRY: "Country",
    SETTING_TYPE_PRODUCT_TYPE: "Product Type",
}

MATERIAL_CATEGORIES = ["FLIERS", "BACK-DROP", "POSTER", "ROLL-UP", "BROCHURE", "OTHERS"]

VIDEO_URL_PATTERN = re.compile(r"(youtube\.com|youtu\.be|vimeo\.com)", re.IGNORECASE)


def _first_video_link(links):
    for link in links or []:
        if link.url and VIDEO_URL_PATTERN.search(link.url):
            return link
    return None


# ---------------------------------------------------------------------
# Users & lookups
# ---------------------------------------------------------------------
class User(UserMixin, db.Model):
    """Administrative login user."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    role = db.Column(db.String(50), nullable=False, default=ROLE_PRODUCT_SPECIALIST, index=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    @property
    def rank(self) -> int:
        return ROLE_RANK.get(self.role, -1)

    def has_role(self, minimum: str) -> bool:
        """True if this user's role is at least `minimum` in the privilege order."""
        return self.rank >= ROLE_RANK[minimum]

    @property
    def is_super_admin(self) -> bool:
        return self.role == ROLE_SUPER_ADMIN

    @property
    def is_admin(self) -> bool:
        return self.has_role(ROLE_ADMIN)

    def can_manage_user(self, other: "User") -> bool:
        """Admins manage everyone except Super Admins; Super Admins manage everyone."""
        if not self.is_admin:
            return False
        if other.is_super_admin and not self.is_super_admin:
            return False
        return True

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"


class Setting(db.Model):
    """Generic enumerated lookup row: (type, value) pairs such as countries and product types."""

    __tablename__ = "settings"

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(50), nullable=False, index=True)
    value = db.Column(db.String(255), nullable=False)

    __table_args__ = (db.UniqueConstraint("type", "value", name="uq_setting_type_value"),)

    def __repr__(self):
        return f"<Setting {self.type}={self.value}>"


class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    parent_id = db.Column(
        db.Integer,
        db.ForeignKey("categories.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    children = db.relationship(
        "Category",
        backref=db.backref("parent", remote_side=[id]),
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Category.name",
    )

    def __repr__(self):
        return f"<Category {self.name}>"


# ---------------------------------------------------------------------
# Association tables
# ---------------------------------------------------------------------
supplier_companies = db.Table(
    "supplier_companies",
    db.Column("supplier_id", db.Integer, db.ForeignKey("suppliers.id", ondelete="CASCADE"), primary_key=True),
    db.Column("company_id", db.Integer, db.ForeignKey("affiliated_companies.id", ondelete="CASCADE"), primary_key=True),
)

product_types = db.Table(
    "product_types",
    db.Column("product_id", db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    db.Column("type_id", db.Integer, db.ForeignKey("settings.id", ondelete="CASCADE"), primary_key=True),
)

product_categories = db.Table(
    "product_categories",
    db.Column("product_id", db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    db.Column("category_id", db.Integer, db.ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True),
)

product_marketing = db.Table(
    "product_marketing",
    db.Column("product_id", db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    db.Column("material_id", db.Integer, db.ForeignKey("marketing_materials.id", ondelete="CASCADE"), primary_key=True),
)

product_events = db.Table(
    "product_events",
    db.Column("product_id", db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    db.Column("event_id", db.Integer, db.ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
)

product_testimonies = db.Table(
    "product_testimonies",
    db.Column("product_id", db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    db.Column("testimony_id", db.Integer, db.ForeignKey("testimonies.id", ondelete="CASCADE"), primary_key=True),
)


# ---------------------------------------------------------------------
# Companies & suppliers
# ---------------------------------------------------------------------
class AffiliatedCompany(db.Model):
    """Affiliated company. `shortname` is the public storefront URL segment."""

    __tablename__ = "affiliated_companies"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    shortname = db.Column(db.String(100), nullable=False, unique=True, index=True)
    logo = db.Column(db.String(255))

    reg_no = db.Column(db.String(100))
    reg_date = db.Column(db.Date)
    address = db.Column(db.Text)
    website = db.Column(db.String(255))
    email = db.Column(db.String(255))
    contact_number = db.Column(db.String(50))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    suppliers = db.relationship(
        "Supplier",
        secondary=supplier_companies,
        back_populates="companies",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<AffiliatedCompany {self.shortname}>"


class Supplier(db.Model):
    __tablename__ = "suppliers"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False, index=True)
    country_id = db.Column(
        db.Integer,
        db.ForeignKey("settings.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    country = db.relationship("Setting", foreign_keys=[country_id])

    companies = db.relationship(
        "AffiliatedCompany",
        secondary=supplier_companies,
        back_populates="suppliers",
        order_by="AffiliatedCompany.name",
        passive_deletes=True,
    )

    products = db.relationship("Product", back_populates="supplier", passive_deletes=True)

    @property
    def country_name(self) -> str | None:
        return self.country.value if self.country else None

    def __repr__(self):
        return f"<Supplier {self.name}>"


# ---------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------
class Product(db.Model):
    __tablename__ = "products"

    id = db.Column(db.Integer, primary_key=True)

    code = db.Column(db.String(100), nullable=False, index=True)
    model = db.Column(db.String(100), index=True)
    mda_reg_no = db.Column(db.String(100), index=True)
    description = db.Column(db.Text)

    mda_cert = db.Column(db.String(255))
    # legacy single image; kept in sync with the main ProductImage
    product_image = db.Column(db.String(255))

    supplier_id = db.Column(
        db.Integer,
        db.ForeignKey("suppliers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    supplier = db.relationship("Supplier", back_populates="products")

    types = db.relationship(
        "Setting",
        secondary=product_types,
        order_by="Setting.value",
        passive_deletes=True,
    )
    categories = db.relationship(
        "Category",
        secondary=product_categories,
        order_by="Category.name",
        backref=db.backref("products", lazy=True, passive_deletes=True),
        passive_deletes=True,
    )

    specifications = db.relationship(
        "ProductSpecification",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductSpecification.id",
        passive_deletes=True,
    )
    images = db.relationship(
        "ProductImage",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="[ProductImage.is_main.desc(), ProductImage.id]",
        passive_deletes=True,
    )

    marketing_materials = db.relationship(
        "MarketingMaterial",
        secondary=product_marketing,
        back_populates="products",
        passive_deletes=True,
    )
    events = db.relationship(
        "Event",
        secondary=product_events,
        back_populates="products",
        passive_deletes=True,
    )
    testimonies = db.relationship(
        "Testimony",
        secondary=product_testimonies,
        back_populates="products",
        passive_deletes=True,
    )

    @property
    def main_image(self) -> str | None:
        """Path of the image flagged main, falling back to the legacy single-image column."""
        for image in self.images:
            if image.is_main:
                return image.image_path
        return self.product_image

    @property
    def display_name(self) -> str:
        return self.model or self.code

    def __repr__(self):
        return f"<Product {self.code}>"


class ProductImage(db.Model):
    __tablename__ = "product_images"

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    image_path = db.Column(db.String(255), nullable=False)
    is_main = db.Column(db.Boolean, default=False, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    product = db.relationship("Product", back_populates="images")

    __table_args__ = (db.Index("idx_product_main", "product_id", "is_main"),)


class ProductSpecification(db.Model):
    __tablename__ = "product_specifications"

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    spec_key = db.Column(db.String(255), nullable=False)
    spec_value = db.Column(db.Text, nullable=False)

    product = db.relationship("Product", back_populates="specifications")


# ---------------------------------------------------------------------
# Marketing
# ---------------------------------------------------------------------
class MarketingMaterial(db.Model):
    __tablename__ = "marketing_materials"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(50), nullable=False, default="OTHERS", index=True)

    # BROCHURE materials may be white-labelled for one company
    company_id = db.Column(
        db.Integer,
        db.ForeignKey("affiliated_companies.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    file_path = db.Column(db.String(255), nullable=False)
    file_type = db.Column(db.String(255))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    company = db.relationship(
        "AffiliatedCompany",
        backref=db.backref("marketing_materials", lazy=True, passive_deletes=True),
    )
    products = db.relationship(
        "Product",
        secondary=product_marketing,
        back_populates="marketing_materials",
        order_by="Product.code",
        passive_deletes=True,
    )

    @property
    def is_image(self) -> bool:
        return (self.file_type or "").startswith("image/")

    def __repr__(self):
        return f"<MarketingMaterial {self.name} [{self.category}]>"


class Event(db.Model):
    __tablename__ = "events"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    location = db.Column(db.String(255))
    start_date = db.Column(db.Date, index=True)
    end_date = db.Column(db.Date)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    links = db.relationship(
        "EventLink",
        backref="event",
        cascade="all, delete-orphan",
        order_by="EventLink.id",
        passive_deletes=True,
    )
    products = db.relationship(
        "Product",
        secondary=product_events,
        back_populates="events",
        order_by="Product.code",
        passive_deletes=True,
    )

    @property
    def video_link(self):
        return _first_video_link(self.links)


class EventLink(db.Model):
    __tablename__ = "event_links"

    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(
        db.Integer,
        db.ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(255))
    url = db.Column(db.Text, nullable=False)


class Testimony(db.Model):
    __tablename__ = "testimonies"

    id = db.Column(db.Integer, primary_key=True)

    client_name = db.Column(db.String(255), nullable=False)
    location = db.Column(db.String(255))
    start_date = db.Column(db.Date, index=True)
    end_date = db.Column(db.Date)
    treatment = db.Column(db.String(255))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    links = db.relationship(
        "TestimonyLink",
        backref="testimony",
        cascade="all, delete-orphan",
        order_by="TestimonyLink.id",
        passive_deletes=True,
    )
    products = db.relationship(
        "Product",
        secondary=product_testimonies,
        back_populates="testimonies",
        order_by="Product.code",
        passive_deletes=True,
    )

    @property
    def video_link(self):
        return _first_video_link(self.links)


class TestimonyLink(db.Model):
    __tablename__ = "testimony_links"

    id = db.Column(db.Integer, primary_key=True)
    testimony_id = db.Column(
        db.Integer,
        db.ForeignKey("testimonies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = db.Column(db.String(255))
    url = db.Column(db.Text, nullable=False)


# ---------------------------------------------------------------------
# Packages
# ---------------------------------------------------------------------
class Package(db.Model):
    """Admin-curated bundle of products."""

    __tablename__ = "packages"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    bundle_label = db.Column(db.String(255))
    main_image = db.Column(db.String(255))

    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    members = db.relationship(
        "PackageProduct",
        back_populates="package",
        cascade="all, delete-orphan",
        order_by="PackageProduct.sort_order",
        passive_deletes=True,
    )
    specs = db.relationship(
        "PackageSpec",
        backref="package",
        cascade="all, delete-orphan",
        order_by="PackageSpec.sort_order",
        passive_deletes=True,
    )

    @property
    def products(self):
        """Member products in display order."""
        return [member.product for member in self.members]

    def __repr__(self):
        return f"<Package {self.name}>"


class PackageProduct(db.Model):
    __tablename__ = "package_products"

    id = db.Column(db.Integer, primary_key=True)

    package_id = db.Column(
        db.Integer,
        db.ForeignKey("packages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    package = db.relationship("Package", back_populates="members")
    product = db.relationship(
        "Product",
        backref=db.backref("package_memberships", lazy=True, cascade="all", passive_deletes=True),
    )

    __table_args__ = (db.UniqueConstraint("package_id", "product_id", name="uq_package_product"),)


class PackageSpec(db.Model):
    __tablename__ = "package_specs"

    id = db.Column(db.Integer, primary_key=True)

    package_id = db.Column(
        db.Integer,
        db.ForeignKey("packages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    icon = db.Column(db.String(100), nullable=False, default="fa-solid fa-circle")
    spec_text = db.Column(db.String(255), nullable=False)
    sort_order = db.Column(db.Integer, nullable=False, default=0)


# -------------------------------------------------------------------
# Stored asset references
# -------------------------------------------------------------------
ASSET_COLUMNS = (
    ProductImage.image_path,
    Product.mda_cert,
    Product.product_image,
    AffiliatedCompany.logo,
    MarketingMaterial.file_path,
    Package.main_image,
)


def asset_in_use(stored_path: str) -> bool:
    """True if any row in the database references `stored_path`."""
    with db.session.no_autoflush:
        return any(
            db.session.query(column).filter(column == stored_path).first() is not None
            for column in ASSET_COLUMNS
        )
