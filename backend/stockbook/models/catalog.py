from __future__ import annotations

from ..extensions import db
from ..number_utils import money_str
from stockbook.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data.

    SKU DESIGN DECISION:
    Product.sku is unique and immutable once issued. Lots, invoice lines and
    ledger events carry the SKU as a denormalized key.

    quantity_on_hand is a read-optimization cache of the sum of remaining
    quantities over the product's active lots (base units). It is adjusted
    only in the same transaction that debits or credits lots and is never
    used to decide whether stock is available.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.Index("ix_products_name", "name"),
        db.Index("ix_products_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True)
    generic_name = db.Column(db.String(255), nullable=True)
    brand = db.Column(db.String(128), nullable=True)

    # List price and per-unit list discount (absolute amounts)
    price = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    discount = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    cost = db.Column(db.Numeric(14, 4), nullable=True)

    # Denormalized cache, base units
    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "generic_name": self.generic_name,
            "brand": self.brand,
            "price": money_str(self.price),
            "discount": money_str(self.discount),
            "cost": money_str(self.cost) if self.cost is not None else None,
            "quantity_on_hand": self.quantity_on_hand,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    """Suppliers referenced by purchase receipts."""
    __tablename__ = "suppliers"
    __table_args__ = (
        db.Index("ix_suppliers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(512), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
