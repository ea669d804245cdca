from __future__ import annotations

from ..extensions import db
from stockbook.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer master data.

    is_directory distinguishes customers created explicitly through customer
    management (True) from walk-in customers materialized by a sale (False).
    Walk-in customers are reused by exact name on later sales.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name_directory", "name", "is_directory"),
        db.Index("ix_customers_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(512), nullable=True)
    vat_number = db.Column(db.String(64), nullable=True)
    route = db.Column(db.String(64), nullable=True)
    sales_rep_id = db.Column(db.Integer, nullable=True)

    is_directory = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def code(self) -> str:
        return f"CUST-{self.id:04d}" if self.id else ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "vat_number": self.vat_number,
            "route": self.route,
            "sales_rep_id": self.sales_rep_id,
            "is_directory": self.is_directory,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
