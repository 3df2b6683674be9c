from __future__ import annotations

from ..extensions import db
from snacktab.time_utils import to_utc_z

PRODUCTS_TABLE = "productos"


class Producto(db.Model):
    """
    Catalog row.

    Column names match the hosted table so rows move between the SQL and
    REST backends unchanged. `nombre` is unique by convention only.
    """
    __tablename__ = PRODUCTS_TABLE
    __table_args__ = (
        db.Index("ix_productos_nombre", "nombre"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    nombre = db.Column(db.String(255), nullable=False)

    # Whole pesos; the frontend only formats for display
    precio = db.Column(db.Integer, nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)

    emoji = db.Column(db.String(16), nullable=True)
    imagen = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "nombre": self.nombre,
            "precio": self.precio,
            "stock": self.stock,
            "emoji": self.emoji,
            "imagen": self.imagen,
            "created_at": to_utc_z(self.created_at),
        }
