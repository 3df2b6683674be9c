from __future__ import annotations

from ..extensions import db
from snacktab.time_utils import to_utc_z

SALES_TABLE = "ventas"


class Venta(db.Model):
    """
    Ledger row: one purchase on a customer's tab.

    `producto` is a text snapshot of the product name (plus " (xN)"), not a
    foreign key, so catalog edits and deletes never rewrite history.
    `fecha` is the display string; `created_at` is the server clock and the
    only value used for date-range filtering.
    """
    __tablename__ = SALES_TABLE
    __table_args__ = (
        db.Index("ix_ventas_cliente_pagado", "cliente", "pagado"),
        db.Index("ix_ventas_created_at", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    cliente = db.Column(db.String(255), nullable=False)
    producto = db.Column(db.String(300), nullable=False)
    precio = db.Column(db.Integer, nullable=False)
    fecha = db.Column(db.String(64), nullable=False)
    pagado = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cliente": self.cliente,
            "producto": self.producto,
            "precio": self.precio,
            "fecha": self.fecha,
            "pagado": self.pagado,
            "created_at": to_utc_z(self.created_at),
        }
