from __future__ import annotations

from decimal import Decimal

from sqlalchemy import event
from sqlalchemy.orm import validates

from ..extensions import db
from ..validation import to_amount


class Payment(db.Model):
    """
    A single fee collection ("cobro") against a stall.

    RELATIONSHIPS:
    - id_puesto: required; deleting the stall deletes its payments (CASCADE)
    - id_usuario: collector who recorded it; deleting the user clears the
      reference (SET NULL) and keeps the payment as history

    CHANGE: ``vuelto`` is derived. It is recomputed whenever either amount is
    assigned and again right before every INSERT/UPDATE, so a stored row
    always satisfies vuelto == dinero_recibido - monto_cobrado.

    The value-domain rules (monto_cobrado > 0, dinero_recibido >=
    monto_cobrado) are NOT enforced here; see cobros.validation.
    """
    __tablename__ = "Cobro"
    __table_args__ = (
        db.Index("ix_cobro_usuario_fecha", "id_usuario", "fecha_cobro"),
        {"sqlite_autoincrement": True},
    )

    id_cobro = db.Column(db.Integer, primary_key=True)
    id_puesto = db.Column(
        db.Integer,
        db.ForeignKey("Puesto.id_puesto", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    monto_cobrado = db.Column(db.Numeric(12, 2), nullable=False)
    dinero_recibido = db.Column(db.Numeric(12, 2), nullable=False)
    vuelto = db.Column(db.Numeric(12, 2), nullable=False)

    # YYYY-MM-DD; fixed width so string comparison orders chronologically
    fecha_cobro = db.Column(db.String(10), nullable=False, index=True)

    latitud = db.Column(db.Float, nullable=True)
    longitud = db.Column(db.Float, nullable=True)

    id_usuario = db.Column(
        db.Integer,
        db.ForeignKey("Usuario.id_usuario", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    stall = db.relationship(
        "Stall",
        backref=db.backref("payments", lazy=True, passive_deletes="all"),
    )
    user = db.relationship(
        "User",
        backref=db.backref("payments", lazy=True, passive_deletes="all"),
    )

    @validates("monto_cobrado", "dinero_recibido")
    def _validate_amount(self, key, value):
        amount = to_amount(value, key)
        other_key = "dinero_recibido" if key == "monto_cobrado" else "monto_cobrado"
        other = self.__dict__.get(other_key)
        if other is not None:
            received, charged = (amount, other) if key == "dinero_recibido" else (other, amount)
            self.vuelto = Decimal(received) - Decimal(charged)
        return amount

    def recompute_change(self) -> None:
        self.vuelto = to_amount(self.dinero_recibido, "dinero_recibido") - to_amount(self.monto_cobrado, "monto_cobrado")

    @property
    def has_location(self) -> bool:
        return self.latitud is not None and self.longitud is not None

    def to_dict(self) -> dict:
        return {
            "id_cobro": self.id_cobro,
            "id_puesto": self.id_puesto,
            "monto_cobrado": str(self.monto_cobrado),
            "dinero_recibido": str(self.dinero_recibido),
            "vuelto": str(self.vuelto),
            "fecha_cobro": self.fecha_cobro,
            "latitud": self.latitud,
            "longitud": self.longitud,
            "id_usuario": self.id_usuario,
        }

    def __repr__(self) -> str:
        return f"<Payment {self.id_cobro} puesto={self.id_puesto} {self.fecha_cobro} {self.monto_cobrado}>"


@event.listens_for(Payment, "before_insert")
@event.listens_for(Payment, "before_update")
def _recompute_change(mapper, connection, target):
    target.recompute_change()
