from __future__ import annotations

from sqlalchemy.orm import validates

from ..extensions import db


class Stall(db.Model):
    """
    Numbered market space owned by exactly one merchant.

    ``numero_puesto`` is unique ignoring case. The unique index sits on
    ``numero_puesto_key``, the Unicode case-folded number, so "ñ1" is
    rejected when "Ñ1" exists. The key is kept in step by ``@validates``.
    """
    __tablename__ = "Puesto"
    __table_args__ = (
        db.Index("ix_puesto_numero_puesto_key", "numero_puesto_key", unique=True),
        {"sqlite_autoincrement": True},
    )

    id_puesto = db.Column(db.Integer, primary_key=True)
    numero_puesto = db.Column(db.String(64), nullable=False)
    numero_puesto_key = db.Column(db.String(64), nullable=False)
    id_comerciante = db.Column(
        db.Integer,
        db.ForeignKey("Comerciante.id_comerciante", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # passive_deletes="all": the engine owns the cascade, the ORM never nulls children
    merchant = db.relationship(
        "Merchant",
        backref=db.backref("stalls", lazy=True, passive_deletes="all"),
    )

    @validates("numero_puesto")
    def _validate_numero(self, key, value):
        self.numero_puesto_key = value.casefold() if value is not None else None
        return value

    def to_dict(self) -> dict:
        return {
            "id_puesto": self.id_puesto,
            "numero_puesto": self.numero_puesto,
            "id_comerciante": self.id_comerciante,
        }

    def __repr__(self) -> str:
        return f"<Stall {self.id_puesto} {self.numero_puesto!r}>"
