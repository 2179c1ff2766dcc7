from __future__ import annotations

from sqlalchemy.orm import validates

from ..extensions import db


class Merchant(db.Model):
    """
    Vendor who owns one or more stalls.

    Deleting a merchant removes its stalls (and their payments) inside the
    engine via ON DELETE CASCADE.

    ``nombre_comerciante_key`` is the case-folded name used by searches;
    SQLite's own case folding only covers ASCII.
    """
    __tablename__ = "Comerciante"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id_comerciante = db.Column(db.Integer, primary_key=True)
    nombre_comerciante = db.Column(db.String(255), nullable=False)
    nombre_comerciante_key = db.Column(db.String(255), nullable=False)

    @validates("nombre_comerciante")
    def _validate_nombre(self, key, value):
        self.nombre_comerciante_key = value.casefold() if value is not None else None
        return value

    def to_dict(self) -> dict:
        return {
            "id_comerciante": self.id_comerciante,
            "nombre_comerciante": self.nombre_comerciante,
        }

    def __repr__(self) -> str:
        return f"<Merchant {self.id_comerciante} {self.nombre_comerciante!r}>"
