from __future__ import annotations

from ..extensions import db


class User(db.Model):
    """
    Collector account that records payments.

    SECURITY: ``contrasena`` holds a bcrypt hash (column "contraseña"),
    never the plaintext password.

    Login uniqueness is checked at registration (user_service), not by a
    database constraint.
    """
    __tablename__ = "Usuario"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id_usuario = db.Column(db.Integer, primary_key=True)
    nombre = db.Column(db.String(128), nullable=False)
    apellido = db.Column(db.String(128), nullable=False)
    usuario_login = db.Column(db.String(64), nullable=False, index=True)
    contrasena = db.Column("contraseña", db.String(255), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id_usuario": self.id_usuario,
            "nombre": self.nombre,
            "apellido": self.apellido,
            "usuario_login": self.usuario_login,
        }

    def __repr__(self) -> str:
        return f"<User {self.id_usuario} {self.usuario_login}>"
