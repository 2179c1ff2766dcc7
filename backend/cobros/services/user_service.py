# Overview: Service-layer operations for collector accounts; registration, lookup and password checks.

"""
Collector accounts

WHY: Every payment can be attributed to the collector who recorded it.
Passwords are hashed with bcrypt (salted, one-way); the cost factor comes
from BCRYPT_ROUNDS in the app config.

Login uniqueness is an application rule checked here at registration; the
Usuario table carries no unique constraint on usuario_login.
"""

from __future__ import annotations

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..validation import ConflictError, require_text
from .persistence import commit


def hash_password(password: str) -> str:
    """Hash password using bcrypt with the configured cost factor."""
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    Returns True if password matches hash, False otherwise.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def register_user(nombre: str, apellido: str, usuario_login: str, password: str) -> User:
    """
    Create a collector account.

    Raises:
        ValidationError: a field is blank
        ConflictError: the login is already taken
    """
    nombre = require_text(nombre, "nombre")
    apellido = require_text(apellido, "apellido")
    usuario_login = require_text(usuario_login, "usuario_login")
    password = require_text(password, "password")

    if get_user_by_login(usuario_login) is not None:
        raise ConflictError(f"Login '{usuario_login}' already exists")

    user = User(
        nombre=nombre,
        apellido=apellido,
        usuario_login=usuario_login,
        contrasena=hash_password(password),
    )
    db.session.add(user)
    commit()
    return user


def get_user_by_login(usuario_login: str) -> User | None:
    stmt = db.select(User).where(User.usuario_login == usuario_login).limit(1)
    return db.session.scalars(stmt).first()


def get_user_by_id(id_usuario: int) -> User | None:
    return db.session.get(User, id_usuario)


def authenticate(usuario_login: str, password: str) -> User | None:
    """Return the user when login and password match, else None."""
    user = get_user_by_login(usuario_login)
    if user is None:
        return None
    if not verify_password(password, user.contrasena):
        return None
    return user


def get_all_users() -> list[User]:
    return list(db.session.scalars(db.select(User).order_by(User.id_usuario.asc())))


def delete_user(id_usuario: int) -> None:
    """
    Remove an account. Its payments stay, with id_usuario cleared by the
    engine (ON DELETE SET NULL). Missing ids are a no-op.
    """
    user = db.session.get(User, id_usuario)
    if user is None:
        return
    db.session.delete(user)
    commit()
