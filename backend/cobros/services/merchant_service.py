# Overview: Service-layer operations for merchants; CRUD, lookups and live search.

from __future__ import annotations

from sqlalchemy import String, cast, or_

from ..extensions import db, live_queries
from ..live_query import LiveQuery
from ..models import Merchant
from .persistence import commit


MERCHANT_TABLES = (Merchant.__tablename__,)


def create_merchant(nombre_comerciante: str) -> Merchant:
    merchant = Merchant(nombre_comerciante=nombre_comerciante)
    db.session.add(merchant)
    commit()
    return merchant


def update_merchant(id_comerciante: int, *, nombre_comerciante: str | None = None) -> Merchant | None:
    """Update by primary key. Returns None (and writes nothing) when the merchant is gone."""
    merchant = db.session.get(Merchant, id_comerciante)
    if merchant is None:
        return None

    if nombre_comerciante is not None:
        merchant.nombre_comerciante = nombre_comerciante

    commit()
    return merchant


def delete_merchant(id_comerciante: int) -> None:
    """
    Delete a merchant by id; missing ids are a no-op.

    The engine cascades to the merchant's stalls and their payments in the
    same statement.
    """
    merchant = db.session.get(Merchant, id_comerciante)
    if merchant is None:
        return
    db.session.delete(merchant)
    commit()


def get_merchant_by_id(id_comerciante: int) -> Merchant | None:
    return db.session.get(Merchant, id_comerciante)


def get_all_merchants() -> LiveQuery[Merchant]:
    def _fetch() -> list[Merchant]:
        stmt = db.select(Merchant).order_by(Merchant.nombre_comerciante.asc())
        return list(db.session.scalars(stmt))

    return live_queries.query(_fetch, MERCHANT_TABLES, name="all_merchants")


def search_merchants(text: str) -> LiveQuery[Merchant]:
    """Case-insensitive substring match on name or on the id rendered as text."""
    text = text or ""
    needle = text.casefold()

    def _fetch() -> list[Merchant]:
        stmt = (
            db.select(Merchant)
            .where(
                or_(
                    Merchant.nombre_comerciante_key.contains(needle, autoescape=True),
                    cast(Merchant.id_comerciante, String).icontains(text, autoescape=True),
                )
            )
            .order_by(Merchant.nombre_comerciante.asc())
        )
        return list(db.session.scalars(stmt))

    return live_queries.query(_fetch, MERCHANT_TABLES, name="search_merchants")
