# Overview: Service-layer operations for stalls; CRUD, merchant joins and live search.

from __future__ import annotations

from sqlalchemy import String, cast, or_

from ..composites import StallWithMerchant
from ..extensions import db, live_queries
from ..live_query import LiveQuery
from ..models import Merchant, Stall
from .persistence import commit


STALL_TABLES = (Stall.__tablename__,)
STALL_WITH_MERCHANT_TABLES = (Stall.__tablename__, Merchant.__tablename__)


def _duplicate_message(numero_puesto: str) -> str:
    return f"Stall number '{numero_puesto}' already exists"


def create_stall(numero_puesto: str, id_comerciante: int) -> Stall:
    """
    Insert a stall and return it with its generated id.

    Raises ConflictError when the number collides (ignoring case) with an
    existing stall; the failed insert leaves nothing behind.
    """
    stall = Stall(numero_puesto=numero_puesto, id_comerciante=id_comerciante)
    db.session.add(stall)
    commit(conflict_message=_duplicate_message(numero_puesto))
    return stall


def update_stall(
    id_puesto: int,
    *,
    numero_puesto: str | None = None,
    id_comerciante: int | None = None,
) -> Stall | None:
    stall = db.session.get(Stall, id_puesto)
    if stall is None:
        return None

    if numero_puesto is not None:
        stall.numero_puesto = numero_puesto
    if id_comerciante is not None:
        stall.id_comerciante = id_comerciante

    commit(conflict_message=_duplicate_message(stall.numero_puesto))
    return stall


def delete_stall(id_puesto: int) -> None:
    """Delete a stall by id (its payments go with it); missing ids are a no-op."""
    stall = db.session.get(Stall, id_puesto)
    if stall is None:
        return
    db.session.delete(stall)
    commit()


def get_stall_by_id(id_puesto: int) -> Stall | None:
    return db.session.get(Stall, id_puesto)


def get_all_stalls() -> LiveQuery[Stall]:
    def _fetch() -> list[Stall]:
        return list(db.session.scalars(db.select(Stall)))

    return live_queries.query(_fetch, STALL_TABLES, name="all_stalls")


def get_stalls_by_merchant(id_comerciante: int) -> LiveQuery[Stall]:
    def _fetch() -> list[Stall]:
        stmt = db.select(Stall).where(Stall.id_comerciante == id_comerciante)
        return list(db.session.scalars(stmt))

    return live_queries.query(_fetch, STALL_TABLES, name="stalls_by_merchant")


def _stall_with_merchant_select():
    return db.select(Stall, Merchant).outerjoin(
        Merchant, Stall.id_comerciante == Merchant.id_comerciante
    )


def _to_stalls_with_merchant(rows) -> list[StallWithMerchant]:
    return [StallWithMerchant(stall=stall, merchant=merchant) for stall, merchant in rows]


def get_all_stalls_with_merchant() -> LiveQuery[StallWithMerchant]:
    def _fetch() -> list[StallWithMerchant]:
        return _to_stalls_with_merchant(db.session.execute(_stall_with_merchant_select()))

    return live_queries.query(_fetch, STALL_WITH_MERCHANT_TABLES, name="all_stalls_with_merchant")


def search_stalls(text: str) -> LiveQuery[StallWithMerchant]:
    """
    Case-insensitive substring match on stall number, stall id or merchant
    name. Stalls without a merchant row are kept (merchant=None).
    """
    text = text or ""
    needle = text.casefold()

    def _fetch() -> list[StallWithMerchant]:
        stmt = _stall_with_merchant_select().where(
            or_(
                Stall.numero_puesto_key.contains(needle, autoescape=True),
                cast(Stall.id_puesto, String).icontains(text, autoescape=True),
                Merchant.nombre_comerciante_key.contains(needle, autoescape=True),
            )
        )
        return _to_stalls_with_merchant(db.session.execute(stmt))

    return live_queries.query(_fetch, STALL_WITH_MERCHANT_TABLES, name="search_stalls")
