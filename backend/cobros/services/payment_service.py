# Overview: Service-layer operations for payments; CRUD, detail joins and filtered live search.

"""
Payment ("cobro") persistence.

The service writes exactly what it is given: value-domain rules (positive
amount, received covers charged, date format) belong to the caller and are
available in cobros.validation. ``vuelto`` is always derived by the model.

Date filters compare the fixed-width YYYY-MM-DD strings directly; both
bounds are inclusive and an absent bound leaves that side open.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import or_

from ..composites import PaymentDetail, StallWithMerchant
from ..extensions import db, live_queries
from ..live_query import LiveQuery
from ..models import Merchant, Payment, Stall
from .persistence import commit


PAYMENT_TABLES = (Payment.__tablename__,)
PAYMENT_DETAIL_TABLES = (Payment.__tablename__, Stall.__tablename__, Merchant.__tablename__)


def create_payment(
    *,
    id_puesto: int,
    monto_cobrado: Any,
    dinero_recibido: Any,
    fecha_cobro: str,
    latitud: float | None = None,
    longitud: float | None = None,
    id_usuario: int | None = None,
) -> Payment:
    payment = Payment(
        id_puesto=id_puesto,
        monto_cobrado=monto_cobrado,
        dinero_recibido=dinero_recibido,
        fecha_cobro=fecha_cobro,
        latitud=latitud,
        longitud=longitud,
        id_usuario=id_usuario,
    )
    db.session.add(payment)
    commit()
    return payment


def update_payment(
    id_cobro: int,
    *,
    id_puesto: int | None = None,
    monto_cobrado: Any = None,
    dinero_recibido: Any = None,
    fecha_cobro: str | None = None,
    latitud: float | None = None,
    longitud: float | None = None,
    clear_location: bool = False,
) -> Payment | None:
    """
    Update by primary key; None arguments leave the field untouched.

    ``clear_location=True`` removes the stored coordinates. ``vuelto`` is
    recomputed from the resulting amounts. Returns None when the payment
    does not exist.
    """
    payment = db.session.get(Payment, id_cobro)
    if payment is None:
        return None

    if id_puesto is not None:
        payment.id_puesto = id_puesto
    if monto_cobrado is not None:
        payment.monto_cobrado = monto_cobrado
    if dinero_recibido is not None:
        payment.dinero_recibido = dinero_recibido
    if fecha_cobro is not None:
        payment.fecha_cobro = fecha_cobro

    if clear_location:
        payment.latitud = None
        payment.longitud = None
    else:
        if latitud is not None:
            payment.latitud = latitud
        if longitud is not None:
            payment.longitud = longitud

    payment.recompute_change()
    commit()
    return payment


def delete_payment(id_cobro: int) -> None:
    payment = db.session.get(Payment, id_cobro)
    if payment is None:
        return
    db.session.delete(payment)
    commit()


def get_payment_by_id(id_cobro: int) -> Payment | None:
    return db.session.get(Payment, id_cobro)


def get_all_payments() -> LiveQuery[Payment]:
    def _fetch() -> list[Payment]:
        stmt = db.select(Payment).order_by(Payment.fecha_cobro.desc(), Payment.id_cobro.desc())
        return list(db.session.scalars(stmt))

    return live_queries.query(_fetch, PAYMENT_TABLES, name="all_payments")


def get_payments_by_user(id_usuario: int) -> LiveQuery[Payment]:
    def _fetch() -> list[Payment]:
        stmt = (
            db.select(Payment)
            .where(Payment.id_usuario == id_usuario)
            .order_by(Payment.fecha_cobro.desc(), Payment.id_cobro.desc())
        )
        return list(db.session.scalars(stmt))

    return live_queries.query(_fetch, PAYMENT_TABLES, name="payments_by_user")


# ----------------------------------------------------------------------
# Detail (payment + stall + merchant) queries
# ----------------------------------------------------------------------


def _detail_select():
    return (
        db.select(Payment, Stall, Merchant)
        .join(Stall, Payment.id_puesto == Stall.id_puesto)
        .outerjoin(Merchant, Stall.id_comerciante == Merchant.id_comerciante)
    )


def _to_details(rows) -> list[PaymentDetail]:
    return [
        PaymentDetail(
            payment=payment,
            stall_with_merchant=StallWithMerchant(stall=stall, merchant=merchant),
        )
        for payment, stall, merchant in rows
    ]


def get_payment_detail_by_id(id_cobro: int) -> PaymentDetail | None:
    stmt = _detail_select().where(Payment.id_cobro == id_cobro).limit(1)
    details = _to_details(db.session.execute(stmt))
    return details[0] if details else None


def get_all_payment_details() -> LiveQuery[PaymentDetail]:
    def _fetch() -> list[PaymentDetail]:
        stmt = _detail_select().order_by(Payment.fecha_cobro.desc(), Payment.id_cobro.desc())
        return _to_details(db.session.execute(stmt))

    return live_queries.query(_fetch, PAYMENT_DETAIL_TABLES, name="all_payment_details")


def get_payment_details_by_user(id_usuario: int) -> LiveQuery[PaymentDetail]:
    def _fetch() -> list[PaymentDetail]:
        stmt = (
            _detail_select()
            .where(Payment.id_usuario == id_usuario)
            .order_by(Payment.fecha_cobro.desc(), Payment.id_cobro.desc())
        )
        return _to_details(db.session.execute(stmt))

    return live_queries.query(_fetch, PAYMENT_DETAIL_TABLES, name="payment_details_by_user")


def search_payments(
    id_usuario: int,
    text: str,
    date_from: str | None = None,
    date_to: str | None = None,
) -> LiveQuery[PaymentDetail]:
    """
    Payments recorded by ``id_usuario`` whose stall number or merchant name
    contains ``text`` (case-insensitive), within [date_from, date_to].
    Newest first.
    """
    text = text or ""
    needle = text.casefold()

    def _fetch() -> list[PaymentDetail]:
        matching_stalls = (
            db.select(Stall.id_puesto)
            .outerjoin(Merchant, Stall.id_comerciante == Merchant.id_comerciante)
            .where(
                or_(
                    Stall.numero_puesto_key.contains(needle, autoescape=True),
                    Merchant.nombre_comerciante_key.contains(needle, autoescape=True),
                )
            )
        )
        stmt = _detail_select().where(
            Payment.id_usuario == id_usuario,
            Payment.id_puesto.in_(matching_stalls),
        )
        if date_from:
            stmt = stmt.where(Payment.fecha_cobro >= date_from)
        if date_to:
            stmt = stmt.where(Payment.fecha_cobro <= date_to)
        stmt = stmt.order_by(Payment.fecha_cobro.desc(), Payment.id_cobro.desc())
        return _to_details(db.session.execute(stmt))

    return live_queries.query(_fetch, PAYMENT_DETAIL_TABLES, name="search_payments")

