"""
Referential integrity tests.

Verifies:
- Merchant delete cascades to stalls and, through them, to payments
- Stall delete cascades to payments
- User delete clears payment attribution (SET NULL) without deleting
- Stall number uniqueness at the storage layer
- vuelto always equals dinero_recibido - monto_cobrado
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from cobros.models import Merchant, Payment, Stall
from cobros.services import merchant_service, payment_service, stall_service, user_service
from cobros.validation import ConflictError, ValidationError


def _count(db_session, model):
    return db_session.query(model).count()


class TestCascades:
    def test_scenario_merchant_delete_removes_stall_and_payment(self, db_session):
        merchant = merchant_service.create_merchant("Ana")
        assert merchant.id_comerciante == 1

        stall = stall_service.create_stall("A1", merchant.id_comerciante)
        assert stall.id_puesto == 1

        payment = payment_service.create_payment(
            id_puesto=stall.id_puesto,
            monto_cobrado=Decimal("10.00"),
            dinero_recibido=Decimal("15.00"),
            fecha_cobro="2024-03-01",
        )
        assert payment.vuelto == Decimal("5.00")

        merchant_service.delete_merchant(1)

        assert stall_service.get_stall_by_id(1) is None
        assert payment_service.get_payment_by_id(1) is None
        assert payment_service.get_all_payments().all() == []

    def test_merchant_delete_only_touches_its_own_rows(self, db_session, market):
        ana = market["merchants"]["ana"]
        beto_id = market["merchants"]["beto"].id_comerciante

        merchant_service.delete_merchant(ana.id_comerciante)

        remaining_stalls = stall_service.get_all_stalls().all()
        assert [s.numero_puesto for s in remaining_stalls] == ["B1"]
        assert all(s.id_comerciante == beto_id for s in remaining_stalls)

        remaining = payment_service.get_all_payments().all()
        assert len(remaining) == 1
        assert remaining[0].id_puesto == market["stalls"]["B1"].id_puesto

    def test_stall_delete_cascades_to_payments(self, db_session, market):
        a1_id = market["stalls"]["A1"].id_puesto
        stall_service.delete_stall(a1_id)

        assert _count(db_session, Stall) == 2
        assert all(p.id_puesto != a1_id for p in payment_service.get_all_payments().all())
        assert _count(db_session, Payment) == 2
        assert _count(db_session, Merchant) == 2

    def test_user_delete_sets_payment_user_to_null(self, db_session, market):
        collector_id = market["collector"].id_usuario
        payment_ids = [p.id_cobro for p in market["payments"]]

        user_service.delete_user(collector_id)

        assert user_service.get_user_by_id(collector_id) is None
        for payment_id in payment_ids:
            payment = payment_service.get_payment_by_id(payment_id)
            assert payment is not None
            assert payment.id_usuario is None

    def test_payment_requires_existing_stall(self, db_session):
        with pytest.raises(IntegrityError):
            payment_service.create_payment(
                id_puesto=999, monto_cobrado=1, dinero_recibido=1, fecha_cobro="2024-01-01",
            )
        assert _count(db_session, Payment) == 0

    def test_stall_requires_existing_merchant(self, db_session):
        with pytest.raises(IntegrityError):
            stall_service.create_stall("Z9", 12345)
        assert _count(db_session, Stall) == 0


class TestStallNumberUniqueness:
    def test_exact_duplicate_is_rejected(self, db_session, merchant):
        stall_service.create_stall("A1", merchant.id_comerciante)
        with pytest.raises(ConflictError):
            stall_service.create_stall("A1", merchant.id_comerciante)
        assert _count(db_session, Stall) == 1

    def test_duplicate_differing_only_in_case_is_rejected(self, db_session, merchant):
        stall_service.create_stall("A1", merchant.id_comerciante)
        with pytest.raises(ConflictError):
            stall_service.create_stall("a1", merchant.id_comerciante)
        assert _count(db_session, Stall) == 1

    @pytest.mark.parametrize("first,second", [("Ñ1", "ñ1"), ("Á-3", "á-3"), ("Straße 1", "STRASSE 1")])
    def test_unicode_case_variants_are_rejected(self, db_session, merchant, first, second):
        stall_service.create_stall(first, merchant.id_comerciante)
        with pytest.raises(ConflictError):
            stall_service.create_stall(second, merchant.id_comerciante)
        assert _count(db_session, Stall) == 1

    def test_renumber_onto_case_variant_is_rejected(self, db_session, merchant):
        stall_service.create_stall("Ñ1", merchant.id_comerciante)
        other = stall_service.create_stall("B2", merchant.id_comerciante)
        with pytest.raises(ConflictError):
            stall_service.update_stall(other.id_puesto, numero_puesto="ñ1")
        assert stall_service.get_stall_by_id(other.id_puesto).numero_puesto == "B2"

    def test_session_usable_after_conflict(self, db_session, merchant):
        stall_service.create_stall("A1", merchant.id_comerciante)
        with pytest.raises(ConflictError):
            stall_service.create_stall("A1", merchant.id_comerciante)
        created = stall_service.create_stall("A2", merchant.id_comerciante)
        assert created.id_puesto is not None


class TestChangeIsDerived:
    def test_change_computed_on_create(self, db_session, stall):
        payment = payment_service.create_payment(
            id_puesto=stall.id_puesto, monto_cobrado=7.25, dinero_recibido=10,
            fecha_cobro="2024-05-01",
        )
        assert payment.vuelto == Decimal("2.75")

    def test_change_recomputed_on_update(self, db_session, stall):
        payment = payment_service.create_payment(
            id_puesto=stall.id_puesto, monto_cobrado="10", dinero_recibido="15",
            fecha_cobro="2024-05-01",
        )
        updated = payment_service.update_payment(payment.id_cobro, dinero_recibido="20")
        assert updated.vuelto == Decimal("10.00")

        updated = payment_service.update_payment(payment.id_cobro, monto_cobrado="12.50")
        assert updated.vuelto == Decimal("7.50")

    def test_change_cannot_be_forced(self, db_session, stall):
        payment = payment_service.create_payment(
            id_puesto=stall.id_puesto, monto_cobrado="10", dinero_recibido="15",
            fecha_cobro="2024-05-01",
        )
        payment.vuelto = Decimal("99")
        db_session.commit()
        db_session.expire_all()

        reloaded = payment_service.get_payment_by_id(payment.id_cobro)
        assert reloaded.vuelto == Decimal("5.00")

    def test_fraction_of_a_cent_is_rejected(self, db_session, stall):
        with pytest.raises(ValidationError):
            payment_service.create_payment(
                id_puesto=stall.id_puesto, monto_cobrado="10.005", dinero_recibido="20",
                fecha_cobro="2024-05-01",
            )
        assert _count(db_session, Payment) == 0
