"""
Payment feed tests.

Verifies:
- Date bounds default to today when the filter is off or a bound is blank
- apply() re-queries once for several changes
- Only one subscription is alive at a time
- Debounced changes collapse into a single re-query on the timer thread
"""

import threading
from datetime import date

import pytest

from cobros.extensions import live_queries
from cobros.services import payment_service
from cobros.services.payment_feed import PaymentFeed


TODAY = date(2024, 3, 5)


def _stalls(rows):
    return [d.stall.numero_puesto for d in rows]


@pytest.fixture
def feed(db_session, market, recorder):
    feed = PaymentFeed(market["collector"].id_usuario, recorder, today=lambda: TODAY).start()
    yield feed
    feed.close()


class TestBounds:
    def test_filter_off_means_today(self, feed, recorder):
        assert feed.bounds == ("2024-03-05", "2024-03-05")
        assert _stalls(recorder.last) == ["A2"]

    def test_blank_bounds_fall_back_to_today(self, feed):
        feed.apply(filter_active=True, date_from="2024-03-01")
        assert feed.bounds == ("2024-03-01", "2024-03-05")
        feed.apply(date_from="", date_to="2024-03-10")
        assert feed.bounds == ("2024-03-05", "2024-03-10")

    def test_bounds_ignored_while_filter_off(self, feed):
        feed.apply(date_from="2024-01-01", date_to="2024-12-31")
        assert feed.bounds == ("2024-03-05", "2024-03-05")


class TestResubscription:
    def test_apply_coalesces_changes(self, feed, recorder):
        before = recorder.count
        feed.apply(filter_active=True, date_from="2024-03-01", date_to="2024-03-31")
        assert recorder.count == before + 1
        assert _stalls(recorder.last) == ["B1", "A2", "A1"]

    def test_search_text_narrows_results(self, feed, recorder):
        feed.apply(filter_active=True, date_from="2024-03-01", date_to="2024-03-31", search_text="ana")
        assert _stalls(recorder.last) == ["A2", "A1"]

    def test_single_subscription_alive(self, feed):
        feed.set_search_text("a")
        feed.set_filter_active(True)
        feed.set_date_from("2024-03-01")
        assert len(live_queries.active_subscriptions()) == 1

    def test_reset_filters(self, feed, recorder):
        feed.apply(filter_active=True, date_from="2024-03-01", date_to="2024-03-31")
        feed.reset_filters()
        assert feed.filter_active is False
        assert _stalls(recorder.last) == ["A2"]

    def test_new_payment_today_is_delivered(self, feed, recorder, market):
        payment_service.create_payment(
            id_puesto=market["stalls"]["B1"].id_puesto, monto_cobrado="2", dinero_recibido="2",
            fecha_cobro="2024-03-05", id_usuario=market["collector"].id_usuario,
        )
        assert sorted(_stalls(recorder.last)) == ["A2", "B1"]

    def test_unknown_field_rejected(self, feed):
        with pytest.raises(TypeError):
            feed.apply(page=2)

    def test_close_cancels_subscription(self, feed, recorder, market):
        feed.close()
        count = recorder.count
        payment_service.create_payment(
            id_puesto=market["stalls"]["A1"].id_puesto, monto_cobrado="1", dinero_recibido="1",
            fecha_cobro="2024-03-05", id_usuario=market["collector"].id_usuario,
        )
        assert recorder.count == count
        assert live_queries.active_subscriptions() == []


class TestDebounce:
    def test_burst_runs_one_query(self, db_session, market):
        delivered = []
        done = threading.Event()

        def callback(rows):
            delivered.append(_stalls(rows))
            if len(delivered) == 2:
                done.set()

        feed = PaymentFeed(
            market["collector"].id_usuario, callback, debounce_seconds=0.2, today=lambda: TODAY,
        ).start()
        try:
            feed.set_filter_active(True)
            feed.set_date_from("2024-03-01")
            feed.set_date_to("2024-03-31")
            feed.set_search_text("beto")
            assert done.wait(timeout=5)
        finally:
            feed.close()

        assert delivered == [["A2"], ["B1"]]

    def test_close_cancels_pending_timer(self, db_session, market, recorder):
        feed = PaymentFeed(
            market["collector"].id_usuario, recorder, debounce_seconds=0.2, today=lambda: TODAY,
        ).start()
        feed.set_search_text("beto")
        feed.close()
        threading.Event().wait(0.5)
        assert recorder.count == 1
