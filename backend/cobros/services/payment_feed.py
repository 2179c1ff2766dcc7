# Overview: Collector payment history feed; coalesces filter changes into one live search subscription.

"""
Payment history feed

Holds the inputs of a collector's payment list (search text, date bounds,
whether the date filter is on) and keeps exactly one search_payments
subscription alive for the current combination.

- With the date filter off, both bounds are today.
- With it on, a blank bound falls back to today.
- ``apply()`` takes several changes at once and re-queries once.
- With ``debounce_seconds`` > 0, re-subscription waits for a quiet period
  on a timer thread (inside an app context), so a burst of keystrokes or
  date picks runs a single query.
"""

from __future__ import annotations

import threading
from datetime import date
from typing import Callable

from flask import current_app

from ..composites import PaymentDetail
from ..live_query import Subscription
from . import payment_service


_FIELDS = ("search_text", "date_from", "date_to", "filter_active")


class PaymentFeed:
    def __init__(
        self,
        id_usuario: int,
        callback: Callable[[list[PaymentDetail]], None],
        *,
        debounce_seconds: float | None = None,
        today: Callable[[], date] | None = None,
    ):
        self.id_usuario = id_usuario
        self._callback = callback
        self._app = current_app._get_current_object()
        if debounce_seconds is None:
            debounce_seconds = self._app.config.get("FEED_DEBOUNCE_SECONDS", 0.0)
        self.debounce_seconds = debounce_seconds
        self._today = today or date.today

        self.search_text = ""
        self.date_from = ""
        self.date_to = ""
        self.filter_active = False

        self._lock = threading.RLock()
        self._timer: threading.Timer | None = None
        self._subscription: Subscription[PaymentDetail] | None = None
        self._closed = False

    @property
    def bounds(self) -> tuple[str, str]:
        today = self._today().isoformat()
        if not self.filter_active:
            return today, today
        return (self.date_from.strip() or today, self.date_to.strip() or today)

    def start(self) -> "PaymentFeed":
        self._resubscribe()
        return self

    def apply(self, **changes) -> None:
        unknown = set(changes) - set(_FIELDS)
        if unknown:
            raise TypeError(f"Unknown feed fields: {', '.join(sorted(unknown))}")
        for key, value in changes.items():
            setattr(self, key, value)
        self._schedule()

    def set_search_text(self, value: str) -> None:
        self.apply(search_text=value)

    def set_date_from(self, value: str) -> None:
        self.apply(date_from=value)

    def set_date_to(self, value: str) -> None:
        self.apply(date_to=value)

    def set_filter_active(self, active: bool) -> None:
        self.apply(filter_active=active)

    def reset_filters(self) -> None:
        self.apply(date_from="", date_to="", filter_active=False)

    def close(self) -> None:
        with self._lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if self._subscription is not None:
                self._subscription.cancel()
                self._subscription = None

    def _schedule(self) -> None:
        if self.debounce_seconds <= 0:
            self._resubscribe()
            return
        with self._lock:
            if self._closed:
                return
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce_seconds, self._resubscribe_in_context)
            self._timer.daemon = True
            self._timer.start()

    def _resubscribe_in_context(self) -> None:
        with self._app.app_context():
            try:
                self._resubscribe()
            except Exception:
                current_app.logger.exception("Failed to refresh payment feed for user %s", self.id_usuario)
                raise

    def _resubscribe(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._timer = None
            if self._subscription is not None:
                self._subscription.cancel()
            date_from, date_to = self.bounds
            query = payment_service.search_payments(self.id_usuario, self.search_text, date_from, date_to)
            self._subscription = query.subscribe(self._callback)
