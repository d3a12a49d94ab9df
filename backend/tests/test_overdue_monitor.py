"""Tests for the overdue sweep, its notifications and the scheduler job."""

import json
import time
from datetime import datetime, timedelta, timezone

import httpx
import pytest


class RecordingNotifier:
    def __init__(self):
        self.loan_ids = []

    def notify_overdue(self, loan):
        self.loan_ids.append(loan.id)
        return True


def test_sweep_flags_only_loans_past_deadline(db, make_key, alice, bob):
    from keycabinet.models.key import Key
    from keycabinet.services.checkout_service import CheckoutService
    from keycabinet.services.overdue_monitor import OverdueMonitor

    short_key = make_key(name="Short")
    long_key = make_key(name="Long")
    service = CheckoutService(db)
    short = service.borrow(alice, short_key.id, duration_hours=1)
    long = service.borrow(bob, long_key.id, duration_hours=5)

    notifier = RecordingNotifier()
    result = OverdueMonitor(db, notifier=notifier).sweep(now=short.expected_return_at + timedelta(minutes=1))

    assert result.scanned == 1
    assert result.transitioned == 1
    assert result.loan_ids == [short.id]
    assert notifier.loan_ids == [short.id]

    db.expire_all()
    assert short.status == "overdue"
    assert short.overdue_at is not None
    assert long.status == "active"
    # The key is still out; only the loan changes.
    key = db.query(Key).filter(Key.id == short_key.id).one()
    assert key.status == "borrowed"
    assert key.holder_id == alice.user_id


def test_sweep_is_idempotent(db, make_key, alice):
    from keycabinet.services.checkout_service import CheckoutService
    from keycabinet.services.overdue_monitor import OverdueMonitor

    key = make_key()
    loan = CheckoutService(db).borrow(alice, key.id, duration_hours=1)
    later = loan.expected_return_at + timedelta(hours=2)

    notifier = RecordingNotifier()
    monitor = OverdueMonitor(db, notifier=notifier)
    first = monitor.sweep(now=later)
    db.refresh(loan)
    overdue_at = loan.overdue_at

    second = monitor.sweep(now=later + timedelta(hours=1))
    db.refresh(loan)

    assert first.transitioned == 1
    assert second.scanned == 0
    assert second.transitioned == 0
    assert notifier.loan_ids == [loan.id]
    assert loan.status == "overdue"
    assert loan.overdue_at == overdue_at


def test_sweep_skips_loan_returned_after_scan(db, make_key, alice, monkeypatch):
    """A return landing between the scan and the write wins"""
    from keycabinet.services.checkout_service import CheckoutService
    from keycabinet.services.loan_ledger import LoanLedger
    from keycabinet.services.overdue_monitor import OverdueMonitor

    key = make_key()
    service = CheckoutService(db)
    loan = service.borrow(alice, key.id, duration_hours=1)
    deadline = loan.expected_return_at

    original_find = LoanLedger.find_due_for_overdue

    def find_then_return(self, now):
        candidates = original_find(self, now)
        service.return_key(alice, key.id)
        return candidates

    monkeypatch.setattr(LoanLedger, "find_due_for_overdue", find_then_return)
    notifier = RecordingNotifier()
    result = OverdueMonitor(db, notifier=notifier).sweep(now=deadline + timedelta(minutes=1))

    assert result.scanned == 1
    assert result.transitioned == 0
    assert notifier.loan_ids == []
    db.refresh(loan)
    assert loan.status == "returned"


def test_lending_lifecycle(db, make_key, admin, alice, bob):
    """Borrow, conflict, return, re-borrow, overdue, force return"""
    from keycabinet.models.key import Key
    from keycabinet.services.checkout_service import CheckoutService
    from keycabinet.services.loan_ledger import LoanLedger
    from keycabinet.services.overdue_monitor import OverdueMonitor
    from keycabinet.utils.exceptions import KeyUnavailableError

    key = make_key()
    key_id = key.id
    service = CheckoutService(db)
    ledger = LoanLedger(db)

    first = service.borrow(alice, key_id)
    assert first.status == "active"
    with pytest.raises(KeyUnavailableError):
        service.borrow(bob, key_id)

    service.return_key(alice, key_id)
    db.expire_all()
    assert ledger.get(first.id).status == "returned"
    assert db.query(Key).filter(Key.id == key_id).one().status == "available"

    second = service.borrow(bob, key_id, duration_hours=2)
    assert second.status == "active"

    result = OverdueMonitor(db, notifier=RecordingNotifier()).sweep(
        now=second.expected_return_at + timedelta(seconds=1)
    )
    assert result.loan_ids == [second.id]
    db.expire_all()
    assert ledger.get(second.id).status == "overdue"

    closed = service.force_return(admin, key_id)
    assert closed.id == second.id
    assert closed.status == "returned"
    db.expire_all()
    key = db.query(Key).filter(Key.id == key_id).one()
    assert key.status == "available"
    assert key.holder_id is None
    assert ledger.get(first.id).returned_by == alice.user_id


def test_notifier_without_webhook_only_logs(db, make_key, alice):
    from keycabinet.services.checkout_service import CheckoutService
    from keycabinet.services.notification_service import OverdueNotifier

    key = make_key()
    loan = CheckoutService(db).borrow(alice, key.id)
    notifier = OverdueNotifier(webhook_url="")
    assert notifier.notify_overdue(loan) is False


def test_notifier_posts_event_to_webhook(db, make_key, alice):
    from keycabinet.services.checkout_service import CheckoutService
    from keycabinet.services.notification_service import OverdueNotifier

    key = make_key(name="Archive")
    loan = CheckoutService(db).borrow(alice, key.id)
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(204)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    notifier = OverdueNotifier(webhook_url="https://hooks.example.org/overdue", client=client)

    assert notifier.notify_overdue(loan) is True
    assert received == [
        {
            "event": "loan_overdue",
            "loan_id": loan.id,
            "key_id": key.id,
            "key_name": "Archive",
            "user_id": alice.user_id,
            "borrowed_at": loan.borrowed_at.isoformat(),
            "expected_return_at": loan.expected_return_at.isoformat(),
        }
    ]


def test_notification_failure_does_not_undo_transition(db, make_key, alice):
    from keycabinet.services.checkout_service import CheckoutService
    from keycabinet.services.notification_service import OverdueNotifier
    from keycabinet.services.overdue_monitor import OverdueMonitor

    key = make_key()
    loan = CheckoutService(db).borrow(alice, key.id)

    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
    notifier = OverdueNotifier(webhook_url="https://hooks.example.org/overdue", client=client)
    result = OverdueMonitor(db, notifier=notifier).sweep(now=loan.expected_return_at + timedelta(minutes=1))

    assert result.transitioned == 1
    assert result.notified == 0
    db.refresh(loan)
    assert loan.status == "overdue"


def test_scheduled_sweep_uses_its_own_session(db, make_key, alice):
    from keycabinet.models.loan import Loan
    from keycabinet.scheduler import sweep_overdue_loans
    from keycabinet.services.checkout_service import CheckoutService

    key = make_key()
    loan = CheckoutService(db).borrow(alice, key.id)
    loan_id = loan.id
    db.query(Loan).filter(Loan.id == loan_id).update(
        {Loan.expected_return_at: loan.borrowed_at - timedelta(minutes=1)}
    )
    db.commit()

    sweep_overdue_loans()

    db.expire_all()
    assert db.query(Loan).filter(Loan.id == loan_id).one().status == "overdue"


def test_start_scheduler_registers_sweep_job(engine, monkeypatch):
    from keycabinet.config import settings
    from keycabinet.scheduler import start_scheduler

    monkeypatch.setattr(settings, "overdue_sweep_enabled", True)
    monkeypatch.setattr(settings, "overdue_sweep_interval_seconds", 90)
    scheduler = start_scheduler()
    try:
        job = scheduler.get_job("overdue_sweep")
        assert job is not None
        assert job.trigger.interval == timedelta(seconds=90)
        assert job.max_instances == 1
    finally:
        scheduler.shutdown(wait=True)


def test_start_scheduler_without_sweep(engine, monkeypatch):
    from keycabinet.config import settings
    from keycabinet.scheduler import start_scheduler

    monkeypatch.setattr(settings, "overdue_sweep_enabled", False)
    scheduler = start_scheduler()
    try:
        assert scheduler.get_job("overdue_sweep") is None
    finally:
        scheduler.shutdown(wait=True)


@pytest.mark.skipif(not hasattr(time, "tzset"), reason="needs time.tzset")
def test_first_sweep_is_due_now_on_hosts_ahead_of_utc(engine, monkeypatch):
    from keycabinet.config import settings
    from keycabinet.scheduler import start_scheduler

    monkeypatch.setenv("TZ", "Asia/Tokyo")
    time.tzset()
    monkeypatch.setattr(settings, "overdue_sweep_enabled", True)
    monkeypatch.setattr(settings, "overdue_sweep_interval_seconds", 60)
    scheduler = start_scheduler()
    try:
        next_run = scheduler.get_job("overdue_sweep").next_run_time
        assert abs(next_run - datetime.now(timezone.utc)) < timedelta(minutes=2)
    finally:
        scheduler.shutdown(wait=True)
        monkeypatch.undo()
        time.tzset()
