import threading
from datetime import timedelta

from scheduler import ExpirationScheduler


def test_run_once_returns_scan_results():
    results = {"remindersSent": 1, "expirationsSent": 0, "errors": []}
    scheduler = ExpirationScheduler(lambda: results, interval_seconds=60)

    assert scheduler.run_once() == results


def test_run_once_survives_scan_failure():
    def broken_scan():
        raise RuntimeError("database unavailable")

    scheduler = ExpirationScheduler(broken_scan, interval_seconds=60)

    assert scheduler.run_once() is None


def test_background_loop_runs_on_start_and_stops():
    ran = threading.Event()

    def scan():
        ran.set()
        return {"remindersSent": 0, "expirationsSent": 0, "errors": []}

    scheduler = ExpirationScheduler(scan, interval_seconds=3600)
    scheduler.start()
    try:
        assert ran.wait(5)
    finally:
        scheduler.stop()

    assert scheduler.running is False
    assert not scheduler._thread.is_alive()


def test_scheduler_drives_subscription_scan(subscription_service, employee, make_subscription, email_service):
    make_subscription(employee, expires_in=timedelta(days=2))

    scheduler = ExpirationScheduler(subscription_service.scan_and_notify, interval_seconds=3600)
    results = scheduler.run_once()

    assert results["remindersSent"] == 1
    assert len(email_service.of_kind("reminder")) == 1
