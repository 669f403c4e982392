"""Tests for the command-line entry point."""

import pytest

from barber_booker import cli
from barber_booker.models import BookingResult


class FakeClient:
    instances = []

    def __init__(self, base_url, *, timeout=None, verify=True):
        self.base_url = base_url
        self.timeout = timeout
        self.verify = verify
        self.configs = []
        self.result = BookingResult(success=True, message="Appointment booked successfully", date="2025-11-16", time="10:00")
        FakeClient.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return None

    def complete_booking(self, config):
        self.configs.append(config)
        return self.result


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "MOBILE",
        "DATE",
        "TIME",
        "BARBER_URL",
        "SCHEDULER_ID",
        "BASE_URL",
        "HEADLESS",
        "SLOW_MO_MS",
        "EXPLORE_WAIT_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    FakeClient.instances = []


def test_book_success_exits_zero(monkeypatch, capsys):
    monkeypatch.setattr(cli, "SessionedBookingClient", FakeClient)

    code = cli.main(["book", "--date", "2025-11-16", "--time", "10:00", "--scheduler-id", "7001"])

    assert code == 0
    config = FakeClient.instances[0].configs[0]
    assert (config.date, config.time, config.scheduler_id) == ("2025-11-16", "10:00", 7001)
    out = capsys.readouterr().out
    assert "SUCCESS" in out
    assert "Appointment: 2025-11-16 at 10:00" in out


def test_book_failure_exits_one(monkeypatch, capsys):
    class FailingClient(FakeClient):
        def complete_booking(self, config):
            return BookingResult(success=False, message="Login failed")

    monkeypatch.setattr(cli, "SessionedBookingClient", FailingClient)

    assert cli.main(["book"]) == 1
    out = capsys.readouterr().out
    assert "FAILED" in out
    assert "Login failed" in out
    assert "No date/time specified" in out


def test_book_crash_exits_one(monkeypatch):
    class CrashingClient(FakeClient):
        def __init__(self, *args, **kwargs):
            raise OSError("no sockets left")

    monkeypatch.setattr(cli, "SessionedBookingClient", CrashingClient)

    assert cli.main(["book"]) == 1


def test_invalid_date_exits_two(monkeypatch):
    monkeypatch.setattr(cli, "SessionedBookingClient", FakeClient)

    assert cli.main(["book", "--date", "16-11-2025"]) == 2
    assert FakeClient.instances == []


def test_explore_without_url_prints_usage(capsys):
    assert cli.main(["explore"]) == 1
    assert "BARBER_URL" in capsys.readouterr().out


def test_explore_runs_with_env_url(monkeypatch):
    seen = {}

    async def fake_run_exploration(url, *, headless, wait_seconds, slow_mo_ms):
        seen.update(url=url, headless=headless, wait_seconds=wait_seconds, slow_mo_ms=slow_mo_ms)

    monkeypatch.setenv("BARBER_URL", "https://barber.test/book")
    monkeypatch.setattr(cli, "run_exploration", fake_run_exploration)

    assert cli.main(["explore", "--headless", "--wait-seconds", "5"]) == 0
    assert seen == {"url": "https://barber.test/book", "headless": True, "wait_seconds": 5, "slow_mo_ms": 500}


def test_show_browser_overrides_headless_env(monkeypatch):
    seen = {}

    async def fake_run_exploration(url, *, headless, wait_seconds, slow_mo_ms):
        seen["headless"] = headless

    monkeypatch.setenv("BARBER_URL", "https://barber.test/book")
    monkeypatch.setenv("HEADLESS", "true")
    monkeypatch.setattr(cli, "run_exploration", fake_run_exploration)

    assert cli.main(["explore", "--show-browser"]) == 0
    assert seen == {"headless": False}


def test_window_flags_are_exclusive():
    with pytest.raises(SystemExit):
        cli.main(["explore", "--show-browser", "--headless"])
