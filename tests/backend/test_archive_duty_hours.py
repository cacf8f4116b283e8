import os

import pytest
from sqlalchemy.exc import OperationalError

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend import archive_duty_hours  # noqa: E402
from backend.services.duty_hours import DutyHourSweep  # noqa: E402


class FakeSession:
    def __init__(self):
        self.closed = False

    def close(self) -> None:
        self.closed = True


def test_main_prints_sweep_summary(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture) -> None:
    session = FakeSession()
    received = {}

    def fake_sweep(db, *criteria):
        received['db'] = db
        received['criteria'] = criteria
        return DutyHourSweep(archived=2, deleted=1)

    monkeypatch.setattr(archive_duty_hours, 'SessionLocal', lambda: session)
    monkeypatch.setattr(archive_duty_hours, 'archive_expired_duty_hours', fake_sweep)

    exit_code = archive_duty_hours.main(['--clinic-id', 'main'])

    assert exit_code == 0
    assert capsys.readouterr().out.strip() == 'archived=2 deleted=1'
    assert received['db'] is session
    assert len(received['criteria']) == 1
    assert session.closed


def test_main_reports_storage_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    session = FakeSession()

    def failing_sweep(db, *criteria):
        raise OperationalError('UPDATE doctor_availability', {}, Exception('permission denied'))

    monkeypatch.setattr(archive_duty_hours, 'SessionLocal', lambda: session)
    monkeypatch.setattr(archive_duty_hours, 'archive_expired_duty_hours', failing_sweep)

    assert archive_duty_hours.main([]) == 1
    assert session.closed
