import os

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import DBAPIError, DisconnectionError, IntegrityError, OperationalError

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.core.db_retry import EngineConnection, is_transient_disconnect, run_with_reconnect  # noqa: E402


class FakeConnection:
    def __init__(self, fail_on_disconnect: bool = False):
        self.connects = 0
        self.disconnects = 0
        self.connected = False
        self.fail_on_disconnect = fail_on_disconnect

    def connect(self) -> None:
        self.connects += 1
        self.connected = True

    def disconnect(self) -> None:
        self.disconnects += 1
        self.connected = False
        if self.fail_on_disconnect:
            raise RuntimeError('socket already gone')


class FakePgError(Exception):
    def __init__(self, message: str, pgcode: str | None = None):
        super().__init__(message)
        self.pgcode = pgcode


def _connection_closed() -> OperationalError:
    return OperationalError('UPDATE doctor_availability', {}, Exception('server closed the connection unexpectedly'))


class FlakyOperation:
    def __init__(self, failures: list[Exception], result: str = 'ok'):
        self.failures = list(failures)
        self.result = result
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


def test_run_with_reconnect_returns_result_without_retry() -> None:
    connection = FakeConnection()
    operation = FlakyOperation([])

    assert run_with_reconnect(operation, connection=connection) == 'ok'
    assert operation.calls == 1
    assert connection.connects == 1
    assert connection.disconnects == 0


def test_run_with_reconnect_retries_once_after_connection_closed() -> None:
    connection = FakeConnection()
    operation = FlakyOperation([_connection_closed()], result='retried')

    assert run_with_reconnect(operation, connection=connection) == 'retried'
    assert operation.calls == 2
    assert connection.disconnects == 1
    assert connection.connects == 2


def test_run_with_reconnect_raises_second_transient_failure() -> None:
    connection = FakeConnection()
    second_failure = _connection_closed()
    operation = FlakyOperation([_connection_closed(), second_failure])

    with pytest.raises(OperationalError) as exception_info:
        run_with_reconnect(operation, connection=connection)

    assert exception_info.value is second_failure
    assert operation.calls == 2


def test_run_with_reconnect_does_not_reconnect_on_other_errors() -> None:
    connection = FakeConnection()
    failure = IntegrityError('INSERT INTO appointments', {}, Exception('UNIQUE constraint failed'))
    operation = FlakyOperation([failure])

    with pytest.raises(IntegrityError) as exception_info:
        run_with_reconnect(operation, connection=connection)

    assert exception_info.value is failure
    assert operation.calls == 1
    assert connection.connects == 1
    assert connection.disconnects == 0


def test_run_with_reconnect_ignores_errors_while_closing() -> None:
    connection = FakeConnection(fail_on_disconnect=True)
    operation = FlakyOperation([_connection_closed()])

    assert run_with_reconnect(operation, connection=connection) == 'ok'
    assert connection.connects == 2


def test_run_with_reconnect_uses_custom_transient_predicate() -> None:
    connection = FakeConnection()
    operation = FlakyOperation([ConnectionResetError('peer went away')])

    result = run_with_reconnect(
        operation,
        connection=connection,
        is_transient=lambda error: isinstance(error, ConnectionError),
    )

    assert result == 'ok'
    assert operation.calls == 2


@pytest.mark.parametrize(
    'error',
    [
        DisconnectionError('pool ping failed'),
        DBAPIError('SELECT 1', {}, Exception('boom'), connection_invalidated=True),
        OperationalError('SELECT 1', {}, FakePgError('terminating', pgcode='57P01')),
        OperationalError('SELECT 1', {}, FakePgError('lost', pgcode='08006')),
        OperationalError('SELECT 1', {}, Exception('Can\'t reach database server at db:5432')),
        OperationalError('SELECT 1', {}, Exception('could not connect to server: Connection refused')),
    ],
)
def test_is_transient_disconnect_recognizes_connection_drops(error: Exception) -> None:
    assert is_transient_disconnect(error)


@pytest.mark.parametrize(
    'error',
    [
        OperationalError('SELECT 1', {}, Exception('no such table: doctor_availability')),
        OperationalError('SELECT 1', {}, FakePgError('deadlock detected', pgcode='40P01')),
        IntegrityError('INSERT', {}, Exception('duplicate key')),
        ValueError('not a database error'),
    ],
)
def test_is_transient_disconnect_rejects_other_errors(error: Exception) -> None:
    assert not is_transient_disconnect(error)


def test_engine_connection_connects_once_until_disconnected() -> None:
    engine = create_engine('sqlite://')
    connection = EngineConnection(engine)

    connection.connect()
    connection.connect()
    assert connection.connected

    connection.disconnect()
    assert not connection.connected

    connection.connect()
    assert connection.connected


def test_run_with_reconnect_requires_a_connection() -> None:
    with pytest.raises(TypeError):
        run_with_reconnect(FlakyOperation([]))


def test_run_with_reconnect_closes_before_reconnecting(caplog: pytest.LogCaptureFixture) -> None:
    events = []

    class RecordingConnection(FakeConnection):
        def connect(self) -> None:
            events.append('connect')
            super().connect()

        def disconnect(self) -> None:
            events.append('disconnect')
            super().disconnect()

    def operation() -> str:
        events.append('operation')
        if events.count('operation') == 1:
            raise _connection_closed()
        return 'ok'

    with caplog.at_level('WARNING', logger='backend.core.db_retry'):
        assert run_with_reconnect(operation, connection=RecordingConnection()) == 'ok'

    assert events == ['connect', 'operation', 'disconnect', 'connect', 'operation']
    assert 'Database connection dropped, reconnecting' in caplog.text


def test_run_with_reconnect_propagates_reconnect_failure() -> None:
    class UnreachableConnection(FakeConnection):
        def connect(self) -> None:
            super().connect()
            if self.connects > 1:
                raise ConnectionRefusedError('database is down')

    operation = FlakyOperation([_connection_closed()])

    with pytest.raises(ConnectionRefusedError):
        run_with_reconnect(operation, connection=UnreachableConnection())

    assert operation.calls == 1
