"""Run a database operation with one reconnect-and-retry on dropped connections."""

import logging
from typing import Callable, TypeVar

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, DisconnectionError, OperationalError
from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_ATTEMPTS = 2

DISCONNECT_MESSAGES = (
    "server closed the connection",
    "server has closed the connection",
    "connection already closed",
    "could not connect to server",
    "can't reach database server",
    "connection refused",
    "terminating connection",
    "connection reset by peer",
    "ssl connection has been closed unexpectedly",
    "lost connection to",
)
# SQLSTATE class 08 (connection exception) and operator-initiated shutdowns.
DISCONNECT_SQLSTATE_PREFIXES = ("08",)
DISCONNECT_SQLSTATES = {"57P01", "57P02", "57P03"}


def is_transient_disconnect(error: BaseException) -> bool:
    if isinstance(error, DisconnectionError):
        return True

    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return True

    if not isinstance(error, OperationalError):
        return False

    sqlstate = getattr(error.orig, "pgcode", None) or getattr(error.orig, "sqlstate", None)
    if sqlstate and (sqlstate.startswith(DISCONNECT_SQLSTATE_PREFIXES) or sqlstate in DISCONNECT_SQLSTATES):
        return True

    message = str(error.orig if error.orig is not None else error).lower()
    return any(signature in message for signature in DISCONNECT_MESSAGES)


class EngineConnection:
    """Tracks whether the engine is known to reach the database.

    ``connect`` is idempotent: it pings once and then trusts the pool until
    ``disconnect`` throws the pool away.
    """

    def __init__(self, bind: Engine):
        self.bind = bind
        self.connected = False

    def connect(self) -> None:
        if self.connected:
            return
        with self.bind.connect() as connection:
            connection.execute(text("SELECT 1"))
        self.connected = True

    def disconnect(self) -> None:
        self.connected = False
        self.bind.dispose()


def _reconnect(connection) -> Callable[[RetryCallState], None]:
    def before_retry(retry_state: RetryCallState) -> None:
        logger.warning("Database connection dropped, reconnecting: %s", retry_state.outcome.exception())
        try:
            connection.disconnect()
        except Exception:
            logger.debug("Ignoring error while closing dropped connection", exc_info=True)
        connection.connect()

    return before_retry


def run_with_reconnect(
    operation: Callable[[], T],
    *,
    connection,
    is_transient: Callable[[BaseException], bool] = is_transient_disconnect,
) -> T:
    """Call ``operation``; on a transient disconnect reconnect and call it once more.

    This is a plain retry, not a transaction replay. Multi-step operations must
    be safe to run again after a failed first attempt.
    """
    connection.connect()

    retrying = Retrying(
        retry=retry_if_exception(is_transient),
        stop=stop_after_attempt(MAX_ATTEMPTS),
        before_sleep=_reconnect(connection),
        reraise=True,
    )
    return retrying(operation)
