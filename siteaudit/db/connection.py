"""SQLite connection factory and scoped checkout.

Usage::

    from siteaudit.db.connection import connection_scope

    with connection_scope() as conn:
        cursor = conn.execute("SELECT 1")

``connection_scope`` always closes the connection, whichever way the block
exits.  While the connection is checked out a timer runs; if the block holds
it longer than ``settings.db_checkout_warn_seconds`` the *on_slow* hook is
called with the last statement executed (by default a logged warning).
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, Union

from siteaudit.config import settings

logger = logging.getLogger(__name__)

SlowCheckoutHook = Callable[[float, Optional[str]], None]


def get_connection(db_path: Optional[Union[Path, str]] = None) -> sqlite3.Connection:
    """Open and configure a SQLite connection.

    Every new connection is switched to WAL journal mode for concurrent
    readers.

    Args:
        db_path: Override the DB path.  Defaults to ``settings.db_path``.

    Returns:
        A configured :class:`sqlite3.Connection` with ``row_factory`` set to
        :class:`sqlite3.Row` so columns can be accessed by name.
    """
    path = db_path or settings.db_path

    # Create parent directory if needed (no-op for `:memory:`)
    if db_path is None:
        settings.ensure_workspace()
    elif str(path) != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path), check_same_thread=False, timeout=30.0)
    conn.row_factory = sqlite3.Row

    # PRAGMA
    conn.execute("PRAGMA journal_mode = WAL")

    return conn


def _log_slow_checkout(held_seconds: float, last_statement: Optional[str]) -> None:
    logger.warning(
        "A database connection has been checked out for more than %.1fs "
        "(last statement: %s)",
        held_seconds,
        last_statement or "<none>",
    )


class TrackedConnection:
    """Thin proxy over :class:`sqlite3.Connection` remembering the last statement."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self.last_statement: Optional[str] = None

    def execute(self, sql: str, parameters: Any = ()) -> sqlite3.Cursor:
        self.last_statement = " ".join(sql.split())
        return self._conn.execute(sql, parameters)

    def __enter__(self) -> "TrackedConnection":
        self._conn.__enter__()
        return self

    def __exit__(self, *exc_info: Any) -> Any:
        return self._conn.__exit__(*exc_info)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._conn, name)


@contextmanager
def connection_scope(
    db_path: Optional[Union[Path, str]] = None,
    warn_after: Optional[float] = None,
    on_slow: SlowCheckoutHook = _log_slow_checkout,
) -> Iterator[TrackedConnection]:
    """Check out a connection for the duration of a ``with`` block.

    Args:
        db_path: Override the DB path.
        warn_after: Seconds before *on_slow* fires.  Defaults to
            ``settings.db_checkout_warn_seconds``.
        on_slow: Diagnostic hook called once if the checkout outlives
            *warn_after*.
    """
    threshold = settings.db_checkout_warn_seconds if warn_after is None else warn_after
    tracked = TrackedConnection(get_connection(db_path))
    timer = threading.Timer(threshold, lambda: on_slow(threshold, tracked.last_statement))
    timer.daemon = True
    timer.start()
    try:
        yield tracked
    finally:
        timer.cancel()
        tracked.close()
