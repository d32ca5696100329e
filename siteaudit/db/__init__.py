"""Database layer package.

Public re-exports so callers can write::

    from siteaudit.db import connection_scope, init_db
"""

from siteaudit.db.connection import connection_scope, get_connection
from siteaudit.db.migrations import init_db

__all__ = ["connection_scope", "get_connection", "init_db"]
