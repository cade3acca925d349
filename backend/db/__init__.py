"""Local ledger database package.

Public re-exports so callers can write::

    from backend.db import get_connection, init_db
    from backend.db import kv
"""

from backend.db.connection import get_connection
from backend.db.migrations import init_db
from backend.db import kv

__all__ = ["get_connection", "init_db", "kv"]
