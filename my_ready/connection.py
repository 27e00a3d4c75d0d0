"""Database connection management."""

from __future__ import annotations

import mysql.connector

from my_ready.config import ConnectionConfig

DEFAULT_CHARSET = "utf8mb4"
DEFAULT_COLLATION = "utf8mb4_0900_ai_ci"

# Client errnos for a dropped session: 2006 gone away, 2013 and 2055 lost.
CONNECTION_LOST_ERRNOS = frozenset({2006, 2013, 2055})


def connect(
    cfg: ConnectionConfig,
    autocommit: bool = True,
    connection_timeout: int = 10,
):
    """Open a MySQL connection for the scanner.

    Cursors are buffered so a follow-up SHOW WARNINGS never trips over an
    unread result set.
    """
    return mysql.connector.connect(
        host=cfg.host,
        port=cfg.port,
        user=cfg.user,
        password=cfg.password,
        database=cfg.database,
        charset=DEFAULT_CHARSET,
        collation=DEFAULT_COLLATION,
        autocommit=autocommit,
        buffered=True,
        connection_timeout=connection_timeout,
    )


def get_server_version(conn) -> str:
    """Return the MySQL server version string."""
    with conn.cursor() as cur:
        cur.execute("SELECT VERSION()")
        return cur.fetchone()[0]


def is_connection_lost(exc: BaseException) -> bool:
    """True when `exc` means the connection itself is unusable, not one query."""
    if isinstance(exc, mysql.connector.errors.InterfaceError):
        return True
    return isinstance(exc, mysql.connector.Error) and exc.errno in CONNECTION_LOST_ERRNOS
