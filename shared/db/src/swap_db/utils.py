"""Shared utilities for database-related operations."""

from urllib.parse import urlparse, urlunparse


def redact_db_url(url: str) -> str:
    """Redact the password from a database URL for safe logging.

    Scheme, username, host, port and path are kept. URLs without a password
    (e.g. SQLite file paths) are returned unchanged.

    Example::

        >>> redact_db_url("postgresql+psycopg2://bot:secret@db:5432/gridswap")
        'postgresql+psycopg2://bot:***@db:5432/gridswap'
        >>> redact_db_url("sqlite+pysqlite:///gridswap.db")
        'sqlite+pysqlite:///gridswap.db'
    """
    parsed = urlparse(url)
    if not parsed.password:
        return url
    host = parsed.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    if parsed.port:
        host += f":{parsed.port}"
    return urlunparse(parsed._replace(netloc=f"{parsed.username}:***@{host}"))
