"""Database settings for gridswap.

SQLite is the default and is what a single bot process needs. PostgreSQL is
supported for deployments where the admin CLI and the bot run on different
hosts.
"""

from typing import Optional
from urllib.parse import quote_plus

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


SUPPORTED_DB_TYPES = ("sqlite", "postgresql")


class DatabaseSettings(BaseSettings):
    """Connection settings, from arguments or GRIDSWAP_* environment variables.

    Either ``database_url`` is given directly, or the URL is assembled from
    ``db_type`` and the connection components:

        GRIDSWAP_DATABASE_URL=sqlite:///data/gridswap.db
        GRIDSWAP_DB_TYPE=postgresql GRIDSWAP_DB_HOST=... GRIDSWAP_DB_PASSWORD=...
    """

    model_config = SettingsConfigDict(env_prefix="GRIDSWAP_", env_file=".env", extra="ignore")

    database_url: Optional[str] = None

    db_type: str = "sqlite"
    db_name: str = "gridswap.db"
    db_host: Optional[str] = None
    db_port: Optional[int] = None
    db_user: Optional[str] = None
    db_password: Optional[SecretStr] = None

    # SQLite: seconds a writer waits for a lock held by another process
    # (the admin CLI editing grids while the bot checkpoints)
    sqlite_busy_timeout: float = 5.0

    # PostgreSQL pool
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800

    echo_sql: bool = False

    def get_database_url(self) -> str:
        """SQLAlchemy URL for these settings.

        Raises:
            ValueError: If the database type is unknown or PostgreSQL
                components are missing.
        """
        if self.database_url:
            return self.database_url

        if self.db_type not in SUPPORTED_DB_TYPES:
            raise ValueError(
                f"Unsupported database type: {self.db_type} (expected one of {', '.join(SUPPORTED_DB_TYPES)})"
            )

        if self.db_type == "sqlite":
            return f"sqlite+pysqlite:///{self.db_name}"

        missing = [
            name for name, value in (
                ("db_host", self.db_host),
                ("db_port", self.db_port),
                ("db_user", self.db_user),
                ("db_password", self.db_password),
            )
            if value in (None, "")
        ]
        if missing:
            raise ValueError(f"PostgreSQL requires {', '.join(missing)}")

        user = quote_plus(self.db_user)
        password = quote_plus(self.db_password.get_secret_value())
        return f"postgresql+psycopg2://{user}:{password}@{self.db_host}:{self.db_port}/{self.db_name}"
