"""
Storage - Configuration.

============================================================
PURPOSE
============================================================
Database and page type settings, read from the environment.
A .env file in the working directory is honoured via
python-dotenv.

============================================================
ENVIRONMENT
============================================================
DATABASE_URL        SQLAlchemy URL (default sqlite:///pagetree.db)
DB_POOL_SIZE        Pooled connections (non-SQLite only)
DB_MAX_OVERFLOW     Connections beyond pool size
DB_POOL_TIMEOUT     Seconds to wait for a pooled connection
DB_POOL_RECYCLE     Recycle connections after N seconds
DB_ECHO             Log SQL statements (true/false)
PAGE_TYPES_PATH     JSON file with page type definitions

============================================================
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv
from sqlalchemy.pool import StaticPool

from core.exceptions import InvalidConfigError


DEFAULT_DATABASE_URL = "sqlite:///pagetree.db"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _parse_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidConfigError(key, raw, "expected an integer")
    if value < 0:
        raise InvalidConfigError(key, raw, "must not be negative")
    return value


def _parse_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None:
        return default
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise InvalidConfigError(key, raw, "expected true or false")


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Connection settings for the page store.

    Pool settings are ignored for SQLite URLs, which use
    SQLAlchemy's default single-file pooling.
    """

    url: str = DEFAULT_DATABASE_URL
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: int = 30
    pool_recycle: int = 1800
    echo: bool = False
    page_types_path: Optional[str] = None

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def is_memory(self) -> bool:
        return self.url in ("sqlite://", "sqlite:///:memory:")

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        load_dotenv_file: bool = True,
    ) -> "DatabaseConfig":
        """
        Build configuration from environment variables.

        Args:
            env: Mapping to read from (defaults to os.environ)
            load_dotenv_file: Load a .env file first

        Raises:
            InvalidConfigError: If a numeric or boolean value is malformed
        """
        if env is None:
            if load_dotenv_file:
                load_dotenv()
            env = os.environ

        return cls(
            url=env.get("DATABASE_URL") or DEFAULT_DATABASE_URL,
            pool_size=_parse_int(env, "DB_POOL_SIZE", cls.pool_size),
            max_overflow=_parse_int(env, "DB_MAX_OVERFLOW", cls.max_overflow),
            pool_timeout=_parse_int(env, "DB_POOL_TIMEOUT", cls.pool_timeout),
            pool_recycle=_parse_int(env, "DB_POOL_RECYCLE", cls.pool_recycle),
            echo=_parse_bool(env, "DB_ECHO", cls.echo),
            page_types_path=env.get("PAGE_TYPES_PATH") or None,
        )

    def engine_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for sqlalchemy.create_engine."""
        kwargs: Dict[str, Any] = {"echo": self.echo, "future": True}
        if self.is_memory:
            # One shared connection, or every checkout sees an empty database
            kwargs.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
        if not self.is_sqlite:
            kwargs.update(
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_timeout=self.pool_timeout,
                pool_recycle=self.pool_recycle,
                pool_pre_ping=True,
            )
        return kwargs

    def safe_url(self) -> str:
        """URL without credentials, for log lines."""
        return self.url.split("@")[-1]
