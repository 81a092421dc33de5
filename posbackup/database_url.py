"""Utilities to assemble and parse the DATABASE_URL used by the restore client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional
from urllib.parse import quote_plus

from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import ArgumentError

from .errors import ConfigurationMissingError

_DEFAULT_PORTS = {"mysql": 3306, "mariadb": 3306, "postgresql": 5432}
_DRIVER_ALIASES = {"postgres": "postgresql", "mariadb": "mysql"}


def _get_env(env: Mapping[str, str], name: str) -> str | None:
    """Return the environment variable when it is a non-empty string."""

    value = env.get(name)
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def get_database_url(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """Return the connection string configured for the POS database.

    Priority order:

    1. ``DATABASE_URL`` (already complete connection string).
    2. Individual ``DB_*`` environment variables, as long as ``DB_NAME`` is set.

    ``None`` means nothing usable is configured; callers decide whether that
    is fatal.
    """

    env = os.environ if environ is None else environ

    explicit_url = _get_env(env, "DATABASE_URL")
    if explicit_url:
        return explicit_url

    database = _get_env(env, "DB_NAME")
    if not database:
        return None

    driver = _get_env(env, "DB_DRIVER") or "mysql"
    user = _get_env(env, "DB_USER") or "root"
    password = _get_env(env, "DB_PASSWORD")
    host = _get_env(env, "DB_HOST") or "localhost"
    port = _get_env(env, "DB_PORT") or str(_DEFAULT_PORTS.get(driver, 3306))

    user_part = quote_plus(user)
    if password is None:
        auth_part = user_part
    else:
        auth_part = f"{user_part}:{quote_plus(password)}"

    return f"{driver}://{auth_part}@{host}:{port}/{database}"


@dataclass(frozen=True, slots=True)
class RestoreTarget:
    """Connection parameters forwarded to the external restore client."""

    driver: str
    host: str
    port: int
    user: Optional[str]
    database: str
    password: Optional[str] = field(default=None, repr=False)

    def describe(self) -> str:
        """Password-free rendering for logs and prompts."""

        user = f"{self.user}@" if self.user else ""
        return f"{self.driver}://{user}{self.host}:{self.port}/{self.database}"


def parse_restore_target(database_url: Optional[str]) -> RestoreTarget:
    """Parse *database_url* into a :class:`RestoreTarget`.

    SQLAlchemy URLs can embed the driver name (``mysql+pymysql``) which is not
    understood by the command line clients, so only the dialect is kept.
    """

    if not database_url or not database_url.strip():
        raise ConfigurationMissingError("Aucune configuration de base de données trouvée (DATABASE_URL).")

    try:
        url = make_url(database_url.strip())
    except ArgumentError as exc:
        raise ConfigurationMissingError(f"DATABASE_URL invalide: {exc}") from exc

    dialect = url.drivername.split("+")[0].lower()
    driver = _DRIVER_ALIASES.get(dialect, dialect)
    if driver not in _DEFAULT_PORTS:
        raise ConfigurationMissingError(
            f"Type de base de données non supporté pour la restauration: {url.drivername!r}."
        )
    if not url.database:
        raise ConfigurationMissingError("DATABASE_URL ne précise pas le nom de la base.")

    return RestoreTarget(
        driver=driver,
        host=url.host or "localhost",
        port=url.port or _DEFAULT_PORTS[driver],
        user=url.username,
        database=url.database,
        password=url.password,
    )


__all__ = ["RestoreTarget", "get_database_url", "parse_restore_target"]
