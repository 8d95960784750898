"""Bring the billing schema to the latest Alembic revision on startup."""

from __future__ import annotations

import logging
import os
import sys
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect

from . import models  # noqa: F401  (registers the billing tables on Base.metadata)
from .database import SQLALCHEMY_DATABASE_URL, Base

LOGGER = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent.parent
LOCK_FILENAME = ".alembic-migration.lock"
LOCK_POLL_SECONDS = 0.25
LOCK_TIMEOUT_ENV = "ALEMBIC_MIGRATION_LOCK_TIMEOUT"
DEFAULT_LOCK_TIMEOUT = 30.0

if os.name == "posix":  # pragma: no cover - platform specific
    import fcntl

    def _try_lock(handle) -> None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)

    def _unlock(handle) -> None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)

else:  # pragma: no cover - platform specific
    import msvcrt

    def _try_lock(handle) -> None:
        msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)

    def _unlock(handle) -> None:
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)


def _lock_timeout() -> float:
    raw = os.getenv(LOCK_TIMEOUT_ENV)
    try:
        value = float(raw) if raw else DEFAULT_LOCK_TIMEOUT
    except ValueError:
        value = -1.0
    if value <= 0:
        LOGGER.warning(
            "Ignoring %s=%r; waiting %.1f seconds", LOCK_TIMEOUT_ENV, raw, DEFAULT_LOCK_TIMEOUT
        )
        return DEFAULT_LOCK_TIMEOUT
    return value


@contextmanager
def migration_lock(path: Path, *, timeout: float) -> Iterator[None]:
    """Hold an exclusive file lock so only one worker migrates at a time."""

    path.parent.mkdir(parents=True, exist_ok=True)
    deadline = time.monotonic() + timeout
    with path.open("a+") as handle:
        while True:
            try:
                _try_lock(handle)
                break
            except OSError as error:
                if time.monotonic() >= deadline:
                    raise TimeoutError("Timed out waiting for the migration lock") from error
                time.sleep(LOCK_POLL_SECONDS)
        try:
            yield
        finally:
            _unlock(handle)


def alembic_config(database_url: str) -> Config:
    config = Config(str(BASE_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(BASE_DIR / "alembic"))
    config.set_main_option("sqlalchemy.url", database_url)
    return config


def _existing_tables(database_url: str) -> set[str]:
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    engine = create_engine(database_url, connect_args=connect_args)
    try:
        return set(inspect(engine).get_table_names())
    finally:
        engine.dispose()


def run_database_migrations() -> None:
    """Upgrade to head, stamping schemas that were created with ``create_all``."""

    if str(BASE_DIR) not in sys.path:
        sys.path.insert(0, str(BASE_DIR))

    database_url = os.getenv("DATABASE_URL") or SQLALCHEMY_DATABASE_URL
    config = alembic_config(database_url)

    with migration_lock(BASE_DIR / LOCK_FILENAME, timeout=_lock_timeout()):
        tables = _existing_tables(database_url)
        if "alembic_version" not in tables and set(Base.metadata.tables) <= tables:
            LOGGER.info("Billing tables exist without Alembic metadata; stamping head")
            command.stamp(config, "head")
            return

        LOGGER.info("Upgrading billing schema to head")
        command.upgrade(config, "head")
