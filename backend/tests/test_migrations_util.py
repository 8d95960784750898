from __future__ import annotations

import pytest
from alembic.script import ScriptDirectory
from sqlalchemy import create_engine, inspect, text

from backend.app import migrations
from backend.app.database import Base
from backend.app.migrations import run_database_migrations


def _head_revision(url: str) -> str:
    return ScriptDirectory.from_config(migrations.alembic_config(url)).get_current_head()


def _stored_revision(url: str) -> str:
    engine = create_engine(url)
    try:
        with engine.connect() as connection:
            return connection.scalar(text("SELECT version_num FROM alembic_version"))
    finally:
        engine.dispose()


def test_empty_database_is_upgraded_to_head(tmp_path, monkeypatch) -> None:
    url = f"sqlite:///{tmp_path / 'fresh.db'}"
    monkeypatch.setenv("DATABASE_URL", url)

    run_database_migrations()

    engine = create_engine(url)
    tables = set(inspect(engine).get_table_names())
    engine.dispose()
    assert {"customers", "deliveries", "invoices", "customer_ledger", "payments"} <= tables
    assert _stored_revision(url) == _head_revision(url)


def test_unrelated_tables_do_not_block_the_upgrade(tmp_path, monkeypatch) -> None:
    url = f"sqlite:///{tmp_path / 'shared.db'}"
    engine = create_engine(url)
    with engine.begin() as connection:
        connection.execute(text("CREATE TABLE route_notes (id INTEGER PRIMARY KEY)"))
    engine.dispose()
    monkeypatch.setenv("DATABASE_URL", url)

    run_database_migrations()

    engine = create_engine(url)
    tables = set(inspect(engine).get_table_names())
    engine.dispose()
    assert "route_notes" in tables
    assert "customer_vacations" in tables
    assert _stored_revision(url) == _head_revision(url)


def test_schema_from_create_all_is_stamped(tmp_path, monkeypatch) -> None:
    url = f"sqlite:///{tmp_path / 'current.db'}"
    engine = create_engine(url)
    Base.metadata.create_all(bind=engine)
    engine.dispose()
    monkeypatch.setenv("DATABASE_URL", url)

    run_database_migrations()
    run_database_migrations()

    assert _stored_revision(url) == _head_revision(url)


def test_lock_timeout_falls_back_on_bad_values(monkeypatch) -> None:
    monkeypatch.setenv(migrations.LOCK_TIMEOUT_ENV, "soon")
    assert migrations._lock_timeout() == migrations.DEFAULT_LOCK_TIMEOUT

    monkeypatch.setenv(migrations.LOCK_TIMEOUT_ENV, "-3")
    assert migrations._lock_timeout() == migrations.DEFAULT_LOCK_TIMEOUT

    monkeypatch.setenv(migrations.LOCK_TIMEOUT_ENV, "2.5")
    assert migrations._lock_timeout() == 2.5


def test_migration_lock_times_out_while_held(tmp_path) -> None:
    lock_path = tmp_path / "migrate.lock"

    with migrations.migration_lock(lock_path, timeout=1):
        with pytest.raises(TimeoutError):
            with migrations.migration_lock(lock_path, timeout=0.3):
                pass
