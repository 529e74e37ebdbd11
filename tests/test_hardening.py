from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

import pytest
from sqlalchemy import create_engine

from app.core import startup_checks
from app.core.logging_setup import JsonFormatter, mask_sensitive
from app.core.request_context import bind_principal, clear_request_context, set_request_context

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"


def _alembic_db(tmp_path: Path, version: str) -> str:
    db_path = tmp_path / "state.db"
    conn = sqlite3.connect(db_path)
    conn.execute("CREATE TABLE alembic_version (version_num VARCHAR(32) NOT NULL)")
    conn.execute("INSERT INTO alembic_version (version_num) VALUES (?)", (version,))
    conn.commit()
    conn.close()
    return f"sqlite:///{db_path}"


def test_migration_check_fails_when_pending_migration(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "development")
    engine = create_engine(_alembic_db(tmp_path, "000000000000"))

    with pytest.raises(RuntimeError, match="Pending migrations"):
        startup_checks.ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_INI)


def test_migration_check_passes_at_head(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "development")
    engine = create_engine(_alembic_db(tmp_path, "0001_create_schema"))

    startup_checks.ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_INI)


def test_migration_check_fails_without_version_table(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "development")
    engine = create_engine(f"sqlite:///{tmp_path / 'empty.db'}")

    with pytest.raises(RuntimeError, match="no migration state"):
        startup_checks.ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_INI)


def test_cors_blocks_unknown_origin(client):
    blocked = client.options(
        "/health",
        headers={"origin": "https://blocked-origin.example", "access-control-request-method": "GET"},
    )

    assert blocked.status_code == 400
    assert blocked.headers.get("access-control-allow-origin") is None


def test_mask_sensitive_hides_tokens_and_passwords():
    masked = mask_sensitive('Authorization: Bearer abc.def.ghi password="hunter2" api_key=XYZ')

    assert "abc.def.ghi" not in masked
    assert "hunter2" not in masked
    assert "XYZ" not in masked


def test_json_formatter_includes_request_context():
    set_request_context(request_id="req-1")
    bind_principal(type("Principal", (), {"id": 7, "tenant_id": 3})())
    record = logging.LogRecord("app.test", logging.INFO, __file__, 1, "sent %s", ("ok",), None)
    record.device_id = "loja-1"

    try:
        payload = json.loads(JsonFormatter("%(message)s").format(record))
    finally:
        clear_request_context()

    assert payload["request_id"] == "req-1"
    assert payload["tenant_id"] == "3"
    assert payload["user_id"] == "7"
    assert payload["message"] == "sent ok"
    assert payload["device_id"] == "loja-1"
