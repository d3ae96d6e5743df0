"""Tests for ledger database resolution."""

from pathlib import Path

from parkledger.database.factories import DB_PATH_ENV, create_sqlite_database, resolve_database_path


def test_explicit_path_wins(monkeypatch, tmp_path):
    monkeypatch.setenv(DB_PATH_ENV, str(tmp_path / "env.db"))

    assert resolve_database_path(str(tmp_path / "explicit.db")) == str(tmp_path / "explicit.db")


def test_environment_path(monkeypatch, tmp_path):
    monkeypatch.setenv(DB_PATH_ENV, str(tmp_path / "env.db"))

    assert resolve_database_path() == str(tmp_path / "env.db")


def test_home_default_creates_folder(monkeypatch, tmp_path):
    monkeypatch.delenv(DB_PATH_ENV, raising=False)
    monkeypatch.setattr(Path, "home", lambda: tmp_path)

    path = resolve_database_path()

    assert path == str(tmp_path / ".parkledger" / "parkledger.db")
    assert (tmp_path / ".parkledger").is_dir()


def test_empty_environment_value_falls_back_to_home(monkeypatch, tmp_path):
    monkeypatch.setenv(DB_PATH_ENV, "")
    monkeypatch.setattr(Path, "home", lambda: tmp_path)

    assert resolve_database_path() == str(tmp_path / ".parkledger" / "parkledger.db")


def test_database_remembers_resolved_path(tmp_path):
    db = create_sqlite_database(str(tmp_path / "ledger.db"))

    assert db.database_path == str(tmp_path / "ledger.db")
    assert db.database_url == f"sqlite:///{tmp_path / 'ledger.db'}"
