import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker
from typer.testing import CliRunner

import app.db
from app.db import crud
from cli import app as cli_app

runner = CliRunner()


@pytest.fixture
def fresh_database(tmp_path, monkeypatch):
    engine = create_engine(f"sqlite:///{tmp_path / 'cli.db'}", connect_args={"check_same_thread": False})
    monkeypatch.setattr(app.db, "engine", engine)
    monkeypatch.setattr(app.db, "SessionLocal", sessionmaker(autocommit=False, autoflush=False, bind=engine))
    yield engine
    engine.dispose()


def test_create_superadmin_on_empty_database(fresh_database):
    assert not inspect(fresh_database).get_table_names()

    result = runner.invoke(
        cli_app,
        ["user", "create-superadmin", "-e", "boot@pharmzone.test", "--first-name", "Boot", "--last-name", "Admin"],
        env={"PHARMZONE_ADMIN_PASSWORD": "secret123"},
    )
    assert result.exit_code == 0, result.output
    assert "users" in inspect(fresh_database).get_table_names()

    session = app.db.SessionLocal()
    try:
        dbuser = crud.get_user_by_email(session, "boot@pharmzone.test")
        assert dbuser is not None
        assert dbuser.role.value == "superadmin"
    finally:
        session.close()

    result = runner.invoke(cli_app, ["user", "list"])
    assert result.exit_code == 0, result.output
    assert "1 users" in result.output
