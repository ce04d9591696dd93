from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker

from oddsvault import manage
from oddsvault.db_init import create_tables
from oddsvault.errors import InvalidOddsError
from oddsvault.models import Role


@pytest.fixture
def cli(engine, cache, monkeypatch):
    monkeypatch.setattr(manage, "SessionLocal", sessionmaker(bind=engine, expire_on_commit=False))
    monkeypatch.setattr(manage, "get_cache", lambda: cache)
    return manage.main


def _start():
    return (datetime.utcnow() + timedelta(days=10)).replace(microsecond=0).isoformat()


def test_add_creator_and_odds_helpers(session, cache):
    creator = manage.add_creator(session, "bookie", "bookie@example.com")
    assert creator.role is Role.BOOKMAKER

    service = manage.build_service(session, cache)
    view = manage.add_odds(service, "Football", "Arsenal", "Chelsea", _start(),
                           "2.10", "3.4", "3.60", created_by=creator.id)
    assert str(view.draw_odds) == "3.40"
    assert view.created_by_id == creator.id


def test_add_odds_rejects_bad_odds(session, cache):
    service = manage.build_service(session, cache)
    with pytest.raises(InvalidOddsError):
        manage.add_odds(service, "Football", "Arsenal", "Chelsea", _start(), "abc", "3.40", "3.60")


def test_cli_round_trip(cli, capsys):
    assert cli(["add-creator", "--username", "bookie", "--email", "bookie@example.com"]) == 0
    assert "creator id=1" in capsys.readouterr().out

    assert cli(["add-odds", "--sport", "Football", "--home", "Arsenal", "--away", "Chelsea",
                "--start", _start(), "--oh", "2.10", "--od", "3.40", "--oa", "3.60",
                "--created-by", "1"]) == 0
    assert "odds created id=1" in capsys.readouterr().out

    assert cli(["show", "--id", "1", "--margin"]) == 0
    out = capsys.readouterr().out
    assert "Arsenal vs Chelsea" in out
    assert "margin=4.8" in out

    assert cli(["deactivate", "--id", "1"]) == 0
    assert cli(["show", "--id", "1"]) == 0
    assert "active=False" in capsys.readouterr().out

    assert cli(["delete", "--id", "1"]) == 0
    capsys.readouterr()
    assert cli(["show", "--id", "1"]) == 1
    assert "[ERROR] NOT_FOUND" in capsys.readouterr().out


def test_cli_reports_invalid_odds(cli, capsys):
    code = cli(["add-odds", "--sport", "Football", "--home", "Arsenal", "--away", "Chelsea",
                "--start", _start(), "--oh", "1.00", "--od", "3.40", "--oa", "3.60"])
    assert code == 1
    assert "[ERROR] INVALID_ODDS" in capsys.readouterr().out


def test_create_tables_registers_both_tables():
    engine = create_engine("sqlite://")
    create_tables(engine)
    assert {"users", "betting_odds"} <= set(inspect(engine).get_table_names())
    engine.dispose()
