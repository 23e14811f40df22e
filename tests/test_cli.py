"""Tests for the agenda command line."""
import json
from unittest.mock import MagicMock, patch

import pytest

from agenda.cli import main
from agenda.schema import NoteDraft
from agenda.storage import SQLiteStorage
from agenda.store import Store


@pytest.fixture
def cfg_file(tmp_path, monkeypatch):
    monkeypatch.delenv("AGENDA_DB", raising=False)
    monkeypatch.delenv("AGENDA_SUGGEST_URL", raising=False)
    path = tmp_path / "agenda.yaml"
    path.write_text("log_level: WARNING\n")
    return str(path)


def test_stats(tmp_path, cfg_file, capsys):
    db = str(tmp_path / "agenda.db")
    store = Store(SQLiteStorage(db))
    user = store.register("alice", "pw")
    store.add_note(NoteDraft(text="hello", owner_id=user.id, owner_name="alice"))

    assert main(["--config", cfg_file, "--db", db, "stats"]) == 0
    out = capsys.readouterr().out
    assert "users" in out
    assert ["durable", "True"] in [line.split() for line in out.splitlines()]


def test_reminders(tmp_path, cfg_file, capsys):
    db = str(tmp_path / "agenda.db")
    store = Store(SQLiteStorage(db))
    user = store.register("alice", "pw")
    store.add_note(NoteDraft(text="Dentist", owner_id=user.id, owner_name="alice",
                             date="2999-01-01", time="09:00"))

    assert main(["--config", cfg_file, "--db", db, "reminders", "alice"]) == 0
    assert "2999-01-01 09:00  Dentist" in capsys.readouterr().out


def test_reminders_unknown_user(tmp_path, cfg_file, capsys):
    db = str(tmp_path / "agenda.db")
    assert main(["--config", cfg_file, "--db", db, "reminders", "nobody"]) == 1
    assert "Unknown user: nobody" in capsys.readouterr().err


def test_suggest_without_endpoint(tmp_path, cfg_file, capsys):
    db = str(tmp_path / "agenda.db")
    Store(SQLiteStorage(db)).register("alice", "pw")
    assert main(["--config", cfg_file, "--db", db, "suggest", "alice", "call mom"]) == 2
    assert "suggest_url" in capsys.readouterr().err


def test_suggest_add(tmp_path, monkeypatch, capsys):
    monkeypatch.delenv("AGENDA_DB", raising=False)
    monkeypatch.delenv("AGENDA_SUGGEST_URL", raising=False)
    cfg = tmp_path / "agenda.yaml"
    cfg.write_text("log_level: WARNING\nsuggest_url: http://localhost:9000/suggest\n")
    db = str(tmp_path / "agenda.db")
    store = Store(SQLiteStorage(db))
    user = store.register("alice", "pw")

    reply = json.dumps({
        "improvedText": "Call mom",
        "extractedData": {"date": "2999-01-01", "time": "18:00", "location": None,
                          "categories": ["Personal", "Unknown"]},
    })
    with patch("agenda.suggest.requests.post", return_value=MagicMock(text=reply)) as post:
        code = main(["--config", str(cfg), "--db", db, "suggest", "alice", "llamar a mama", "--add"])
    assert code == 0
    assert '"Personal"' in post.call_args.kwargs["json"]["prompt"]

    out = capsys.readouterr().out
    assert '"improvedText": "Call mom"' in out
    notes = store.get_notes_for_user(user.id).my_notes
    assert len(notes) == 1
    assert notes[0].text == "Call mom"
    assert notes[0].categories == ["Personal"]
    assert notes[0].time == "18:00"
