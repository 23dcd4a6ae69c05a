"""Tests for the command-line interface."""

import pytest
from click.testing import CliRunner

from novel_ledger.cli import main
from novel_ledger.config import get_settings
from novel_ledger.persistence import load_session


@pytest.fixture
def runner(monkeypatch, tmp_path):
    monkeypatch.setenv("NL_REMOTE_URL", "")
    monkeypatch.setenv("NL_DATA_DIR", str(tmp_path))
    get_settings.cache_clear()
    yield CliRunner()
    get_settings.cache_clear()


@pytest.fixture
def session(tmp_path):
    return tmp_path / "session.json"


def invoke(runner, session, *args):
    return runner.invoke(main, ["--session", str(session), *args])


class TestBookCommands:
    """Tests for book management commands."""

    def test_add_and_list(self, runner, session):
        result = invoke(runner, session, "book", "add", "The Long Road", "--genre", "Fantasy")
        assert result.exit_code == 0, result.output
        assert "New book created" in result.output

        result = invoke(runner, session, "book", "list")
        assert "The Long Road" in result.output
        assert load_session(session).books[0].genre == "Fantasy"

    def test_delete_and_restore(self, runner, session):
        invoke(runner, session, "book", "add", "Ember")

        result = invoke(runner, session, "book", "delete", "Ember")
        assert "Book moved to trash" in result.output
        assert "Ember" in invoke(runner, session, "book", "trash").output
        assert load_session(session).current_book_id is None

        result = invoke(runner, session, "book", "restore", "Ember")
        assert result.exit_code == 0, result.output
        assert not load_session(session).books[0].is_deleted

    def test_unknown_book(self, runner, session):
        result = invoke(runner, session, "book", "switch", "Nowhere")
        assert result.exit_code != 0
        assert "No book matches" in result.output


class TestEntityCommands:
    """Tests for entity and history commands."""

    def test_add_requires_book(self, runner, session):
        result = invoke(runner, session, "entity", "add", "character", "-f", "name=Kaelin")
        assert result.exit_code != 0
        assert "No book is currently selected" in result.output

    def test_add_update_restore(self, runner, session):
        invoke(runner, session, "book", "add", "Ember")
        result = invoke(
            runner, session, "entity", "add", "character", "-f", "name=Kaelin", "-f", 'traits=["wary"]'
        )
        assert result.exit_code == 0, result.output
        entity_id = load_session(session).books[0].characters[0].id

        result = invoke(runner, session, "entity", "update", "character", entity_id[:8], "-f", "age=31")
        assert result.exit_code == 0, result.output
        assert load_session(session).books[0].characters[0].age == 31

        history = invoke(runner, session, "history", "character", entity_id)
        assert history.exit_code == 0, history.output
        assert "Kaelin" in history.output

        state = load_session(session)
        first = [v for v in state.versions if v.description == "character Kaelin created"][0]
        result = invoke(runner, session, "restore", first.id)
        assert result.exit_code == 0, result.output
        assert "Restored character Kaelin to previous version" in result.output
        assert load_session(session).books[0].characters[0].age is None

    def test_show_and_list(self, runner, session):
        invoke(runner, session, "book", "add", "Ember")
        invoke(runner, session, "entity", "add", "place", "-f", "name=Ashfall")
        place_id = load_session(session).books[0].places[0].id

        assert "Ashfall" in invoke(runner, session, "entity", "list", "place").output
        result = invoke(runner, session, "entity", "show", "place", place_id)
        assert '"book_title": "Ember"' in result.output

    def test_bad_field(self, runner, session):
        invoke(runner, session, "book", "add", "Ember")
        result = invoke(runner, session, "entity", "add", "note", "-f", "title")
        assert result.exit_code != 0


class TestChatAndSearch:
    """Tests for chat, checkpoint and search commands."""

    def test_checkpoint_and_rewind(self, runner, session):
        invoke(runner, session, "chat", "say", "first")
        invoke(runner, session, "chat", "checkpoint", "start")
        invoke(runner, session, "chat", "say", "second")
        checkpoint_id = load_session(session).checkpoints[0].id

        result = invoke(runner, session, "chat", "rewind", checkpoint_id[:8])
        assert "Chat restored to checkpoint: start" in result.output
        assert [m.content for m in load_session(session).messages] == ["first"]

    def test_search_and_mentions(self, runner, session):
        invoke(runner, session, "book", "add", "Ember")
        invoke(runner, session, "entity", "add", "character", "-f", "name=Kaelin Dusk")

        result = invoke(runner, session, "search", "kd")
        assert "Kaelin Dusk" in result.output

        result = invoke(runner, session, "mentions", "@character/kaelin waits")
        assert "Kaelin Dusk waits" in result.output

    def test_status(self, runner, session):
        result = invoke(runner, session, "status")
        assert result.exit_code == 0, result.output
        assert "disabled" in result.output
