"""Tests for the command-line interface."""

import json
import logging
from unittest.mock import AsyncMock, patch

import pytest

from recordsync.__main__ import JSONFormatter, _parse_pairs, main
from recordsync.errors import RemoteError
from recordsync.remote import GraphQLAdapter

CONFIG = """
remote:
  url: http://remote/graphql
entities:
  users:
    fields:
      id: increment
      email: string
"""


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "recordsync.yaml"
    path.write_text(CONFIG)
    return str(path)


class TestParsePairs:
    """Tests for key=value argument parsing."""

    def test_json_values(self):
        assert _parse_pairs(["id=3", "admin=true", "email=a@x.com"]) == {
            "id": 3,
            "admin": True,
            "email": "a@x.com",
        }

    def test_missing_separator(self):
        with pytest.raises(ValueError, match="Expected key=value"):
            _parse_pairs(["oops"])

    def test_none(self):
        assert _parse_pairs(None) == {}


class TestJSONFormatter:
    """Tests for structured log output."""

    def test_format(self):
        record = logging.LogRecord(
            "recordsync.sync", logging.INFO, __file__, 1, "merged %d", (3,), None
        )

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["component"] == "recordsync.sync"
        assert data["message"] == "merged 3"


class TestCommands:
    """Tests for the CLI commands against a patched remote."""

    def test_no_command(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_status_json(self, config_path, capsys):
        with patch.object(GraphQLAdapter, "health_check", new=AsyncMock(return_value=True)):
            assert main(["-c", config_path, "status", "--json"]) == 0

        status = json.loads(capsys.readouterr().out)
        assert status["remote"]["url"] == "http://remote/graphql"
        assert status["remote"]["reachable"] is True
        assert status["entities"] == [
            {"entity": "users", "singular": "user", "fields": ["id", "email"], "relations": []}
        ]

    def test_status_text(self, config_path, capsys):
        with patch.object(GraphQLAdapter, "health_check", new=AsyncMock(return_value=False)):
            assert main(["-c", config_path, "status"]) == 0

        out = capsys.readouterr().out
        assert "Not reachable" in out
        assert "- users (user)" in out

    def test_fetch(self, config_path, capsys):
        fetch = AsyncMock(return_value=[{"id": 1, "email": "a@x.com"}])
        with patch.object(GraphQLAdapter, "fetch", new=fetch):
            assert main(["-c", config_path, "fetch", "users", "1"]) == 0

        assert json.loads(capsys.readouterr().out) == [{"id": 1, "email": "a@x.com"}]
        assert fetch.await_args.args[1] == {"id": 1}

    def test_fetch_with_filter(self, config_path, capsys):
        fetch = AsyncMock(return_value=[])
        with patch.object(GraphQLAdapter, "fetch", new=fetch):
            assert main(["-c", config_path, "fetch", "users", "-w", "email=a@x.com"]) == 0

        assert json.loads(capsys.readouterr().out) == []
        assert fetch.await_args.args[1] == {"email": "a@x.com"}

    def test_mutate(self, config_path, capsys):
        mutate = AsyncMock(return_value={"id": 1, "email": "boss@x.com"})
        with patch.object(GraphQLAdapter, "mutate", new=mutate):
            assert main(["-c", config_path, "mutate", "users", "promote", "-a", "id=1"]) == 0

        assert json.loads(capsys.readouterr().out) == {"id": 1, "email": "boss@x.com"}
        assert mutate.await_args.args[1:] == ("promote", {"id": 1, "mutation": "promote"})

    def test_unknown_entity(self, config_path, capsys):
        assert main(["-c", config_path, "fetch", "comments", "1"]) == 1
        assert "Unknown entity 'comments'" in capsys.readouterr().err

    def test_remote_error(self, config_path, capsys):
        error = RemoteError("HTTP 503", operation="fetch", status_code=503)
        with patch.object(GraphQLAdapter, "execute", new=AsyncMock(side_effect=error)):
            assert main(["-c", config_path, "fetch", "users", "1"]) == 1

        assert "Error: HTTP 503" in capsys.readouterr().err

    def test_bad_config(self, tmp_path, capsys):
        path = tmp_path / "bad.yaml"
        path.write_text("store:\n  cache_policy: sometimes\n")

        assert main(["-c", str(path), "status"]) == 1
        assert "Error loading config" in capsys.readouterr().err
