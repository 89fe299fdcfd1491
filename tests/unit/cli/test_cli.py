"""Tests for the duckprom CLI."""

from unittest.mock import MagicMock, patch

import httpx
import pytest
import typer
from typer.testing import CliRunner

from duckprom import __version__
from duckprom.cli.main import app
from duckprom.cli.query import parse_matcher
from duckprom.models import Matcher, MatchType, SamplePoint, TimeSeries
from duckprom.remote.codec import RemoteCodec

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    monkeypatch.setenv("HOME", str(tmp_path))


def _read_response(series):
    response = MagicMock()
    response.content = RemoteCodec.encode_read_response(series)
    response.raise_for_status.return_value = None
    return response


class TestMainCallback:
    """Test global options."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_config_option(self, tmp_path):
        config = tmp_path / "duckprom.yaml"
        config.write_text("server:\n  port: 9555\n")

        result = runner.invoke(
            app, ["--config", str(config), "config", "show", "--format", "json"]
        )

        assert result.exit_code == 0
        assert "9555" in result.stdout


class TestConfigShow:
    """Test config show command."""

    def test_table(self):
        result = runner.invoke(app, ["config", "show"])

        assert result.exit_code == 0
        assert "Server Settings" in result.stdout
        assert "9201" in result.stdout

    def test_section(self):
        result = runner.invoke(
            app, ["config", "show", "--section", "storage", "--format", "yaml"]
        )

        assert result.exit_code == 0
        assert "collection" in result.stdout
        assert "port" not in result.stdout

    def test_unknown_section(self):
        result = runner.invoke(app, ["config", "show", "--section", "database"])
        assert result.exit_code == 1


class TestParseMatcher:
    """Test matcher expression parsing."""

    @pytest.mark.parametrize(
        "expression,expected",
        [
            ("job=api", Matcher("job", MatchType.EQUAL, "api")),
            ('job="api"', Matcher("job", MatchType.EQUAL, "api")),
            ("job!=api", Matcher("job", MatchType.NOT_EQUAL, "api")),
            ("env=~prod.*", Matcher("env", MatchType.REGEX_MATCH, "prod.*")),
            ("env!~dev|test", Matcher("env", MatchType.REGEX_NOT_MATCH, "dev|test")),
            ("job=", Matcher("job", MatchType.EQUAL, "")),
        ],
    )
    def test_valid(self, expression, expected):
        assert parse_matcher(expression) == expected

    @pytest.mark.parametrize("expression", ["job", "=api", "1job=api", "job~api"])
    def test_invalid(self, expression):
        with pytest.raises(typer.BadParameter):
            parse_matcher(expression)


class TestQueryCommand:
    """Test query command."""

    @patch("duckprom.cli.query.httpx.post")
    def test_query_table(self, mock_post):
        mock_post.return_value = _read_response(
            [TimeSeries(labels={"job": "api"}, samples=[SamplePoint(1000, 1.5)])]
        )

        result = runner.invoke(
            app,
            [
                "query",
                "http://localhost:9201/read",
                "-m",
                "job=api",
                "-m",
                "env=~prod.*",
                "--start",
                "0",
                "--end",
                "2000",
            ],
        )

        assert result.exit_code == 0
        assert "1 series" in result.stdout

        (url,), kwargs = mock_post.call_args
        assert url == "http://localhost:9201/read"
        assert kwargs["headers"]["Content-Encoding"] == "snappy"
        (query,) = RemoteCodec.decode_read(kwargs["content"])
        assert query.start_ms == 0
        assert query.end_ms == 2000
        assert query.matchers == (
            Matcher("job", MatchType.EQUAL, "api"),
            Matcher("env", MatchType.REGEX_MATCH, "prod.*"),
        )

    @patch("duckprom.cli.query.httpx.post")
    def test_query_json(self, mock_post):
        mock_post.return_value = _read_response(
            [TimeSeries(labels={"job": "api"}, samples=[SamplePoint(1000, 1.5)])]
        )

        result = runner.invoke(
            app, ["query", "http://localhost:9201/read", "--end", "2000", "-o", "json"]
        )

        assert result.exit_code == 0
        assert '"job": "api"' in result.stdout

        (query,) = RemoteCodec.decode_read(mock_post.call_args.kwargs["content"])
        assert query.start_ms == 2000 - 60 * 60 * 1000

    @patch("duckprom.cli.query.httpx.post")
    def test_query_no_series(self, mock_post):
        mock_post.return_value = _read_response([])

        result = runner.invoke(app, ["query", "http://localhost:9201/read"])

        assert result.exit_code == 0
        assert "No series matched" in result.stdout

    @patch("duckprom.cli.query.httpx.post")
    def test_connection_error(self, mock_post):
        mock_post.side_effect = httpx.ConnectError("connection refused")

        result = runner.invoke(app, ["query", "http://localhost:9201/read"])

        assert result.exit_code == 1

    @patch("duckprom.cli.query.httpx.post")
    def test_invalid_matcher(self, mock_post):
        result = runner.invoke(
            app, ["query", "http://localhost:9201/read", "-m", "job"]
        )

        assert result.exit_code != 0
        mock_post.assert_not_called()


class TestServe:
    """Test serve command."""

    @patch("uvicorn.run")
    def test_serve_defaults(self, mock_run):
        result = runner.invoke(app, ["serve"])

        assert result.exit_code == 0
        args, kwargs = mock_run.call_args
        assert args == ("duckprom.api.app:app",)
        assert kwargs["port"] == 9201
        assert kwargs["log_level"] == "info"

    @patch("uvicorn.run")
    def test_serve_overrides(self, mock_run):
        result = runner.invoke(
            app, ["serve", "--host", "127.0.0.1", "--port", "9999", "-l", "DEBUG"]
        )

        assert result.exit_code == 0
        kwargs = mock_run.call_args.kwargs
        assert kwargs["host"] == "127.0.0.1"
        assert kwargs["port"] == 9999
        assert kwargs["log_level"] == "debug"
