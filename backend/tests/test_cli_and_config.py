"""
Tests for settings validation, SSE framing and the CLI parser.
"""
import pytest
from pydantic import ValidationError

from newsfilter.cli import COMMANDS, build_parser, main
from newsfilter.config import Settings
from newsfilter.models.domain import SourceFetchResult
from newsfilter.services.events import FetchEvent, source_done


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.filter_batch_size == 20
        assert settings.filter_max_articles == 200
        assert settings.stream_heartbeat_seconds == 15.0

    def test_log_level_is_normalized(self):
        assert Settings(_env_file=None, log_level="debug").log_level == "DEBUG"

        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_level="chatty")


class TestEvents:
    def test_sse_frame(self):
        event = FetchEvent("fetch-complete", {"total": 2, "failed": 0, "newArticles": 5})

        assert event.to_sse() == (
            'event: fetch-complete\ndata: {"total": 2, "failed": 0, "newArticles": 5}\n\n'
        )

    def test_source_done_payloads(self):
        ok = source_done(SourceFetchResult(source_id=1, source_name="A", articles_found=4, new_articles=1))
        failed = source_done(SourceFetchResult(source_id=2, source_name="B", error="boom"))

        assert ok.data == {
            "sourceId": 1, "sourceName": "A", "status": "success", "articlesFound": 4, "newArticles": 1,
        }
        assert failed.data["status"] == "error"
        assert failed.data["error"] == "boom"
        assert failed.data["articlesFound"] == 0


class TestCli:
    def test_commands_are_registered(self):
        parser = build_parser()

        assert parser.parse_args(["fetch", "3"]).source_id == 3
        assert parser.parse_args(["log", "--limit", "5"]).limit == 5
        assert set(COMMANDS) == {"fetch-all", "fetch", "filter", "log", "purge", "clear-scores"}

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "fetch-all" in capsys.readouterr().out
