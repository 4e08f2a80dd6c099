"""Tests for the transparent-cache command line interface."""

from __future__ import annotations

import json
import os
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

from transparent_cache import __version__
from transparent_cache.app import app, main
from transparent_cache.cache.keys import derive_key
from transparent_cache.client import CachedClient
from transparent_cache.exceptions import ConnectionError_, InvalidUsageError
from transparent_cache.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INVALID_USAGE

runner = CliRunner()

URL = "http://example.test/a"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep config lookups and crash logs inside *tmp_path*."""
    monkeypatch.setattr("transparent_cache.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
    for suffix in ("BASE_PATH", "MAX_AGE", "VERBOSE", "NO_UPDATE"):
        monkeypatch.delenv(f"TRANSPARENT_CACHE_{suffix}", raising=False)


@pytest.fixture
def served(monkeypatch: pytest.MonkeyPatch, origin):
    """Route the fetch command's client to the scripted origin."""

    def _factory(config, **kwargs):
        return CachedClient(config, transport=httpx.MockTransport(origin), **kwargs)

    monkeypatch.setattr("transparent_cache.commands.fetch.CachedClient", _factory)
    return origin


def _invoke(cache_dir: Path, *args: str):
    return runner.invoke(app, ["--base-path", str(cache_dir), *args])


# ---------------------------------------------------------------------------
# Root options
# ---------------------------------------------------------------------------


class TestRoot:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("fetch", "key", "show", "stats", "sweep", "config"):
            assert name in result.output


# ---------------------------------------------------------------------------
# key / show / stats / sweep
# ---------------------------------------------------------------------------


class TestKey:
    def test_prints_key(self) -> None:
        result = runner.invoke(app, ["key", URL])
        assert result.exit_code == 0
        assert result.output.strip() == derive_key(URL)

    def test_range(self) -> None:
        result = runner.invoke(app, ["key", URL, "--range", "bytes=0-9"])
        assert result.output.strip() == derive_key(URL, "bytes=0-9")


class TestNormalizedUrls:
    """``key`` and ``show`` hash the URL in the form the client actually sends."""

    RAW_URL = "http://Example.TEST:80/a b"
    SENT_URL = "http://example.test/a%20b"

    def test_key_names_the_fetched_file(self, cache_dir: Path, served) -> None:
        served.reply(200, b"hello")
        _invoke(cache_dir, "-q", "fetch", self.RAW_URL)
        assert str(served.last_request.url) == self.SENT_URL

        result = runner.invoke(app, ["key", self.RAW_URL])

        assert result.exit_code == 0, result.output
        assert result.output.strip() == derive_key(self.SENT_URL)
        assert (cache_dir / result.output.strip()).is_file()

    def test_show_finds_the_fetched_entry(self, cache_dir: Path, served) -> None:
        served.reply(200, b"hello")
        _invoke(cache_dir, "-q", "fetch", self.RAW_URL)

        result = _invoke(cache_dir, "--json", "show", self.RAW_URL)

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["url"] == self.SENT_URL
        assert data["key"] == derive_key(self.SENT_URL)

    def test_key_with_range(self, cache_dir: Path, served) -> None:
        served.reply(206, b"hel", {"Content-Range": "bytes 0-2/5"})
        _invoke(cache_dir, "-q", "fetch", self.RAW_URL, "--range", "bytes=0-2")
        result = runner.invoke(app, ["key", self.RAW_URL, "--range", "bytes=0-2"])
        assert (cache_dir / result.output.strip()).is_file()

    def test_invalid_url(self) -> None:
        result = runner.invoke(app, ["key", "http://example.test/\x01"])
        assert isinstance(result.exception, InvalidUsageError)


class TestFetch:
    def test_body_to_stdout(self, cache_dir: Path, served) -> None:
        served.reply(200, b"hello\x00world", {"ETag": '"v1"'})
        result = _invoke(cache_dir, "-q", "fetch", URL)
        assert result.exit_code == 0, result.output
        assert result.stdout_bytes == b"hello\x00world"
        assert (cache_dir / derive_key(URL)).is_file()

    def test_reports_cache_status(self, cache_dir: Path, served) -> None:
        served.reply(200, b"hello", {"ETag": '"v1"'}).reply(304)
        first = _invoke(cache_dir, "fetch", URL)
        second = _invoke(cache_dir, "fetch", URL)
        assert f"{URL}: downloaded" in first.output
        assert f"{URL}: served from cache" in second.output
        assert served.last_request.headers["If-None-Match"] == '"v1"'

    def test_unchanged_content_reported(self, cache_dir: Path, served) -> None:
        served.reply(200, b"hello")
        _invoke(cache_dir, "fetch", URL)
        result = _invoke(cache_dir, "fetch", URL)
        assert "downloaded, content unchanged" in result.output

    def test_no_update_option(self, cache_dir: Path, served) -> None:
        served.reply(200, b"hello", {"ETag": '"v1"'})
        _invoke(cache_dir, "--no-update", "900", "fetch", URL)
        result = _invoke(cache_dir, "--no-update", "900", "fetch", URL)
        assert served.calls == 1
        assert "served from cache" in result.output

    def test_range_option(self, cache_dir: Path, served) -> None:
        served.reply(206, b"hel", {"Content-Range": "bytes 0-2/5"})
        result = _invoke(cache_dir, "-q", "fetch", URL, "--range", "bytes=0-2")
        assert result.exit_code == 0
        assert served.last_request.headers["Range"] == "bytes=0-2"
        assert (cache_dir / derive_key(URL, "bytes=0-2")).is_file()

    def test_include_headers(self, cache_dir: Path, served) -> None:
        served.reply(200, b"hello", {"Content-Type": "text/plain"})
        result = _invoke(cache_dir, "-q", "fetch", "-i", URL)
        assert result.stdout.startswith("HTTP/1.1 200 OK\n")
        assert "content-type: text/plain" in result.stdout
        assert result.stdout.endswith("\n\nhello")

    def test_extra_header(self, cache_dir: Path, served) -> None:
        served.reply(200, b"hello")
        _invoke(cache_dir, "-q", "fetch", URL, "-H", "Accept: text/html")
        assert served.last_request.headers["Accept"] == "text/html"

    def test_bad_header(self, cache_dir: Path, served) -> None:
        result = _invoke(cache_dir, "fetch", URL, "-H", "no-colon")
        assert isinstance(result.exception, InvalidUsageError)
        assert result.exception.exit_code == EXIT_INVALID_USAGE

    def test_error_status(self, cache_dir: Path, served) -> None:
        served.reply(404, b"missing")
        result = _invoke(cache_dir, "fetch", URL)
        assert result.exit_code == EXIT_GENERIC_FAILURE
        assert f"{URL} returned HTTP 404" in result.output
        assert not (cache_dir / derive_key(URL)).exists()

    def test_connection_error(self, cache_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        def _refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        def _factory(config, **kwargs):
            return CachedClient(config, transport=httpx.MockTransport(_refuse), **kwargs)

        monkeypatch.setattr("transparent_cache.commands.fetch.CachedClient", _factory)
        result = _invoke(cache_dir, "fetch", URL)
        assert isinstance(result.exception, ConnectionError_)

    def test_sweeps_after_fetch(self, cache_dir: Path, served) -> None:
        cache_dir.mkdir()
        old = cache_dir / derive_key("http://example.test/old")
        old.write_bytes(b"Url http://example.test/old\n\n")
        os.utime(old, (0, 0))
        served.reply(200, b"hello")
        _invoke(cache_dir, "-q", "fetch", URL)
        assert not old.exists()


class TestShow:
    def test_shows_metadata(self, cache_dir: Path, served) -> None:
        served.reply(200, b"hello", {"ETag": '"v1"', "Content-Type": "text/plain"})
        _invoke(cache_dir, "-q", "fetch", URL)
        result = _invoke(cache_dir, "--json", "show", URL)
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["key"] == derive_key(URL)
        assert data["url"] == URL
        assert data["etag"] == '"v1"'
        assert data["status_code"] == 200
        assert data["body_bytes"] == 5
        assert data["headers"]["Content-Type"] == "text/plain"

    def test_missing_entry(self, cache_dir: Path) -> None:
        result = _invoke(cache_dir, "show", URL)
        assert result.exit_code == EXIT_GENERIC_FAILURE
        assert f"No cache entry for {URL}" in result.output


class TestStats:
    def test_counts(self, cache_dir: Path, served) -> None:
        served.reply(200, b"hello")
        _invoke(cache_dir, "-q", "fetch", URL)
        (cache_dir / "notes.txt").write_text("x")
        result = _invoke(cache_dir, "--json", "stats")
        data = json.loads(result.stdout)
        assert data["entries"] == 1
        assert data["unknown"] == 1
        assert data["directory"] == str(cache_dir)


class TestSweep:
    def test_removes_old_entries(self, cache_dir: Path) -> None:
        cache_dir.mkdir()
        old = cache_dir / derive_key("http://example.test/old")
        old.write_bytes(b"Url http://example.test/old\n\n")
        os.utime(old, (0, 0))
        fresh = cache_dir / derive_key(URL)
        fresh.write_bytes(b"Url http://example.test/a\n\n")

        result = _invoke(cache_dir, "-q", "--json", "sweep")

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["removed"] == [old.name]
        assert data["kept"] == 1
        assert not old.exists()
        assert fresh.exists()

    def test_summary_message(self, cache_dir: Path) -> None:
        result = _invoke(cache_dir, "sweep", "--max-age", "1")
        assert "Removed 0 entries, kept 0." in result.output


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


class TestConfigCommands:
    def test_show(self, cache_dir: Path) -> None:
        result = _invoke(cache_dir, "-q", "--json", "--max-age", "24", "config", "show")
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["base_path"] == str(cache_dir)
        assert data["max_age"] == 24
        assert data["no_update"] == 0

    def test_show_reads_config_file(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.json"
        path.write_text(json.dumps({"BasePath": str(tmp_path / "c"), "NoUpdate": 60}))
        result = runner.invoke(app, ["-q", "--json", "--config", str(path), "config", "show"])
        data = json.loads(result.stdout)
        assert data["base_path"] == str(tmp_path / "c")
        assert data["no_update"] == 60

    def test_save(self, cache_dir: Path, tmp_path: Path) -> None:
        target = tmp_path / "saved.json"
        result = _invoke(cache_dir, "--no-update", "30", "config", "save", str(target))
        assert result.exit_code == 0, result.output
        saved = json.loads(target.read_text())
        assert saved["base_path"] == str(cache_dir)
        assert saved["no_update"] == 30

    def test_invalid_config(self, cache_dir: Path) -> None:
        result = _invoke(cache_dir, "--max-age", "0", "config", "show")
        assert result.exit_code != 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


class TestMain:
    @pytest.fixture(autouse=True)
    def _no_signal_handlers(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("transparent_cache.app._setup_signal_handlers", lambda: None)

    def test_maps_error_to_exit_code(
        self, cache_dir: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr(
            "sys.argv",
            ["transparent-cache", "--base-path", str(cache_dir), "fetch", URL, "-H", "bad"],
        )
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == EXIT_INVALID_USAGE
        assert "Invalid header" in capsys.readouterr().err

    def test_success_exits_zero(
        self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.setattr("sys.argv", ["transparent-cache", "key", URL])
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 0
        assert derive_key(URL) in capsys.readouterr().out
