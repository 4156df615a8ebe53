"""Tests for the mediaport command line."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import httpx
import pytest
from click.testing import CliRunner
from loguru import logger

from mediaport import __version__
from mediaport.cli import main

IMG = "https://img.example.com/photos/cat.png"


@pytest.fixture(autouse=True)
def isolated_cli(tmp_path: Path, monkeypatch):
    """Keep config discovery and loguru sinks local to each test."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("MEDIAPORT_CONFIG", raising=False)
    monkeypatch.delenv("MEDIAPORT_LOG_DIR", raising=False)
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def offline(monkeypatch, media_server):
    """Route every client the pipeline creates to the fake media host."""
    real_client = httpx.AsyncClient

    def _client(**kwargs):
        return real_client(transport=httpx.MockTransport(media_server.handler), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", _client)
    return media_server


def _write_config(path: Path, storages: list[dict]) -> Path:
    path.write_text(
        json.dumps({"process": {"convert_images": False}, "storages": storages}),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def local_config(tmp_path: Path) -> Path:
    return _write_config(
        tmp_path / "mediaport.json",
        [
            {
                "id": "disk",
                "type": "local",
                "options": {
                    "directory": str(tmp_path / "public"),
                    "public_base_url": "https://static.example.org/m",
                },
            }
        ],
    )


class TestCliBasics:
    """Tests for help and version output."""

    def test_help(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(main, ["--help"])

        assert result.exit_code == 0
        assert "process" in result.output
        assert "storages" in result.output

    def test_version(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_process_help(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(main, ["process", "--help"])

        assert result.exit_code == 0
        assert "--write" in result.output
        assert "--convert-videos" in result.output


class TestStoragesCommand:
    """Tests for `mediaport storages`."""

    def test_lists_types_and_entries(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        config = _write_config(
            tmp_path / "cfg.json",
            [
                {"id": "disk", "type": "local"},
                {"id": "old", "type": "ftp", "enabled": False},
            ],
        )

        result = cli_runner.invoke(main, ["storages", "-c", str(config)])

        assert result.exit_code == 0
        assert "http-put" in result.output
        assert "disk (local, enabled)" in result.output
        assert "old (ftp, disabled) [unknown type]" in result.output

    def test_no_entries(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(main, ["storages"])

        assert result.exit_code == 0
        assert "(none)" in result.output


class TestProcessCommand:
    """Tests for `mediaport process`."""

    def test_requires_storage(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        doc = tmp_path / "doc.md"
        doc.write_text(f"![a]({IMG})", encoding="utf-8")

        result = cli_runner.invoke(main, ["process", str(doc), "-q"])

        assert result.exit_code != 0
        assert "No storage configured" in result.output

    def test_invalid_config_file(self, cli_runner: CliRunner, tmp_path: Path) -> None:
        config = tmp_path / "bad.json"
        config.write_text("{not json", encoding="utf-8")
        doc = tmp_path / "doc.md"
        doc.write_text("text", encoding="utf-8")

        result = cli_runner.invoke(main, ["process", str(doc), "-c", str(config), "-q"])

        assert result.exit_code != 0
        assert "Invalid configuration" in result.output

    def test_prints_rewritten_document(
        self, cli_runner: CliRunner, tmp_path: Path, local_config: Path, offline
    ) -> None:
        offline.add(IMG, content=b"png-bytes", content_type="image/png")
        doc = tmp_path / "doc.md"
        doc.write_text(f"# Post\n\n![a]({IMG})\n", encoding="utf-8")

        result = cli_runner.invoke(main, ["process", str(doc), "-q"])

        assert result.exit_code == 0, result.output
        assert "https://static.example.org/m/asset_" in result.output
        assert doc.read_text(encoding="utf-8") == f"# Post\n\n![a]({IMG})\n"
        assert len(list((tmp_path / "public").iterdir())) == 1

    def test_write_in_place(
        self, cli_runner: CliRunner, tmp_path: Path, local_config: Path, offline
    ) -> None:
        offline.add(IMG, content=b"png-bytes", content_type="image/png")
        doc = tmp_path / "doc.md"
        doc.write_text(f"![a]({IMG})\n", encoding="utf-8")

        result = cli_runner.invoke(
            main, ["process", str(doc), "--write", "--no-convert-images", "-q"]
        )

        assert result.exit_code == 0, result.output
        assert "static.example.org" in doc.read_text(encoding="utf-8")
        assert list(tmp_path.glob("tmp-assets-*")) == []

    def test_unavailable_storage_exits_nonzero(
        self, cli_runner: CliRunner, tmp_path: Path, offline
    ) -> None:
        offline.add(IMG, content=b"png-bytes", content_type="image/png")
        (tmp_path / "blocker").write_text("not a directory", encoding="utf-8")
        config = _write_config(
            tmp_path / "cfg.json",
            [{"id": "disk", "type": "local", "options": {"directory": str(tmp_path / "blocker" / "x")}}],
        )
        doc = tmp_path / "doc.md"
        content = f"![a]({IMG})\n"
        doc.write_text(content, encoding="utf-8")

        result = cli_runner.invoke(
            main, ["process", str(doc), "-c", str(config), "--write", "-q"]
        )

        assert result.exit_code == 1
        assert doc.read_text(encoding="utf-8") == content

    def test_log_file(
        self, cli_runner: CliRunner, tmp_path: Path, local_config: Path, monkeypatch
    ) -> None:
        monkeypatch.setenv("MEDIAPORT_LOG_DIR", str(tmp_path / "logs"))
        doc = tmp_path / "doc.md"
        doc.write_text("no media here\n", encoding="utf-8")

        result = cli_runner.invoke(main, ["process", str(doc), "-q"])

        assert result.exit_code == 0, result.output
        assert result.output == "no media here\n"
        assert len(list((tmp_path / "logs").glob("mediaport_*.log"))) == 1
