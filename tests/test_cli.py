"""Tests for CLI tools: winecard-render and winecard-server."""

import json
import sys

import pytest
from PIL import Image

from winecard.cli import render, server


class TestRender:
    """winecard-render."""

    def test_render_draft_to_png(self, tmp_path, capsys):
        draft_file = tmp_path / "draft.json"
        draft_file.write_text(
            json.dumps({"wine_name": "Barolo", "my_rating": 5, "paired_food": ["パスタ"]}),
            encoding="utf-8",
        )
        output = tmp_path / "card.png"

        assert render.main([str(draft_file), "-o", str(output)]) == 0

        with Image.open(output) as image:
            assert image.format == "PNG"
            assert image.width == 720
        assert str(output) in capsys.readouterr().out

    def test_render_defaults_to_export_filename(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        draft_file = tmp_path / "draft.json"
        draft_file.write_text(json.dumps({"wine_name": "Chablis"}), encoding="utf-8")

        assert render.main([str(draft_file)]) == 0
        assert (tmp_path / "wine-card-Chablis.png").exists()

    def test_render_with_photo(self, tmp_path, jpeg_bytes):
        draft_file = tmp_path / "draft.json"
        draft_file.write_text("{}", encoding="utf-8")
        photo = tmp_path / "bottle.jpg"
        photo.write_bytes(jpeg_bytes)
        output = tmp_path / "card.png"

        assert render.main([str(draft_file), "-o", str(output), "--image", str(photo)]) == 0
        assert output.stat().st_size > 0

    def test_invalid_draft_fails(self, tmp_path, capsys):
        draft_file = tmp_path / "draft.json"
        draft_file.write_text(json.dumps({"my_rating": 6}), encoding="utf-8")

        assert render.main([str(draft_file), "-o", str(tmp_path / "x.png")]) == 1
        assert "Invalid draft" in capsys.readouterr().err

    def test_missing_draft_file_fails(self, tmp_path, capsys):
        assert render.main([str(tmp_path / "absent.json")]) == 1
        assert "Error" in capsys.readouterr().err

    def test_unreadable_photo_fails(self, tmp_path, capsys):
        draft_file = tmp_path / "draft.json"
        draft_file.write_text("{}", encoding="utf-8")
        photo = tmp_path / "notes.png"
        photo.write_bytes(b"definitely not an image")

        assert render.main([str(draft_file), "--image", str(photo)]) == 1
        assert "could not be read" in capsys.readouterr().err


class TestServer:
    """winecard-server process control."""

    def test_build_command(self):
        cmd = server.build_command("0.0.0.0", 9000, reload=True)

        assert cmd[:4] == [sys.executable, "-m", "uvicorn", "winecard.main:app"]
        assert cmd[cmd.index("--port") + 1] == "9000"
        assert cmd[cmd.index("--log-level") + 1] == "info"
        assert "--reload" in cmd

    def test_status_when_not_running(self, monkeypatch, capsys):
        monkeypatch.setattr(server, "get_pid", lambda: None)
        monkeypatch.setattr(server, "find_running_server", lambda: None)

        assert server.main(["status"]) == 0
        assert "not running" in capsys.readouterr().out

    def test_stop_when_not_running(self, monkeypatch, capsys):
        monkeypatch.setattr(server, "get_pid", lambda: None)
        monkeypatch.setattr(server, "find_running_server", lambda: None)

        assert server.main(["stop"]) == 1
        assert "Server is not running" in capsys.readouterr().out

    def test_start_refuses_when_running(self, monkeypatch, capsys):
        monkeypatch.setattr(server, "get_pid", lambda: 4242)

        assert server.main(["start"]) == 1
        assert "already running (PID: 4242)" in capsys.readouterr().out

    def test_no_command_prints_help(self, capsys):
        assert server.main([]) == 1
        assert "usage" in capsys.readouterr().out.lower()

    def test_stale_pid_file_is_removed(self, tmp_path, monkeypatch):
        pid_file = tmp_path / "winecard.pid"
        pid_file.write_text("not-a-pid")
        monkeypatch.setattr(server, "PID_FILE", pid_file)

        assert server.get_pid() is None
        assert not pid_file.exists()


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    """Keep basicConfig from installing handlers on the root logger."""
    monkeypatch.setattr("logging.basicConfig", lambda **kwargs: None)
