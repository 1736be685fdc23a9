"""Tests for main.py CLI functionality."""

import json
from unittest.mock import patch

import pytest

from image_derivatives.main import main
from image_derivatives.testing.fakes import create_test_image


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


def _run(*args):
    """Run the CLI and return its exit code and the JSON it printed."""
    with patch("builtins.print") as mock_print:
        code = main(list(args))
    payload = json.loads(mock_print.call_args[0][0]) if mock_print.called else None
    return code, payload


class TestMainCLI:
    """Tests for the main CLI functionality."""

    def test_main_with_no_args_shows_help(self):
        with patch("argparse.ArgumentParser.print_help") as mock_help:
            assert main([]) == 1
            mock_help.assert_called_once()

    def test_main_version_command(self):
        with patch("builtins.print") as mock_print:
            assert main(["version"]) == 0
            mock_print.assert_any_call("Image Derivatives CLI")
            mock_print.assert_any_call("Version 0.1.0")

    def test_submit_show_delete(self, tmp_path, upload_dir):
        """A submitted image can be shown and then deleted."""
        source = tmp_path / "cover.jpg"
        source.write_bytes(create_test_image(800, 600))

        code, out = _run(
            "--upload-dir", str(upload_dir), "submit", str(source),
            "--owner", "42", "--role", "PROJECT", "--register-owner", "--keep-original",
        )
        assert code == 0
        asset_id = out["asset_id"]

        code, out = _run("--upload-dir", str(upload_dir), "show", asset_id)
        assert code == 0
        shown = out
        assert shown["status"] == "READY"
        assert shown["original_retained"] is True

        code, out = _run("--upload-dir", str(upload_dir), "delete", asset_id)
        assert code == 0
        assert len(out["removed"]) == 3

    def test_submit_async_with_thread_queue(self, tmp_path, upload_dir):
        source = tmp_path / "me.png"
        source.write_bytes(create_test_image(200, 200, "PNG"))

        code, out = _run(
            "--upload-dir", str(upload_dir), "submit", str(source),
            "--owner", "7", "--role", "PROFILE", "--mode", "async", "--register-owner",
        )
        assert code == 0
        ticket = out
        assert ticket["status"] == "PENDING"

        code, out = _run("--upload-dir", str(upload_dir), "show", ticket["asset_id"])
        assert out["status"] == "READY"

    def test_submit_unknown_owner(self, tmp_path, upload_dir):
        source = tmp_path / "cover.jpg"
        source.write_bytes(create_test_image())

        assert main(["--upload-dir", str(upload_dir), "submit", str(source), "--owner", "nobody"]) == 1

    def test_submit_rejected_upload(self, tmp_path, upload_dir):
        source = tmp_path / "fake.jpg"
        source.write_bytes(b"not really a jpeg")

        code = main(
            ["--upload-dir", str(upload_dir), "submit", str(source), "--owner", "1", "--register-owner"]
        )

        assert code == 2

    def test_reprocess(self, tmp_path, upload_dir):
        source = tmp_path / "cover.jpg"
        source.write_bytes(create_test_image(1600, 800))
        _run(
            "--upload-dir", str(upload_dir), "submit", str(source),
            "--owner", "1", "--register-owner", "--keep-original",
        )

        code, out = _run(
            "--upload-dir", str(upload_dir), "reprocess", "--max-width", "400"
        )

        assert code == 0
        assert out["processed"] == 1

    def test_show_unknown_asset(self, upload_dir):
        assert main(["--upload-dir", str(upload_dir), "show", "missing"]) == 1
