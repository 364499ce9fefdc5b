"""
pytest configuration for screen2url tests.

Provides a config pointing every path at tmp_path, and recorders that stand
in for desktop notifications and the clipboard.
"""

import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

_root_dir = Path(__file__).parent.parent
if str(_root_dir) not in sys.path:
    sys.path.insert(0, str(_root_dir))

import screenshot_url_uploader as uploader  # noqa: E402


@pytest.fixture
def pscp(tmp_path):
    """A stand-in pscp executable; subprocess.run is patched in tests that use it."""
    tool = tmp_path / "bin" / "pscp.exe"
    tool.parent.mkdir()
    tool.write_bytes(b"")
    return tool


@pytest.fixture
def config(tmp_path, pscp):
    return uploader.UploaderConfig(
        remote_user="alice",
        remote_host="shots.example.com",
        remote_path="/var/www/shots/",
        session_profile="shots",
        pscp_path=str(pscp),
        public_base_url="https://shots.example.com/s",
        success_log_path=tmp_path / "logs" / "success.log",
        error_log_path=tmp_path / "logs" / "error.log",
        staging_dir=tmp_path / "staging",
        check_agent=False,
    )


@pytest.fixture
def source_file(tmp_path):
    path = tmp_path / "Screenshot 2026-10-19 144900.png"
    path.write_bytes(b"\x89PNG fake image data")
    return path


@pytest.fixture
def notifications(monkeypatch):
    sent = []

    def notify(**kwargs):
        sent.append(kwargs)

    monkeypatch.setattr(uploader, "notification", SimpleNamespace(notify=notify))
    return sent


@pytest.fixture
def clipboard(monkeypatch):
    copied = []
    monkeypatch.setattr(uploader.pyperclip, "copy", copied.append)
    return copied


def read_lines(path: Path):
    if not path.exists():
        return []
    return path.read_text(encoding="utf-8").splitlines()
