#!/usr/bin/env python3
"""
Screenshot URL Uploader
Renames a local file, uploads it to a remote server with PuTTY's pscp and
copies the resulting public URL to the clipboard.

Usage:
    screen2url <file> [--name NAME] [--config PATH]

Meant to be registered as an external command in a screenshot tool
(e.g. ShareX or Greenshot) with the captured file path as its argument.
"""

import os
import sys
import re
import shutil
import argparse
import tempfile
import subprocess
import importlib.util
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional, Callable
from dataclasses import dataclass
from urllib.parse import quote
from PIL import Image, UnidentifiedImageError
import paramiko
from plyer import notification
import pyperclip

APP_NAME = "Screenshot URL Uploader"
CONFIG_ENV_VAR = "SCREEN2URL_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.py"
DEFAULT_LOG_DIR = Path.home() / ".screen2url"
DEFAULT_SUCCESS_LOG = DEFAULT_LOG_DIR / "success.log"
DEFAULT_ERROR_LOG = DEFAULT_LOG_DIR / "error.log"
DEFAULT_STAGING_DIR = Path(tempfile.gettempdir()) / "screen2url"
NOTIFICATION_TIMEOUT = 3  # seconds

# Reserved on Windows filesystems or unsafe in URL paths
DENIED_CHARS = set('<>:"|?*`~#%&{}\\^[]=/') | {os.sep}
FALLBACK_PREFIX = "file"
EMPTY_NAME_PREFIX = "upload"

IMAGE_EXTENSIONS = {
    "PNG": ".png",
    "JPEG": ".jpg",
    "GIF": ".gif",
    "BMP": ".bmp",
    "WEBP": ".webp",
    "TIFF": ".tiff",
}

REQUIRED_SETTINGS = (
    "REMOTE_USER",
    "REMOTE_HOST",
    "REMOTE_PATH",
    "SESSION_PROFILE",
    "PSCP_PATH",
    "PUBLIC_BASE_URL",
)


class UploaderError(Exception):
    """Base class for every failure reported to the user."""


class InvalidInput(UploaderError):
    """Source path is missing, does not exist or is not a regular file."""


class ToolNotFound(UploaderError):
    """The pscp executable could not be located."""


class ConfigError(UploaderError):
    """config.py is missing or incomplete."""


class TransferFailed(UploaderError):
    """pscp exited with a non-zero status."""

    def __init__(self, exit_code: int, output: str):
        self.exit_code = exit_code
        self.output = output
        summary = " | ".join(line.strip() for line in output.splitlines() if line.strip())
        super().__init__(f"pscp exited with code {exit_code}: {summary}")


@dataclass(frozen=True)
class UploaderConfig:
    """Settings read from config.py."""
    remote_user: str
    remote_host: str
    remote_path: str
    session_profile: str
    pscp_path: str
    public_base_url: str
    success_log_path: Path = DEFAULT_SUCCESS_LOG
    error_log_path: Path = DEFAULT_ERROR_LOG
    staging_dir: Path = DEFAULT_STAGING_DIR
    check_agent: bool = True

    @property
    def remote_target(self) -> str:
        return f"{self.remote_user}@{self.remote_host}"


@dataclass(frozen=True)
class UploadRequest:
    """The file handed to us on the command line."""
    source_path: Path
    original_name: str
    extension: str


@dataclass(frozen=True)
class RenameDecision:
    """Outcome of the rename prompt. chosen_base_name is None when cancelled."""
    chosen_base_name: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self.chosen_base_name is None


@dataclass(frozen=True)
class SanitizedFilename:
    filesystem_safe_name: str
    url_encoded_name: str


@dataclass(frozen=True)
class TransferOutcome:
    success: bool
    exit_code: int
    combined_output: str


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

def load_config(path=None) -> UploaderConfig:
    """Load settings from config.py (see config.template.py)."""
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_PATH
    path = Path(path).expanduser()

    if not path.is_file():
        raise ConfigError(
            f"Config file not found at {path}. "
            "Copy config.template.py to config.py and fill in your values."
        )

    module_spec = importlib.util.spec_from_file_location("screen2url_config", path)
    module = importlib.util.module_from_spec(module_spec)
    try:
        module_spec.loader.exec_module(module)
    except Exception as e:
        raise ConfigError(f"Could not load {path}: {e}")

    missing = [name for name in REQUIRED_SETTINGS if not getattr(module, name, None)]
    if missing:
        raise ConfigError(f"Missing settings in {path}: {', '.join(missing)}")

    remote_path = str(module.REMOTE_PATH)
    if not remote_path.endswith("/"):
        raise ConfigError(f"REMOTE_PATH must end with '/': {remote_path}")

    return UploaderConfig(
        remote_user=str(module.REMOTE_USER),
        remote_host=str(module.REMOTE_HOST),
        remote_path=remote_path,
        session_profile=str(module.SESSION_PROFILE),
        pscp_path=str(module.PSCP_PATH),
        public_base_url=str(module.PUBLIC_BASE_URL),
        success_log_path=Path(getattr(module, "SUCCESS_LOG_PATH", None) or DEFAULT_SUCCESS_LOG),
        error_log_path=Path(getattr(module, "ERROR_LOG_PATH", None) or DEFAULT_ERROR_LOG),
        staging_dir=Path(getattr(module, "STAGING_DIR", None) or DEFAULT_STAGING_DIR),
        check_agent=bool(getattr(module, "CHECK_AGENT", True)),
    )


# ---------------------------------------------------------------------------
# Name sanitizing
# ---------------------------------------------------------------------------

def _replace_denied(text: str) -> str:
    chars = []
    for ch in text:
        if ch in DENIED_CHARS or ch.isspace() or ord(ch) < 32 or ord(ch) == 127:
            chars.append("-")
        else:
            chars.append(ch)
    return re.sub(r"-{2,}", "-", "".join(chars)).strip("-")


def sanitize(candidate: str) -> str:
    """Make a user supplied name safe for both the filesystem and a URL path.

    Denied characters, whitespace and control characters become a dash,
    dash runs collapse to one and leading/trailing dashes are dropped.
    A name that ends up empty is replaced with ``file-YYYYMMDD-HHMMSS``.
    """
    name = _replace_denied(candidate or "")

    if name in ("", ".", ".."):
        name = f"{FALLBACK_PREFIX}-{datetime.now().strftime('%Y%m%d-%H%M%S')}"
    return name


def sanitize_extension(extension: str) -> str:
    """Clean a ".ext" suffix the same way as names; empty when nothing is left."""
    suffix = _replace_denied((extension or "").lstrip("."))
    return f".{suffix}" if suffix.strip(".") else ""


def build_filename(base_name: str, extension: str) -> SanitizedFilename:
    safe_name = sanitize(base_name) + sanitize_extension(extension)
    return SanitizedFilename(
        filesystem_safe_name=safe_name,
        url_encoded_name=quote(safe_name),
    )


def build_url(public_base_url: str, filename: SanitizedFilename) -> str:
    return f"{public_base_url.rstrip('/')}/{filename.url_encoded_name}"


def unique_name() -> str:
    """Name used when the user confirms an empty rename."""
    return f"{EMPTY_NAME_PREFIX}-{uuid.uuid4().hex[:12]}"


def detect_extension(path: Path) -> str:
    """Guess an extension for a file saved without one."""
    try:
        with Image.open(path) as image:
            return IMAGE_EXTENSIONS.get(image.format, "")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
        return ""


def resolve_request(source) -> UploadRequest:
    """Validate the command line argument and split it into name and extension."""
    if source is None or not str(source).strip():
        raise InvalidInput("No file path given")

    path = Path(source).expanduser()
    if not path.exists():
        raise InvalidInput(f"File not found: {path}")
    if not path.is_file():
        raise InvalidInput(f"Not a regular file: {path}")

    path = path.resolve()
    extension = path.suffix or detect_extension(path)
    return UploadRequest(
        source_path=path,
        original_name=path.stem,
        extension=extension,
    )


# ---------------------------------------------------------------------------
# Rename prompt
# ---------------------------------------------------------------------------

class RenameDialog:
    """Small modal window asking for the uploaded file's name."""

    def __init__(self, default_name: str, extension: str = ""):
        import tkinter as tk
        from tkinter import ttk

        self.result: Optional[str] = None

        self.root = tk.Tk()
        self.root.title(APP_NAME)
        self.root.resizable(False, False)
        self.root.attributes("-topmost", True)

        main_frame = ttk.Frame(self.root, padding="10")
        main_frame.grid(row=0, column=0, sticky="nsew")
        main_frame.columnconfigure(0, weight=1)

        ttk.Label(main_frame, text="Upload as:").grid(row=0, column=0, columnspan=2, sticky="w")

        self.name_var = tk.StringVar(value=default_name)
        self.entry = ttk.Entry(main_frame, textvariable=self.name_var, width=50)
        self.entry.grid(row=1, column=0, pady=(5, 10), sticky="ew")
        ttk.Label(main_frame, text=extension, foreground="gray").grid(
            row=1, column=1, padx=(5, 0), pady=(5, 10), sticky="w"
        )

        buttons_frame = ttk.Frame(main_frame)
        buttons_frame.grid(row=2, column=0, columnspan=2, sticky="e")
        ttk.Button(buttons_frame, text="Upload", command=self.confirm).pack(side=tk.LEFT, padx=(0, 5))
        ttk.Button(buttons_frame, text="Cancel", command=self.cancel).pack(side=tk.LEFT)

        self.root.bind("<Return>", lambda e: self.confirm())
        self.root.bind("<Escape>", lambda e: self.cancel())
        self.root.protocol("WM_DELETE_WINDOW", self.cancel)

        self.entry.focus_force()
        self.entry.select_range(0, tk.END)

    def confirm(self):
        self.result = self.name_var.get()
        self.root.quit()

    def cancel(self):
        self.result = None
        self.root.quit()

    def run(self) -> Optional[str]:
        """Block until the user confirms or cancels."""
        self.root.mainloop()
        self.root.destroy()
        return self.result


def prompt_for_name(default_name: str, extension: str = "") -> RenameDecision:
    return RenameDecision(RenameDialog(default_name, extension).run())


# ---------------------------------------------------------------------------
# Transfer
# ---------------------------------------------------------------------------

def find_tool(tool_path: str) -> str:
    """Return the pscp executable to run, or raise ToolNotFound."""
    if tool_path and Path(tool_path).is_file():
        return str(tool_path)
    found = shutil.which(tool_path) if tool_path else None
    if not found:
        raise ToolNotFound(f"pscp not found at {tool_path}")
    return found


def agent_has_keys() -> bool:
    """Check that Pageant / ssh-agent holds at least one identity."""
    agent = paramiko.Agent()
    try:
        return len(agent.get_keys()) > 0
    finally:
        agent.close()


def check_agent():
    try:
        if not agent_has_keys():
            print("Warning: SSH agent has no keys loaded, pscp will likely fail", file=sys.stderr)
    except Exception as e:
        print(f"Warning: could not query SSH agent: {e}", file=sys.stderr)


def transfer(local_path, remote_user_at_host: str, remote_dir: str,
             session_profile: str, tool_path: str) -> TransferOutcome:
    """Copy one file with pscp in batch mode using the agent for authentication."""
    tool = find_tool(tool_path)

    command = [
        tool,
        "-agent",
        "-load", session_profile,
        "-batch",
        str(local_path),
        f"{remote_user_at_host}:{remote_dir}",
    ]
    result = subprocess.run(
        command,
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        stdin=subprocess.DEVNULL,
        text=True,
        errors="replace",
    )
    output = result.stdout or ""

    if result.returncode != 0:
        raise TransferFailed(result.returncode, output)
    return TransferOutcome(success=True, exit_code=result.returncode, combined_output=output)


# ---------------------------------------------------------------------------
# Logging and notifications
# ---------------------------------------------------------------------------

class RunLog:
    """Append-only success and error logs sharing one timestamp per run."""

    def __init__(self, success_path: Path, error_path: Path):
        self.success_path = Path(success_path)
        self.error_path = Path(error_path)
        self.timestamp = datetime.now().isoformat(timespec="seconds")

    def _append(self, path: Path, message: str):
        # One physical line per event
        message = " | ".join(line for line in message.splitlines() if line.strip())
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(f"[{self.timestamp}] {message}\n")
        except OSError as e:
            print(f"Could not write log {path}: {e}", file=sys.stderr)

    def success(self, message: str):
        self._append(self.success_path, message)

    def error(self, message: str):
        self._append(self.error_path, message)


def notify(title: str, message: str):
    """Show a desktop notification."""
    try:
        notification.notify(
            title=title,
            message=message,
            app_name=APP_NAME,
            timeout=NOTIFICATION_TIMEOUT
        )
    except Exception:
        pass


def copy_to_clipboard(text: str):
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        print(f"Clipboard unavailable: {e}", file=sys.stderr)


def report_failure(log: RunLog, message: str):
    """Error log entry, notification and clipboard copy for a failed run."""
    log.error(f"Upload failed: {message}")
    notify("Upload Failed", message)
    copy_to_clipboard(f"ERROR: {message}")
    print(f"Error: {message}", file=sys.stderr)


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------

class ScreenshotUploader:
    """Runs one rename, stage, transfer and notify cycle for a single file."""

    def __init__(self, config: UploaderConfig,
                 prompt: Callable[[str, str], RenameDecision] = prompt_for_name,
                 transfer_func: Callable[..., TransferOutcome] = transfer,
                 log: Optional[RunLog] = None):
        self.config = config
        self.prompt = prompt
        self.transfer = transfer_func
        self.log = log or RunLog(config.success_log_path, config.error_log_path)

    def stage(self, request: UploadRequest, filename: SanitizedFilename) -> Path:
        """Copy the source file to the staging directory under its new name."""
        staging_dir = Path(self.config.staging_dir)
        staging_dir.mkdir(parents=True, exist_ok=True)
        staged_path = staging_dir / filename.filesystem_safe_name
        shutil.copyfile(request.source_path, staged_path)
        return staged_path

    def upload(self, request: UploadRequest, filename: SanitizedFilename) -> str:
        """Stage, transfer and clean up. Returns the public URL."""
        staged_path = self.stage(request, filename)
        try:
            if self.config.check_agent:
                check_agent()

            self.transfer(
                staged_path,
                self.config.remote_target,
                self.config.remote_path,
                self.config.session_profile,
                self.config.pscp_path,
            )
        finally:
            try:
                staged_path.unlink()
            except OSError:
                pass

        return build_url(self.config.public_base_url, filename)

    def run(self, source, name: Optional[str] = None) -> int:
        """Upload ``source`` and return the process exit status."""
        try:
            request = resolve_request(source)

            if name is None:
                decision = self.prompt(request.original_name, request.extension)
            else:
                decision = RenameDecision(name)

            if decision.cancelled:
                self.log.success(f"Upload cancelled: {request.source_path}")
                return 0

            chosen = decision.chosen_base_name
            if not chosen.strip():
                chosen = unique_name()

            filename = build_filename(chosen, request.extension)
            url = self.upload(request, filename)

        except Exception as e:
            report_failure(self.log, str(e))
            return 1

        self.log.success(f"Uploaded {request.source_path} -> {url}")
        notify("Upload Complete", url)
        copy_to_clipboard(url)
        print(url)
        return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="screen2url",
        description="Upload a file over pscp and copy its public URL to the clipboard."
    )
    parser.add_argument("path", nargs="?", help="File to upload")
    parser.add_argument("--name", help="Upload under this name instead of asking")
    parser.add_argument("--config", help=f"Config file (default: ${CONFIG_ENV_VAR} or {DEFAULT_CONFIG_PATH})")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        report_failure(RunLog(DEFAULT_SUCCESS_LOG, DEFAULT_ERROR_LOG), str(e))
        return 1

    uploader = ScreenshotUploader(config)
    return uploader.run(args.path, name=args.name)


if __name__ == "__main__":
    sys.exit(main())
