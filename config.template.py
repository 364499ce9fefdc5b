# Screenshot URL Uploader Configuration
# Copy this file to config.py and fill in your actual values
from pathlib import Path

# SSH Configuration
REMOTE_USER = "username"
REMOTE_HOST = "your-server.com"
REMOTE_PATH = "/var/www/screenshots/"  # Must end with a slash

# PuTTY saved session holding host, port and key settings
SESSION_PROFILE = "screenshots"

# pscp executable (full path, or just "pscp" if it is on PATH)
# Windows: r"C:\Program Files\PuTTY\pscp.exe"
PSCP_PATH = r"C:\Program Files\PuTTY\pscp.exe"

# Public URL that serves REMOTE_PATH
PUBLIC_BASE_URL = "https://your-server.com/screenshots"

# Optional: log files (defaults to ~/.screen2url/success.log and error.log)
SUCCESS_LOG_PATH = Path.home() / ".screen2url" / "success.log"
ERROR_LOG_PATH = Path.home() / ".screen2url" / "error.log"

# Optional: warn when Pageant / ssh-agent has no keys loaded
CHECK_AGENT = True
