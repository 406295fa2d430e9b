"""Log file locations for ipyjob.

The job log (what the job system shows to users) is separate from these
files, which hold ipyjob's own diagnostic logging.
"""

from pathlib import Path

import platformdirs


def get_log_dir() -> Path:
    """Get the system-appropriate log directory for ipyjob.

    Returns:
        Path to the log directory (created if it doesn't exist)
        - Windows: %LOCALAPPDATA%/ipyjob/Logs
        - macOS: ~/Library/Logs/ipyjob
        - Linux: ~/.local/state/ipyjob/log
    """
    log_dir = Path(platformdirs.user_log_dir("ipyjob", appauthor=False))
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def get_main_log_path() -> Path:
    """Get the path to the main ipyjob log file."""
    return get_log_dir() / "ipyjob.log"
