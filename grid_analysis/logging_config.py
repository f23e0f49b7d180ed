from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

_LOGGING_INITIALIZED = False

_DATA_URL_PATTERN = re.compile(r"(data:[\w/+.-]+;base64,)([A-Za-z0-9+/=]{64})[A-Za-z0-9+/=]+")


class _TruncateDataUrlFilter(logging.Filter):
    """Shorten embedded base64 images so payload dumps stay readable."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if "base64," in message:
            record.msg = _DATA_URL_PATTERN.sub(r"\1\2...", message)
            record.args = None
        return True


def _cleanup_old_logs(log_dir: Path, keep_count: int = 5) -> None:
    """Delete old log files, keeping the newest keep_count."""
    log_files = list(log_dir.glob("grid_analysis_*.log"))
    log_files.sort(key=lambda x: x.stat().st_mtime, reverse=True)

    for old_log in log_files[keep_count:]:
        try:
            old_log.unlink()
        except OSError as e:
            logging.getLogger(__name__).warning(f"Failed to delete log file {old_log.name}: {e}")


def init_logging(log_dir: Optional[Path] = None, keep_count: int = 5) -> Optional[Path]:
    """
    Configure process-wide logging once:
    - directory: logs/ under the working directory unless log_dir is given
    - file: grid_analysis_YYYYMMDD_HHMMSS.log
    - levels: INFO (file), WARNING (console)

    Returns:
        Path of the log file, or None when logging was already initialized
    """
    global _LOGGING_INITIALIZED
    if _LOGGING_INITIALIZED:
        return None

    log_dir = Path(log_dir) if log_dir is not None else Path.cwd() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    # keep_count - 1 old files plus the new one
    _cleanup_old_logs(log_dir, keep_count=max(keep_count - 1, 0))

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"grid_analysis_{timestamp}.log"

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = logging.FileHandler(log_file, encoding="utf-8", mode='a')
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(formatter)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.WARNING)
    console_handler.setFormatter(formatter)

    data_url_filter = _TruncateDataUrlFilter()
    file_handler.addFilter(data_url_filter)
    console_handler.addFilter(data_url_filter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    _LOGGING_INITIALIZED = True
    return log_file
