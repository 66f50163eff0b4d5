import os
import sys
import logging
from pathlib import Path
from datetime import datetime, timedelta

LOG_FILE_PATTERN = "log_*.txt"
LOG_RETENTION_DAYS = 10
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

console = logging.getLogger("disk_janitor")


def setup_console() -> logging.Logger:
    """Echo every log line to stdout, bare message only."""
    console.setLevel(logging.INFO)
    console.propagate = False
    if not console.handlers:
        ch = logging.StreamHandler(sys.stdout)
        ch.setFormatter(logging.Formatter("%(message)s"))
        console.addHandler(ch)
    return console


def file_created_at(st: os.stat_result) -> float:
    # st_ctime is creation time on Windows, inode change time elsewhere
    return getattr(st, "st_birthtime", st.st_ctime)


class LogWriter:
    """Appends lines to logs/log_<dd-mm-YYYY>.txt and mirrors them on stdout."""

    def __init__(self, log_dir: Path, now=datetime.now, console_logger: logging.Logger = None):
        self.log_dir = Path(log_dir)
        self.now = now
        self.console = console_logger or console
        self.log_dir.mkdir(parents=True, exist_ok=True)

    def log_path(self) -> Path:
        # Keyed on the date at append time, so a run crossing midnight spans two files
        return self.log_dir / f"log_{self.now():%d-%m-%Y}.txt"

    def entry(self, level: str, message: str) -> str:
        return f"[{self.now():{TIMESTAMP_FORMAT}}] [{level}] {message}"

    def log(self, text: str, level: int = logging.INFO) -> None:
        with open(self.log_path(), "a", encoding="utf-8") as f:
            f.write(text + "\n")
        self.console.log(level, text)

    def info(self, message: str) -> None:
        self.log(self.entry("INFO", message))

    def error(self, message: str) -> None:
        self.log(self.entry("ERROR", message), logging.ERROR)

    def batch(self) -> "LogBatch":
        return LogBatch(self)

    def prune_old_logs(self, retention_days: int = LOG_RETENTION_DAYS) -> list:
        """Delete log files created more than retention_days ago. Never raises."""
        deleted = []
        try:
            cutoff = (self.now() - timedelta(days=retention_days)).timestamp()
            for path in sorted(self.log_dir.glob(LOG_FILE_PATTERN)):
                if not path.is_file():
                    continue
                try:
                    if file_created_at(path.stat()) < cutoff:
                        path.unlink()
                        deleted.append(path)
                        self.console.info(f"[INFO] Deleted old log: {path.name}")
                except OSError as e:
                    self.error(f"Failed to delete old log {path.name}: {e}")
        except Exception as e:
            try:
                self.error(f"Error while deleting old logs: {e}")
            except OSError as log_err:
                print(f"[ERROR] Logging failed: {log_err}")
        return deleted


class LogBatch:
    """Collects one run's entries and writes them to the day's file in a single append."""

    def __init__(self, writer: LogWriter):
        self.writer = writer
        self.lines = []
        self.has_error = False

    def info(self, message: str) -> None:
        self.lines.append(self.writer.entry("INFO", message))

    def error(self, message: str) -> None:
        self.lines.append(self.writer.entry("ERROR", message))
        self.has_error = True

    def flush(self) -> None:
        if not self.lines:
            return
        level = logging.ERROR if self.has_error else logging.INFO
        self.writer.log("\n".join(self.lines), level)
        self.lines = []
        self.has_error = False
