import os
import sys
import enum
from pathlib import Path
from datetime import datetime
from dataclasses import dataclass, field
from typing import Optional

import psutil

from janitor_config import JanitorConfig, load_or_create
from janitor_log import LogWriter, LogBatch, file_created_at, setup_console

# --------------------------------------------------------------------------------------
# Paths & outcomes
# --------------------------------------------------------------------------------------

SCRIPT_DIR = Path(sys.argv[0]).resolve().parent
CONFIG_NAME = "config.json"
LOG_DIR_NAME = "logs"

MB = 1024 * 1024


class RunOutcome(enum.Enum):
    BOOTSTRAPPED = "bootstrapped"
    FOLDER_MISSING = "folder_missing"
    IDLE = "idle"
    RECLAIMED = "reclaimed"
    FAILED = "failed"


@dataclass
class FileRecord:
    path: Path
    created: float


@dataclass
class ReclaimReport:
    deleted: list[tuple[Path, int]] = field(default_factory=list)
    failures: list[tuple[Path, str]] = field(default_factory=list)
    freed_bytes: int = 0
    final_free_bytes: int = 0
    target_reached: bool = False


@dataclass
class RunResult:
    outcome: RunOutcome
    used_percent: Optional[int] = None
    report: Optional[ReclaimReport] = None
    error: Optional[str] = None

    @property
    def exit_code(self) -> int:
        return 1 if self.outcome is RunOutcome.FOLDER_MISSING else 0


@dataclass
class RunContext:
    log: LogWriter
    config: Optional[JanitorConfig] = None


# --------------------------------------------------------------------------------------
# Folder validation
# --------------------------------------------------------------------------------------

def find_missing_folder(folders: list[str]) -> Optional[str]:
    """Return the first watched folder that does not exist, or None."""
    for folder in folders:
        if not os.path.isdir(folder):
            return folder
    return None


# --------------------------------------------------------------------------------------
# Disk usage
# --------------------------------------------------------------------------------------

def volume_root(disk_letter: str) -> str:
    """'D' or 'D:' -> 'D:\\'; anything else is taken as a mount point path."""
    letter = disk_letter.strip()
    if len(letter) == 1 and letter.isalpha():
        return f"{letter.upper()}:\\"
    if len(letter) == 2 and letter[0].isalpha() and letter[1] == ":":
        return f"{letter[0].upper()}:\\"
    return letter


def read_disk_usage(root: str) -> tuple[int, int]:
    usage = psutil.disk_usage(root)
    return usage.total, usage.free


def used_percent(total: int, free: int) -> int:
    # Truncate, never round: 89.6% reports as 89
    if total <= 0:
        raise ValueError("Volume reports zero capacity")
    return int((total - free) / total * 100)


# --------------------------------------------------------------------------------------
# Reclamation
# --------------------------------------------------------------------------------------

def collect_candidates(folders: list[str], batch: LogBatch = None) -> list[FileRecord]:
    """
    Every file under the watched folders, folder-major: all of folder 1 (oldest
    created first), then all of folder 2, and so on. Not a global time merge.
    """
    candidates = []
    for folder in folders:
        records = []
        for root, dirs, files in os.walk(folder):
            for fname in files:
                fpath = Path(root) / fname
                try:
                    records.append(FileRecord(fpath, file_created_at(fpath.lstat())))
                except OSError as e:
                    if batch is not None:
                        batch.info(f"Skipped file that could not be read: {fpath} ({e})")
        records.sort(key=lambda r: r.created)
        candidates.extend(records)
    return candidates


def reclaim_space(config: JanitorConfig, root: str, initial_free: int, batch: LogBatch) -> ReclaimReport:
    report = ReclaimReport()
    target_free = config.target_free_bytes

    for record in collect_candidates(config.folders, batch):
        try:
            size = record.path.lstat().st_size
            record.path.unlink()
        except OSError as e:
            batch.error(f"Failed to delete file {record.path}: {e}")
            report.failures.append((record.path, str(e)))
            continue

        report.freed_bytes += size
        report.deleted.append((record.path, size))
        batch.info(f"Deleted file: {record.path} | Size: {size // MB} MB")

        # Initial snapshot plus what we freed; the disk is not re-queried here
        if initial_free + report.freed_bytes >= target_free:
            report.target_reached = True
            break

    _, report.final_free_bytes = read_disk_usage(root)
    batch.info(f"Total freed: {report.freed_bytes // MB} MB")
    batch.info(f"Free space after cleanup: {report.final_free_bytes // MB} MB")
    return report


# --------------------------------------------------------------------------------------
# Run
# --------------------------------------------------------------------------------------

def run(base_dir: Path = SCRIPT_DIR, now=datetime.now) -> RunResult:
    """One pass: config -> folders -> old logs -> disk usage -> cleanup. Never raises."""
    base_dir = Path(base_dir)
    batch = None
    log = None
    try:
        log = LogWriter(base_dir / LOG_DIR_NAME, now=now)
        ctx = RunContext(log=log)

        loaded = load_or_create(base_dir / CONFIG_NAME, log)
        if loaded.bootstrapped:
            return RunResult(RunOutcome.BOOTSTRAPPED)
        ctx.config = loaded.config

        missing = find_missing_folder(ctx.config.folders)
        if missing is not None:
            log.error(f"Folder not found: {missing}")
            return RunResult(RunOutcome.FOLDER_MISSING, error=f"Folder not found: {missing}")

        log.prune_old_logs()
        batch = log.batch()
        return evaluate_and_reclaim(ctx, batch)
    except Exception as e:
        return _fail(log, batch, e)


def evaluate_and_reclaim(ctx: RunContext, batch: LogBatch) -> RunResult:
    config = ctx.config
    batch.info("Program started")

    root = volume_root(config.disk_letter)
    total, free = read_disk_usage(root)
    percent = used_percent(total, free)
    batch.info(f"Disk {config.disk_letter}: {percent}% used")

    if percent < config.max_usage_percent:
        batch.info("Threshold not exceeded. No cleanup needed.")
        batch.flush()
        return RunResult(RunOutcome.IDLE, used_percent=percent)

    report = reclaim_space(config, root, free, batch)
    batch.flush()
    return RunResult(RunOutcome.RECLAIMED, used_percent=percent, report=report)


def _fail(log: Optional[LogWriter], batch: Optional[LogBatch], exc: Exception) -> RunResult:
    message = f"General error: {exc}"
    if log is None:
        print(f"[ERROR] {message}")
        return RunResult(RunOutcome.FAILED, error=message)
    try:
        # Whatever the run already collected goes out with the error
        if batch is None:
            batch = log.batch()
        batch.error(message)
        batch.flush()
    except Exception as log_err:
        print(f"[ERROR] Logging failed: {log_err} ({message})")
    return RunResult(RunOutcome.FAILED, error=message)


def main() -> None:
    setup_console()
    result = run(SCRIPT_DIR)
    sys.exit(result.exit_code)


if __name__ == "__main__":
    main()
