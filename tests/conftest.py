import os
import json
from datetime import datetime

import pytest

import disk_janitor
import janitor_log

MB = 1024 * 1024
NOW = datetime(2026, 10, 18, 12, 0, 0)


class FakeDisk:
    """Stands in for psutil: first query returns the initial free space, later ones final_free."""

    def __init__(self, total, free, final_free=None):
        self.total = total
        self.free = free
        self.final_free = free if final_free is None else final_free
        self.queries = []

    def __call__(self, root):
        self.queries.append(root)
        if len(self.queries) == 1:
            return self.total, self.free
        return self.total, self.final_free


@pytest.fixture
def created_is_mtime(monkeypatch):
    # Creation time can't be set portably; tests drive ordering through mtime
    monkeypatch.setattr(disk_janitor, "file_created_at", lambda st: st.st_mtime)
    monkeypatch.setattr(janitor_log, "file_created_at", lambda st: st.st_mtime)


@pytest.fixture
def fake_disk(monkeypatch):
    def install(total, free, final_free=None):
        disk = FakeDisk(total, free, final_free)
        monkeypatch.setattr(disk_janitor, "read_disk_usage", disk)
        return disk
    return install


def make_file(path, size, stamp):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\0" * size)
    os.utime(path, (stamp, stamp))
    return path


def write_config(base_dir, folders, max_usage=90, min_free_mb=1, disk_letter="D"):
    cfg = {
        "folders": [str(f) for f in folders],
        "diskLetter": disk_letter,
        "maxDiskUsagePercent": max_usage,
        "minFreeSpaceAfterCleanupMB": min_free_mb,
    }
    (base_dir / "config.json").write_text(json.dumps(cfg), encoding="utf-8")


def read_logs(base_dir):
    return "".join(p.read_text(encoding="utf-8") for p in sorted((base_dir / "logs").glob("log_*.txt")))
