import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# --------------------------------------------------------------------------------------
# Config defaults
# --------------------------------------------------------------------------------------

DEFAULT_CONFIG = {
    "folders": ["D:\\Videos"],
    "diskLetter": "D",
    "maxDiskUsagePercent": 90,
    "minFreeSpaceAfterCleanupMB": 800,
}

REQUIRED_KEYS = ["folders"]


class ConfigError(ValueError):
    """config.json exists but cannot be used."""


@dataclass(frozen=True)
class JanitorConfig:
    folders: list[str] = field(default_factory=list)
    disk_letter: str = "D"
    max_usage_percent: int = 90
    min_free_after_cleanup_mb: int = 800

    @property
    def target_free_bytes(self) -> int:
        return self.min_free_after_cleanup_mb * 1024 * 1024


@dataclass
class ConfigLoad:
    """Result of load_or_create: either a config, or a freshly written default file."""
    config: Optional[JanitorConfig]
    bootstrapped: bool = False


# --------------------------------------------------------------------------------------
# Load / bootstrap
# --------------------------------------------------------------------------------------

def save_default_config(path: Path) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(DEFAULT_CONFIG, f, indent=2)
        f.write("\n")


def load_or_create(path: Path, log_writer) -> ConfigLoad:
    """Load config.json, or write the defaults and report a bootstrap when it is missing."""
    path = Path(path)
    if not path.exists():
        save_default_config(path)
        log_writer.info(f"Config file not found. Created default config: {path}")
        log_writer.info("Edit the config file and run the program again.")
        return ConfigLoad(config=None, bootstrapped=True)

    with open(path, "r", encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Failed to parse {path.name}: {e}") from e

    return ConfigLoad(config=parse_config(raw))


def parse_config(raw) -> JanitorConfig:
    if not isinstance(raw, dict):
        raise ConfigError("config.json must contain a JSON object")

    # Accept both camelCase and PascalCase keys
    cfg = {k.lower(): v for k, v in raw.items()}
    for k in REQUIRED_KEYS:
        if k.lower() not in cfg:
            raise ConfigError(f"Missing required key in config.json: {k}")
    for k, v in DEFAULT_CONFIG.items():
        cfg.setdefault(k.lower(), v)

    folders = cfg["folders"]
    if not isinstance(folders, list) or not all(isinstance(p, str) for p in folders):
        raise ConfigError("folders must be a list of paths")

    disk_letter = cfg["diskletter"]
    if not isinstance(disk_letter, str) or not disk_letter.strip():
        raise ConfigError("diskLetter must be a non-empty string")

    max_usage = _as_int(cfg["maxdiskusagepercent"], "maxDiskUsagePercent")
    if not 0 <= max_usage <= 100:
        raise ConfigError(f"maxDiskUsagePercent must be between 0 and 100, got {max_usage}")

    min_free_mb = _as_int(cfg["minfreespaceaftercleanupmb"], "minFreeSpaceAfterCleanupMB")
    if min_free_mb < 0:
        raise ConfigError(f"minFreeSpaceAfterCleanupMB must not be negative, got {min_free_mb}")

    return JanitorConfig(
        folders=list(folders),
        disk_letter=disk_letter.strip(),
        max_usage_percent=max_usage,
        min_free_after_cleanup_mb=min_free_mb,
    )


def _as_int(value, key: str) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key} must be an integer, got {value!r}")
    return value
