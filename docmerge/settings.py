# docmerge/settings.py

"""
Persisted merge defaults.

Settings live in ``settings.json`` under the platform user data directory.
Environment variables override the file for a single process:

    DOCMERGE_WORKERS   degree of parallelism for per-row output
    DOCMERGE_MODE      "per-row" or "combined"
    DOCMERGE_STRICT    1/0: abort on data or row errors vs. log and continue
    DOCMERGE_ARCHIVE   1/0: zip the per-row output directory
    DOCMERGE_DEBUG     1/0: verbose logging
"""

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

from appdirs import user_data_dir, user_log_dir

from docmerge.assembler import OutputMode
from docmerge.errors import ConfigurationError

logger = logging.getLogger(__name__)


APP_NAME = "DocMerge"
APP_AUTHOR = "DocMerge"
SCHEMA_VERSION = 1

ENV_PREFIX = "DOCMERGE_"


def settings_file() -> Path:
    return Path(user_data_dir(APP_NAME, APP_AUTHOR)) / "settings.json"


def log_dir() -> Path:
    return Path(user_log_dir(APP_NAME, APP_AUTHOR))


def _parse_bool(val) -> bool:
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass
class MergeSettings:
    workers: int = 4
    mode: str = OutputMode.PER_ROW.value
    strict: bool = True
    archive: bool = False
    debug: bool = False

    def validate(self) -> "MergeSettings":
        self.mode = OutputMode.parse(self.mode).value
        try:
            self.workers = int(self.workers)
        except (TypeError, ValueError):
            raise ConfigurationError(f"workers must be an integer, got {self.workers!r}") from None
        if self.workers < 1:
            raise ConfigurationError(f"workers must be at least 1, got {self.workers}")
        self.strict = bool(self.strict)
        self.archive = bool(self.archive)
        self.debug = bool(self.debug)
        return self

    def to_dict(self) -> dict:
        return asdict(self)


# -------------------------------------------------
# Public API
# -------------------------------------------------

def load_settings(path: Optional[Path] = None, *, environ=None) -> MergeSettings:
    """
    Load settings from disk, then apply environment overrides.

    A missing or corrupted file falls back to defaults.
    """
    path = Path(path) if path else settings_file()
    environ = os.environ if environ is None else environ

    data = {}
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable settings file %s: %s", path, e)
            data = {}

    known = {f.name for f in fields(MergeSettings)}
    settings = MergeSettings(**{k: v for k, v in data.items() if k in known})

    for name in known:
        raw = environ.get(ENV_PREFIX + name.upper())
        if raw is None or raw == "":
            continue
        if name in ("strict", "archive", "debug"):
            setattr(settings, name, _parse_bool(raw))
        else:
            setattr(settings, name, raw)

    return settings.validate()


def save_settings(settings: MergeSettings, path: Optional[Path] = None) -> Path:
    path = Path(path) if path else settings_file()
    data = {"schema_version": SCHEMA_VERSION, **settings.validate().to_dict()}
    atomic_save_json(path, data)
    return path


def atomic_save_json(path: Path, data: dict) -> None:
    """
    Atomically save JSON data to prevent corruption.

    Writes to a temporary file in the same directory, then moves it over
    the destination with os.replace.
    """
    p = Path(path).expanduser()
    parent = p.parent
    tmp_path = None

    try:
        parent.mkdir(parents=True, exist_ok=True)

        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            dir=str(parent),
            prefix=p.name + ".",
            suffix=".tmp",
            delete=False,
        ) as f:
            tmp_path = Path(f.name)
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())

        os.replace(str(tmp_path), str(p))

    except Exception:
        if tmp_path and tmp_path.exists():
            tmp_path.unlink()
        raise
