from __future__ import annotations

import os
from pathlib import Path


def default_quotad_dir() -> Path:
    override = os.environ.get("QUOTAD_HOME")
    if override:
        return Path(override)
    return Path.home() / ".quotad"


def default_config_path() -> Path:
    return default_quotad_dir() / "quotad.toml"


def default_database_path() -> Path:
    return default_quotad_dir() / "accounts.sqlite3"


def ensure_private_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)
    try:
        os.chmod(path, 0o700)
    except OSError:
        pass
