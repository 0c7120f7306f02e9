import os
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_data_dir

APP_NAME = "nidipo-portal"
APP_AUTHOR = "nidipo"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _resolve_data_dir() -> Path:
    env_dir = os.getenv("NIDIPO_DATA_DIR")
    if env_dir:
        return Path(env_dir)
    return Path(user_data_dir(APP_NAME, APP_AUTHOR))


DATA_DIR = _resolve_data_dir()
LOG_DIR = DATA_DIR / "logs"
EXPORT_DIR = DATA_DIR / "exports"
DB_FILE = Path(os.getenv("NIDIPO_DB_FILE") or (DATA_DIR / "portal.db"))

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOG_DIR.mkdir(parents=True, exist_ok=True)
DB_FILE.parent.mkdir(parents=True, exist_ok=True)


def default_database_url() -> str:
    # SQLite URL uses forward slashes; as_posix() keeps it cross-platform.
    return f"sqlite:///{DB_FILE.as_posix()}"


@dataclass(frozen=True)
class Settings:
    database_url: str = os.getenv("DATABASE_URL", default_database_url())
    echo_sql: bool = _env_bool("SQL_ECHO", False)
    portal_base_url: str = os.getenv("NIDIPO_PORTAL_BASE_URL", "http://localhost:8000/")
    backup_max_age_hours: int = _env_int("NIDIPO_BACKUP_MAX_AGE_HOURS", 24)
    export_prefix: str = os.getenv("NIDIPO_EXPORT_PREFIX", "patients_export")
    reset_token_ttl_minutes: int = _env_int("NIDIPO_RESET_TOKEN_TTL_MINUTES", 60)
    snapshot_file: Path = DATA_DIR / "nidipo_form_backup.json"


settings = Settings()
