from __future__ import annotations

import logging
import traceback
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import select

from nidipo.domain.constants import UserRole
from nidipo.infrastructure.db.models_sqlalchemy import User

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "infrastructure" / "db" / "migrations"


def _alembic_config(database_url: str, root_dir: Path | None = None) -> Config:
    ini_path = (root_dir / "alembic.ini") if root_dir is not None else None
    cfg = Config(str(ini_path)) if ini_path is not None and ini_path.exists() else Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", database_url)
    return cfg


def check_startup_prerequisites(db_file: Path) -> bool:
    if not MIGRATIONS_DIR.exists():
        logger.error("Migrations directory is missing: %s", MIGRATIONS_DIR)
        return False
    try:
        test_file = db_file.parent / ".write_test"
        test_file.write_text("ok", encoding="utf-8")
        test_file.unlink(missing_ok=True)
    except OSError:
        logger.exception("Database directory is not writable: %s", db_file.parent)
        return False
    return True


def run_migrations(database_url: str, log_dir: Path, db_file: Path, root_dir: Path | None = None) -> bool:
    try:
        command.upgrade(_alembic_config(database_url, root_dir), "head")
        return True
    except Exception:  # noqa: BLE001
        logger.exception("Failed to run migrations")
        try:
            error_path = log_dir / "migration_error.log"
            error_path.parent.mkdir(parents=True, exist_ok=True)
            with error_path.open("a", encoding="utf-8") as handle:
                handle.write("\n--- Migration error ---\n")
                handle.write(f"DB: {db_file}\n")
                handle.write(f"Migrations: {MIGRATIONS_DIR}\n")
                handle.write(traceback.format_exc())
        except OSError:
            logger.exception("Failed to write migration error log")
        return False


def has_users(session_factory) -> bool:
    try:
        with session_factory() as session:
            return session.execute(select(User.id).limit(1)).first() is not None
    except Exception:  # noqa: BLE001
        logger.exception("Failed to check users")
        return False


def has_admin(session_factory) -> bool:
    try:
        with session_factory() as session:
            stmt = select(User.id).where(User.role == UserRole.ADMIN.value).limit(1)
            return session.execute(stmt).first() is not None
    except Exception:  # noqa: BLE001
        logger.exception("Failed to check administrator")
        return False


def initialize_database(*, db_file: Path, database_url: str, log_dir: Path, root_dir: Path | None = None) -> bool:
    if not check_startup_prerequisites(db_file):
        return False
    return run_migrations(database_url, log_dir, db_file, root_dir)
