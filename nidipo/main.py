from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from logging.handlers import RotatingFileHandler
from pathlib import Path

from pydantic import ValidationError

from nidipo.application.dto.auth_dto import SignInRequest, SignUpRequest
from nidipo.bootstrap.startup import has_admin, initialize_database
from nidipo.config import DB_FILE, EXPORT_DIR, LOG_DIR, settings
from nidipo.container import build_container
from nidipo.infrastructure.db.session import session_scope

logger = logging.getLogger("nidipo")


def _setup_logging() -> Path:
    log_path = LOG_DIR / "app.log"
    handler = RotatingFileHandler(log_path, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(handler)
    return log_path


def _install_exception_hook(log_path: Path) -> None:
    def _handle_exception(exc_type, exc, tb) -> None:
        logging.getLogger("nidipo").critical("Unhandled exception", exc_info=(exc_type, exc, tb))
        print(f"Unexpected error. Details: {log_path}", file=sys.stderr)
        sys.__excepthook__(exc_type, exc, tb)

    sys.excepthook = _handle_exception


def _init_db() -> bool:
    return initialize_database(db_file=DB_FILE, database_url=settings.database_url, log_dir=LOG_DIR)


def _cmd_init_db(_args: argparse.Namespace) -> int:
    if not _init_db():
        print(f"Database migration failed. See {LOG_DIR / 'migration_error.log'}", file=sys.stderr)
        return 1
    print(f"Database ready: {settings.database_url}")
    return 0


def _cmd_bootstrap_admin(args: argparse.Namespace) -> int:
    if not _init_db():
        return 1
    if has_admin(session_scope):
        print("An administrator is already registered", file=sys.stderr)
        return 1
    container = build_container()
    request = SignUpRequest(name=args.name, email=args.email, password=args.password)
    user_id = container.auth_service.bootstrap_admin(request)
    print(f"Administrator created (id={user_id})")
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    if not _init_db():
        return 1
    container = build_container()
    container.session_gate.start()
    try:
        container.auth_service.sign_in(SignInRequest(email=args.email, password=args.password))
        actor = container.session_gate.session_context()
        if actor is None:
            print("Could not fetch user profile.", file=sys.stderr)
            return 1
        path = container.patient_service.export_csv(actor, args.out, query=args.query)
    finally:
        container.auth_service.sign_out()
        container.session_gate.close()
    print(path)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nidipo", description="NIDIPO outcomes portal")
    sub = parser.add_subparsers(dest="command", required=True)

    init_db = sub.add_parser("init-db", help="Apply database migrations")
    init_db.set_defaults(handler=_cmd_init_db)

    bootstrap = sub.add_parser("bootstrap-admin", help="Create the first administrator")
    bootstrap.add_argument("--name", required=True)
    bootstrap.add_argument("--email", required=True)
    bootstrap.add_argument("--password", required=True)
    bootstrap.set_defaults(handler=_cmd_bootstrap_admin)

    export = sub.add_parser("export", help="Export visible patient records to CSV")
    export.add_argument("--email", required=True)
    export.add_argument("--password", required=True)
    export.add_argument("--out", type=Path, default=EXPORT_DIR)
    export.add_argument("--query", default=None)
    export.set_defaults(handler=_cmd_export)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    log_path = _setup_logging()
    _install_exception_hook(log_path)
    args = build_parser().parse_args(argv)
    try:
        return args.handler(args)
    except (ValueError, ValidationError) as exc:
        logger.warning("%s failed: %s", args.command, exc)
        print(str(exc), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
