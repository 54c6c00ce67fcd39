import argparse
import json
from collections.abc import Sequence
from typing import Any


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Track repositories and sync their issue/PR vectors")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create metadata tables")
    for name, help_text in (
        ("add", "Register a repository (owner/repo)"),
        ("remove", "Stop tracking a repository and delete its vectors"),
        ("status", "Show a repository's sync status"),
        ("sync", "Run an incremental sync now"),
        ("backfill", "Rebuild the vector object from all open items"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("full_name", type=str, help="Repository in owner/repo form")

    sub.add_parser("list", help="List tracked repositories")

    worker = sub.add_parser("worker", help="Run the scheduled sync loop")
    worker.add_argument("--once", action="store_true", help="Run a single scheduled pass and exit")
    worker.add_argument("--interval", type=float, default=None, help="Seconds between scheduled passes")
    return parser.parse_args(argv)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, ensure_ascii=False, sort_keys=True))


def run_command(args: argparse.Namespace) -> int:
    from juxtapose.core.errors import DatabaseOperationError
    from juxtapose.services.repositories import RepositoryServiceError, default_repository_service
    from juxtapose.workers import sync_worker

    if args.command == "init-db":
        from juxtapose.db.session import init_db

        init_db()
        _emit({"initialized": True})
        return 0

    if args.command == "worker":
        if args.once:
            outcomes = sync_worker.run_scheduled_pass()
            _emit([outcome.as_dict() for outcome in outcomes])
            return 0 if all(outcome.ok for outcome in outcomes) else 1
        sync_worker.run_forever(args.interval)
        return 0

    with sync_worker.session_scope() as db:
        service = default_repository_service(db)
        try:
            if args.command == "add":
                _emit(service.register(args.full_name).to_dict())
                return 0
            if args.command == "remove":
                removed = service.remove(args.full_name)
                _emit({"fullName": args.full_name, "removed": removed})
                return 0 if removed else 1
            if args.command == "status":
                record = service.get_status(args.full_name)
                if record is None:
                    _emit({"fullName": args.full_name, "errorCode": "REPOSITORY_NOT_FOUND"})
                    return 1
                _emit(record.to_dict())
                return 0
            if args.command == "list":
                _emit([record.to_dict() for record in service.list_repositories()])
                return 0
        except RepositoryServiceError as exc:
            _emit({"fullName": getattr(args, "full_name", None), "errorCode": exc.error_code, "errorMessage": str(exc)})
            return 1
        except DatabaseOperationError as exc:
            error = exc.as_sync_error()
            _emit({"fullName": getattr(args, "full_name", None), "errorCode": error.error_code, "errorMessage": error.message})
            return 1

        if args.command == "sync":
            outcome = service.trigger_sync(args.full_name)
        else:
            outcome = service.trigger_backfill(args.full_name)
    _emit(outcome.as_dict())
    return 0 if outcome.result in ("completed", "skipped") else 1


def main(argv: Sequence[str] | None = None) -> int:
    from juxtapose.core.logging import configure_logging

    args = parse_args(argv)
    configure_logging()
    return run_command(args)


if __name__ == "__main__":
    raise SystemExit(main())
