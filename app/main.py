import argparse

from app.config.settings import Settings
from app.container import build_services
from app.database.connection import close_pool, init_pool
from app.logging.logger import Log

COMMANDS = ("indexer", "reconcile")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m app.main",
        description="Document ingestion and search indexing worker.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="indexer",
        choices=COMMANDS,
        help="indexer: consume ingestion events (default); "
        "reconcile: re-emit events for stale pending documents once",
    )
    parser.add_argument(
        "--max-events",
        type=int,
        default=None,
        help="stop the indexer after handling this many events",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Entry point: initialize pool -> build dependencies -> run the command."""
    args = parse_args(argv)
    settings = Settings()
    Log.configure(settings.log_level)
    init_pool(settings)

    try:
        services = build_services(settings)
        try:
            if args.command == "reconcile":
                services.reconciler.run_once()
            else:
                services.worker.run(max_events=args.max_events)
        finally:
            services.close()
    finally:
        close_pool()


if __name__ == "__main__":
    main()
