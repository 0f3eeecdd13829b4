"""CLI entrypoints for repometer commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError, Settings, load_settings
from .logging import configure_logging
from .pipeline import Pipeline
from .stores import RepositoryStore, StoreError


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repometer",
        description="Harvest repository metadata and measure own and library code size.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        default=None,
        help="Path to .repometer.yml or its directory (defaults to current directory).",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write timestamped logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    fetch_parser = subparsers.add_parser(
        "fetch",
        help="Discover, enrich and measure repositories.",
    )
    _add_verbose_option(fetch_parser, suppress_default=True)
    fetch_parser.add_argument(
        "-c",
        "--count",
        type=int,
        required=True,
        help="Number of repositories to request from code search.",
    )

    prune_parser = subparsers.add_parser(
        "prune",
        help="Remove stored repositories that share a canonical URL.",
    )
    _add_verbose_option(prune_parser, suppress_default=True)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="0.0.0.0", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8080, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for repometer commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    log_file = Path(args.log_file) if args.log_file else None
    configure_logging(verbose=bool(args.verbose), log_file=log_file)

    try:
        settings = load_settings(Path(args.config) if args.config else None)
        store = RepositoryStore(settings.effective_store_path)
    except (ConfigError, StoreError) as exc:
        parser.exit(1, f"repometer: {exc}\n")

    if args.command == "fetch":
        if args.count < 1:
            parser.exit(1, "repometer: --count must be at least 1\n")
        try:
            pipeline = Pipeline.from_settings(settings, store=store)
            repositories = pipeline.run(args.count)
        except ConfigError as exc:
            parser.exit(1, f"repometer: {exc}\n")
        except RuntimeError as exc:
            parser.exit(1, f"repometer fetch failed: {exc}\nRun with --verbose for more details.\n")
        _print_summary(repositories)
    elif args.command == "prune":
        removed = store.prune_duplicates()
        print(f"Removed {removed} duplicate repositories")
    elif args.command == "serve":
        _serve(settings, store, host=args.host, port=args.port)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _serve(settings: Settings, store: RepositoryStore, *, host: str, port: int) -> None:
    from .service import create_app, run_service

    app = create_app(
        lambda: store,
        lambda repositories: Pipeline.from_settings(settings, store=repositories),
    )
    run_service(app, host=host, port=port)


def _print_summary(repositories: list) -> None:
    if not repositories:
        print("No new repositories processed")
        return
    for repository in repositories:
        print(
            f"{repository.url}: code={repository.original_codebase_size or '-'} "
            f"libraries={repository.library_codebase_size or '-'}"
        )


if __name__ == "__main__":
    main(sys.argv[1:])
