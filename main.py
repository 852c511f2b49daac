"""Command-line interface for the Pinky task tracker API."""

from __future__ import annotations
import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from pinky.config import Settings, load_settings
from pinky.errors import PinkyError
from pinky.seeding import load_seed_file, populate_demo_data, write_seed_file
from pinky.store import EntityStore

logger = logging.getLogger("pinky.main")

_DEFAULT_SEED_OUTPUT = "seed-data.json"


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Pinky task tracker utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML settings file (defaults to PINKY_CONFIG when set)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: 127.0.0.1 or PINKY_HOST)")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the HTTP API (default: 3001 or PORT)",
    )
    serve_parser.add_argument(
        "--seed-file",
        default=None,
        help="JSON snapshot to load into the store before serving",
    )

    seed_parser = subparsers.add_parser("seed", help="Write a demo seed snapshot to disk")
    seed_parser.add_argument(
        "--output",
        default=_DEFAULT_SEED_OUTPUT,
        help=f"Destination file (default: {_DEFAULT_SEED_OUTPUT})",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "seed"}

    # Global options may precede the subcommand.
    index = 0
    while index < len(args_list):
        arg = args_list[index]
        if arg.startswith("--config="):
            index += 1
        elif arg == "--config":
            if index + 1 >= len(args_list):
                # Let argparse report the missing value.
                return parser.parse_args(args_list)
            index += 2
        else:
            break

    if index >= len(args_list):
        args_list = [*args_list, "serve"]
    else:
        first = args_list[index]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = [*args_list[:index], "serve", *args_list[index:]]

    return parser.parse_args(args_list)


def _serve(
    *,
    settings: Settings,
    host: str | None,
    port: int | None,
    seed_file: str | None,
) -> None:
    from pinky.service import create_app
    import uvicorn

    store = EntityStore()
    seed_path = Path(seed_file).expanduser() if seed_file else settings.seed_path
    if seed_path is not None:
        try:
            load_seed_file(store, seed_path)
        except (ValueError, PinkyError) as exc:
            raise SystemExit(f"Unable to load seed file {seed_path}: {exc}") from exc

    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("Starting Pinky API on http://%s:%s", bind_host, bind_port)

    app = create_app(store=store, settings=settings)
    uvicorn.run(app, host=bind_host, port=bind_port, log_level="info")


def _seed(output: str) -> None:
    store = EntityStore()
    snapshot = populate_demo_data(store)
    write_seed_file(Path(output).expanduser(), snapshot)
    print(f"Seed data written to {output}")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    config_path = Path(args.config).expanduser() if args.config else None

    if args.command == "serve":
        _serve(
            settings=load_settings(config_path),
            host=args.host,
            port=args.port,
            seed_file=args.seed_file,
        )
    elif args.command == "seed":
        _seed(args.output)


if __name__ == "__main__":
    main()
