"""CLI entrypoint for fiesta-chat."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from importlib import metadata
from pathlib import Path

from .app import FiestaChatApp
from .config import ensure_config_dir


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fiesta-chat",
        description="fiesta-chat - Send one prompt to several models side by side",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help="Read configuration from PATH instead of ~/.config/fiesta-chat/config.toml",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Ensure configuration exists, handle CLI flags, and run the TUI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("fiesta-chat")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"fiesta-chat {version}")
        return

    config_path = args.config.expanduser() if args.config is not None else None
    ensure_config_dir(config_path.parent if config_path is not None else None)
    app = FiestaChatApp(config_path=config_path)
    app.run()


if __name__ == "__main__":
    main()
