"""CLI entrypoints for repoindex commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError
from .errors import OutputError
from .logging import configure_logging
from .orchestrator import Orchestrator


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


def _add_path_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the repository root (defaults to current directory).",
    )


def _positive_cap(value: str) -> int:
    try:
        cap = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid token cap: {value!r}") from None
    if cap <= 0:
        raise argparse.ArgumentTypeError("token cap must be positive")
    return cap


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repoindex",
        description="Index a repository into snapshots, paste chunks and a verifiable pack.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    commands = {
        "init": "Index the repository and write every artifact.",
        "reindex": "Re-index, archive the previous snapshot and write a diff report.",
        "sub": "Index just this directory into .sub_index/.",
        "chunk": "Re-render paste chunks from the stored snapshot.",
        "pack": "Rebuild the content-addressable pack from the stored snapshot.",
    }
    for name, help_text in commands.items():
        command_parser = subparsers.add_parser(name, help=help_text)
        _add_verbose_option(command_parser, suppress_default=True)
        _add_path_argument(command_parser)
        if name == "chunk":
            command_parser.add_argument(
                "--cap",
                type=_positive_cap,
                default=None,
                help="Token cap per paste chunk (defaults to the configured cap).",
            )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for repoindex commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    orchestrator = Orchestrator()

    try:
        if args.command in ("init", "reindex"):
            outcome = orchestrator.run_index(args.path, reindex=args.command == "reindex")
            print(f"Index written to {_relativize(outcome.index_path)} ({len(outcome.records)} files)")
            if outcome.diff_path is not None:
                print(f"Diff written to {_relativize(outcome.diff_path)}")
            if outcome.chunk_paths:
                print(f"Paste chunks written to {_relativize(outcome.chunk_paths[0].parent)}")
            if outcome.pack_path is not None:
                print(f"Pack written to {_relativize(outcome.pack_path)}")
        elif args.command == "sub":
            outcome = orchestrator.run_sub(args.path)
            print(f"Subdir index complete: {_relativize(outcome.index_path)}")
        elif args.command == "chunk":
            paths = orchestrator.run_chunk(args.path, token_cap=args.cap)
            print(f"{len(paths)} paste chunk(s) written")
        elif args.command == "pack":
            pack_path = orchestrator.run_pack(args.path)
            print(f"Pack written to {_relativize(pack_path)}")
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(1, "Unknown command\n")
    except (FileNotFoundError, NotADirectoryError) as exc:
        parser.exit(1, f"{exc}\n")
    except (ConfigError, OutputError, OSError, UnicodeDecodeError) as exc:
        parser.exit(1, f"repoindex {args.command} failed: {exc}\nRun with --verbose for more details.\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
