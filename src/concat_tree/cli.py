# /// script
# requires-python = ">=3.11"
# dependencies = [
#     "pydantic",
#     "python-dotenv",
#     "structlog",
# ]
# ///
"""
concat_tree — Concatenate the files of a directory tree into one stream.

Overview
--------
Every selected file is written as a frame::

    filename -> <path relative to the scan root>:
    ---
    <raw file bytes>
    ---
    ---

to standard output or to an output file, which is truncated first and never
picked up as an input. Files are selected by extension (`*` for all), by a
list of excluded extensions, by ordered exclusion patterns, and binary files
are skipped unless `--binary` is given. Recursion is opt-in and depth bounded.

Usage
-----
Run `python -m concat_tree --help` for full options. Common examples:
    - Every file of the current directory to stdout:
        concat-tree

    - Python files two levels deep into a file:
        concat-tree -d 2 py snapshot.txt

    - Everything but images and the build tree, keeping one generated module:
        concat-tree -d 5 -e png,jpg -E "build/**,!build/generated"
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

from concat_tree import __version__
from concat_tree.config import CONTENT_SNIFFERS, SNIFFER_AUTO
from concat_tree.exceptions import RootDirectoryError, UsageError
from concat_tree.logging import DEFAULT_LEVEL, logger, setup_logging
from concat_tree.output_construction import Sink
from concat_tree.settings import Settings, env_defaults
from concat_tree.walker import check_root, walk_tree

if TYPE_CHECKING:
    from collections.abc import Sequence

DEFAULT_DEPTH = 1
MAX_POSITIONALS = 2
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

PATTERN_HELP = """\
exclusion patterns (-E), evaluated in order, the last matching one wins:
  name          any file or directory with this name, at any depth
  path/to/x     exactly this path, relative to the scan root
  *.log         files whose name matches the glob
  base/*        immediate children of base
  base/**       base and everything beneath it
  !path         re-include path and everything beneath it

environment (also read from .env):
  CONCAT_TREE_LOG_FILE, CONCAT_TREE_LOG_LEVEL, CONCAT_TREE_SNIFFER
"""


class ArgumentParser(argparse.ArgumentParser):
    """Argument parser raising `UsageError` instead of exiting with status 2."""

    def error(self, message: str) -> NoReturn:
        raise UsageError(message=message)


def build_parser() -> ArgumentParser:
    defaults = env_defaults()
    p = ArgumentParser(
        prog="concat-tree",
        description="Concatenate the files of a directory tree into a single framed stream.",
        epilog=PATTERN_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        add_help=False,
    )
    p.add_argument(
        "positionals",
        nargs="*",
        metavar="ARG",
        help="[file_extension] [output_file], or a single directory to scan.",
    )
    p.add_argument("-h", "--help", action="store_true", help="Show this help and exit.")
    p.add_argument(
        "-d",
        "--depth",
        type=int,
        default=None,
        metavar="N",
        help=f"Recurse into subdirectories, N levels deep (default {DEFAULT_DEPTH}).",
    )
    p.add_argument(
        "-e",
        "--exclude",
        action="append",
        default=[],
        metavar="EXTS",
        help="Comma list of extensions to skip (repeatable).",
    )
    p.add_argument(
        "-E",
        "--exclude-dir",
        action="append",
        default=[],
        metavar="PATTERNS",
        help="Comma list of exclusion patterns (repeatable, order matters).",
    )
    p.add_argument("-b", "--binary", action="store_true", help="Include binary files.")
    p.add_argument(
        "--log-file",
        type=str,
        default=defaults.get("log_file", ""),
        help="Log file path.",
    )
    p.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=defaults.get("log_level", DEFAULT_LEVEL).upper(),
        help="Minimum log level.",
    )
    p.add_argument(
        "--sniffer",
        choices=[SNIFFER_AUTO, *sorted(CONTENT_SNIFFERS)],
        default=defaults.get("sniffer", SNIFFER_AUTO),
        help="How binary content is detected.",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def normalize_depth_args(argv: Sequence[str]) -> list[str]:
    """Give `-d/--depth` an explicit value when it has none or an invalid one.

    `-d` takes the next token only if it is a non-negative integer; otherwise
    the depth defaults to 1 and the token stays a regular argument.

    Args:
        argv (Sequence[str]): the raw command line arguments

    Returns:
        list[str]: the arguments with every depth option in `--depth=N` form
    """
    out: list[str] = []
    i = 0
    while i < len(argv):
        tok = argv[i]
        if tok == "--":
            out.extend(argv[i:])
            break
        if tok in {"-d", "--depth"}:
            nxt = argv[i + 1] if i + 1 < len(argv) else None
            if nxt is not None and nxt.isdigit():
                out.append(f"--depth={nxt}")
                i += 2
                continue
            out.append(f"--depth={DEFAULT_DEPTH}")
        elif tok.startswith("--depth="):
            value = tok.split("=", 1)[1]
            out.append(tok if value.isdigit() else f"--depth={DEFAULT_DEPTH}")
        elif tok.startswith("-d") and not tok.startswith("--"):
            rest = tok[2:]
            if rest.isdigit():
                out.append(f"--depth={rest}")
            else:
                # `-db` is `-d` followed by other short flags
                out.extend([f"--depth={DEFAULT_DEPTH}", f"-{rest}"])
        else:
            out.append(tok)
        i += 1
    return out


def split_list(values: Sequence[str]) -> list[str]:
    """Flatten repeatable comma lists, dropping empty items and keeping order."""
    out: list[str] = []
    for v in values:
        out.extend(item.strip() for item in v.split(",") if item.strip())
    return out


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse the command line into run settings.

    Args:
        argv (Sequence[str] | None, optional): arguments without the program name.
            Defaults to `sys.argv[1:]`.

    Raises:
        UsageError: on an unknown flag, a missing flag argument or too many positionals
        SystemExit: with status 1 after printing the help, status 0 for `--version`

    Returns:
        Settings: the immutable configuration of the run
    """
    p = build_parser()
    raw = list(sys.argv[1:] if argv is None else argv)
    args = p.parse_intermixed_args(normalize_depth_args(raw))

    if args.help:
        p.print_help()
        raise SystemExit(1)

    positionals: list[str] = list(args.positionals or [])
    if len(positionals) > MAX_POSITIONALS:
        raise UsageError(message=f"too many arguments: {' '.join(positionals)}")

    root = Path.cwd()
    file_type = "*"
    output: Path | None = None
    if len(positionals) == 1 and Path(positionals[0]).is_dir():
        root = Path(positionals[0])
    elif positionals:
        file_type = positionals[0]
        if len(positionals) == MAX_POSITIONALS:
            output = Path(positionals[1])

    return Settings(
        root=root,
        file_type=file_type,
        recurse=args.depth is not None,
        max_depth=args.depth if args.depth is not None else DEFAULT_DEPTH,
        exclude_types=split_list(args.exclude),
        exclude_patterns=split_list(args.exclude_dir),
        include_binary=args.binary,
        output=output,
        log_file=args.log_file,
        log_level=args.log_level,
        sniffer=args.sniffer,
    )


def no_files_warning(settings: Settings) -> str:
    if settings.is_wildcard:
        return "Warning: No files found."
    return f"Warning: No files matching *.{settings.file_type} found."


def main(argv: Sequence[str] | None = None) -> int:
    try:
        settings = parse_args(argv)
    except UsageError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        build_parser().print_usage(sys.stderr)
        return 1

    if settings.log_file or settings.log_level != DEFAULT_LEVEL:
        setup_logging(settings.log_file or None, settings.log_level, force=True)

    try:
        root = check_root(settings.root)
    except RootDirectoryError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        with Sink(settings.output) as sink:
            result = walk_tree(root, settings, sink)
    except OSError as e:
        logger.error("Cannot write output %s: %s", settings.output, e)
        print(f"Error: cannot write output: {e}", file=sys.stderr)
        return 1

    logger.info(
        "Concatenated %d files (%d unreadable) from %s",
        result.files_emitted,
        result.read_errors,
        root,
    )
    if not result.found_any:
        print(no_files_warning(settings), file=sys.stderr)
    elif settings.output is not None:
        print(f"All matching files have been concatenated into {settings.output}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
