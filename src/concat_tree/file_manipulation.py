from __future__ import annotations

import os
import stat
import subprocess  # noqa: S404
from pathlib import Path
from shutil import which
from typing import TYPE_CHECKING

from concat_tree.config import (
    BINARY_EXTENSIONS,
    CONTENT_SNIFFERS,
    SNIFFER_AUTO,
    SNIFFER_FILE_COMMAND,
    SNIFFER_NULL_BYTE,
    WILDCARD_TYPE,
    register_sniffer,
)
from concat_tree.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Collection, Iterable

    ContentSnifferFn = Callable[[Path], bool]

SNIFF_BYTES = 8000
FILE_COMMAND_TIMEOUT = 10


def file_extension(filename: str) -> str:
    """Return the substring after the last dot of a file name ("" when there is none).

    Args:
        filename (str): a file name or path; only the basename is considered

    Returns:
        str: the extension without its dot, unchanged in case
    """
    name = os.path.basename(filename)
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[1]


def matches_file_type(filename: str, file_type: str) -> bool:
    """Check whether a file name carries the requested extension.

    Args:
        filename (str): the file name to test
        file_type (str): the requested extension, or "*" for every file

    Returns:
        bool: True if every file is requested or the name ends with `.file_type`
    """
    if file_type == WILDCARD_TYPE:
        return True
    return filename.endswith(f".{file_type}")


def is_regular_file(path: Path) -> bool:
    """Check if a file is regular.

    Args:
        path (Path): path to test.

    Returns:
        bool: True if the file is regular, False otherwise.
    """
    try:
        st = path.stat()
        return stat.S_ISREG(st.st_mode)
    except OSError:
        return False


def is_same_path(candidate: Path, others: Iterable[Path]) -> bool:
    """Check whether `candidate` designates one of `others`.

    The comparison is done both on the literal (normalized) path and on the
    resolved absolute path, so `out.txt`, `./out.txt` and `/abs/out.txt` are
    recognised as the same file.

    Args:
        candidate (Path): the path found while walking
        others (Iterable[Path]): the paths to compare with (output file, log file)

    Returns:
        bool: True if `candidate` is one of `others`
    """
    literal = os.path.normpath(candidate)
    try:
        resolved = candidate.resolve()
    except OSError:
        resolved = None
    for other in others:
        if literal == os.path.normpath(other):
            return True
        try:
            if resolved is not None and resolved == other.resolve():
                return True
        except OSError:
            continue
    return False


@register_sniffer(SNIFFER_NULL_BYTE)
def sniff_null_byte(path: Path, nbytes: int = SNIFF_BYTES) -> bool:
    """Report a file as binary when its first bytes contain a NUL byte.

    This is the fallback every other sniffer ends on. A file that cannot be read
    is reported as text.

    Args:
        path (Path): the file to inspect
        nbytes (int, optional): number of bytes to read. Defaults to 8000.

    Returns:
        bool: True if a NUL byte was found
    """
    try:
        with path.open("rb") as f:
            chunk = f.read(nbytes)
    except OSError as e:
        logger.debug("Cannot sniff %s: %s", path, e)
        return False
    return b"\x00" in chunk


@register_sniffer(SNIFFER_FILE_COMMAND)
def sniff_file_command(path: Path) -> bool:
    """Ask the system `file` utility for the encoding of a file.

    Falls back to `sniff_null_byte` when `file` is not installed or fails.

    Args:
        path (Path): the file to inspect

    Returns:
        bool: True if `file --mime-encoding` reports the content as binary
    """
    file_bin = which("file")
    if file_bin is None:
        return sniff_null_byte(path)
    try:
        # `file` labels empty files "binary"
        if path.stat().st_size == 0:
            return False
    except OSError:
        return False
    try:
        out = subprocess.run(  # noqa: S603
            [file_bin, "--brief", "--mime-encoding", str(path)],
            text=True,
            capture_output=True,
            check=True,
            timeout=FILE_COMMAND_TIMEOUT,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug("file probe failed for %s: %s", path, e)
        return sniff_null_byte(path)
    encoding = out.stdout.strip().lower()
    if not encoding or encoding.startswith("cannot"):
        return sniff_null_byte(path)
    return encoding == "binary"


def resolve_sniffer(name: str = SNIFFER_AUTO) -> ContentSnifferFn:
    """Return the content sniffer registered under `name`.

    `auto` picks the `file` utility when it is on the PATH, the NUL-byte scan otherwise.
    An unknown name falls back to the NUL-byte scan.

    Args:
        name (str, optional): the sniffer name. Defaults to "auto".

    Returns:
        ContentSnifferFn: a callable answering whether a path looks binary
    """
    if name == SNIFFER_AUTO:
        name = SNIFFER_FILE_COMMAND if which("file") else SNIFFER_NULL_BYTE
    sniffer = CONTENT_SNIFFERS.get(name)
    if sniffer is None:
        logger.warning("Unknown sniffer %s, using %s", name, SNIFFER_NULL_BYTE)
        return sniff_null_byte
    return sniffer


def is_binary(path: Path, sniffer: ContentSnifferFn | None = None) -> bool:
    """Heuristically decide whether a file holds binary content.

    Known binary extensions short-circuit without reading the file; other files
    are handed to the content sniffer. This is a heuristic: false positives and
    negatives are possible. It never raises; an unreadable file counts as text.

    Args:
        path (Path): the file to classify
        sniffer (ContentSnifferFn | None, optional): the content sniffer to use.
            Defaults to the NUL-byte scan.

    Returns:
        bool: True if the file is considered binary
    """
    if file_extension(path.name).lower() in BINARY_EXTENSIONS:
        return True
    sniff = sniffer or sniff_null_byte
    try:
        return bool(sniff(path))
    except OSError as e:
        logger.debug("Binary check failed for %s: %s", path, e)
        return False


def is_type_excluded(
    filename: str | Path,
    exclude_types: Collection[str],
    include_binary: bool,  # noqa: FBT001
    *,
    sniffer: ContentSnifferFn | None = None,
) -> bool:
    """Decide whether a file is dropped because of its type.

    Args:
        filename (str | Path): the file to test; its content is read for the binary check
        exclude_types (Collection[str]): extensions (without dot) to drop
        include_binary (bool): keep files detected as binary
        sniffer (ContentSnifferFn | None, optional): content sniffer for the binary check

    Returns:
        bool: True if the extension is excluded, or if the file is binary and
            binary files are not requested
    """
    path = Path(filename)
    if file_extension(path.name) in exclude_types:
        return True
    if include_binary:
        return False
    return is_binary(path, sniffer=sniffer)
