from __future__ import annotations

from enum import StrEnum, auto
from functools import wraps
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, computed_field

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    ContentSnifferFn = Callable[[Path], bool]

WILDCARD_TYPE = "*"

GLOB_CHARS = frozenset("*?")


class CandidateKind(StrEnum):
    """Kind of filesystem entry being evaluated by the exclusion rules."""

    FILE = auto()
    DIRECTORY = auto()


class PatternKind(StrEnum):
    """Classification of an exclusion pattern.

    The kind decides which part of a candidate (basename or relative path) the
    pattern is compared with, and which candidate kinds it applies to.
    """

    BARE_NAME = auto()
    RELATIVE_PATH = auto()
    GLOB = auto()
    WILDCARD_CHILDREN = auto()
    SUBTREE = auto()
    NEGATION = auto()


# Extensions reported as binary without reading the file.
BINARY_EXTENSIONS: frozenset[str] = frozenset(
    {
        # images
        "bmp",
        "gif",
        "ico",
        "icns",
        "jpeg",
        "jpg",
        "png",
        "psd",
        "tif",
        "tiff",
        "webp",
        # audio
        "aac",
        "flac",
        "m4a",
        "mp3",
        "ogg",
        "wav",
        "wma",
        # video
        "avi",
        "flv",
        "m4v",
        "mkv",
        "mov",
        "mp4",
        "mpeg",
        "mpg",
        "webm",
        "wmv",
        # archives
        "7z",
        "bz2",
        "gz",
        "jar",
        "rar",
        "tar",
        "tgz",
        "war",
        "whl",
        "xz",
        "zip",
        "zst",
        # office documents
        "doc",
        "docx",
        "odp",
        "ods",
        "odt",
        "pdf",
        "ppt",
        "pptx",
        "xls",
        "xlsx",
        # compiled objects and executables
        "a",
        "bin",
        "class",
        "dll",
        "dylib",
        "exe",
        "lib",
        "o",
        "obj",
        "pyc",
        "pyd",
        "pyo",
        "so",
        "wasm",
        # fonts and databases
        "eot",
        "otf",
        "ttf",
        "woff",
        "woff2",
        "db",
        "sqlite",
        "sqlite3",
    },
)

SNIFFER_AUTO = "auto"
SNIFFER_FILE_COMMAND = "file-command"
SNIFFER_NULL_BYTE = "null-byte"

CONTENT_SNIFFERS: dict[str, Callable[[Path], bool]] = {}


class ExclusionRule(BaseModel):
    """One classified exclusion pattern.

    Attributes:
        pattern: The normalized pattern as given by the user (with its `!` for negations).
        kind: How the pattern is compared with candidates.
        target: The part compared with the candidate: the name, the glob, the relative
            path, or the base directory for `base/*` and `base/**` patterns. For negations
            this is the re-included relative path.
    """

    model_config = ConfigDict(frozen=True)

    pattern: str = Field(..., description="Normalized pattern text")
    kind: PatternKind = Field(..., description="Pattern classification")
    target: str = Field(..., description="Name, glob, path or base directory")

    @computed_field
    @property
    def is_negation(self) -> bool:
        """Whether the rule re-includes paths instead of excluding them."""
        return self.kind is PatternKind.NEGATION


def register_sniffer(
    key: str | list[str],
) -> Callable[[ContentSnifferFn], ContentSnifferFn]:
    """Decorator to register a content sniffer under one or more names.

    A content sniffer receives a file path and answers whether the content looks
    binary. Sniffers are selected by name with the `--sniffer` option.

    Args:
        key (str | list[str]): the name(s) the decorated sniffer is registered under.

    Returns:
        Callable[[ContentSnifferFn], ContentSnifferFn]: A decorator that registers the given
        function in the CONTENT_SNIFFERS mapping under the specified name(s).
    """

    def decorator(func: ContentSnifferFn) -> ContentSnifferFn:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:  # noqa: ANN401
            return func(*args, **kwargs)

        if isinstance(key, list):
            for k in key:
                CONTENT_SNIFFERS[k] = wrapper
        else:
            CONTENT_SNIFFERS[key] = wrapper
        return wrapper

    return decorator
