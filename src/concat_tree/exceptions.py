from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ConcatTreeError(Exception):
    """Base exception for errors in the concat_tree module."""

    def __str__(self) -> str:
        return getattr(self, "message", "") or self.__class__.__name__


@dataclass(frozen=True)
class UsageError(ConcatTreeError):
    """Raised when the command line cannot be understood."""

    message: str


@dataclass(frozen=True)
class RootDirectoryError(ConcatTreeError):
    """Raised when the directory to scan cannot be entered."""

    folder: Path
    message: str = "The specified root directory cannot be entered."

    def __str__(self) -> str:
        return f"{self.message} ({self.folder})"


@dataclass(frozen=True)
class FileReadError(ConcatTreeError):
    """Raised when the content of a selected file cannot be copied."""

    file: Path
    reason: str
    message: str = "The selected file could not be read."

    def __str__(self) -> str:
        return f"{self.message} ({self.file}: {self.reason})"
