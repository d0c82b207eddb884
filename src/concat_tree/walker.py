from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from concat_tree.config import CandidateKind
from concat_tree.exceptions import RootDirectoryError
from concat_tree.exclusion import compile_patterns, has_negation_beneath, is_excluded
from concat_tree.file_manipulation import (
    is_regular_file,
    is_same_path,
    is_type_excluded,
    matches_file_type,
    resolve_sniffer,
)
from concat_tree.logging import logger
from concat_tree.output_construction import write_frame

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from concat_tree.config import ExclusionRule
    from concat_tree.output_construction import Sink
    from concat_tree.settings import Settings

    ContentSnifferFn = Callable[[Path], bool]


@dataclass(frozen=True)
class WalkState:
    """Position of the walker in the tree.

    Attributes:
        directory: The directory being processed.
        depth: Levels below the scan root (0 for the root).
        prefix: Display prefix of the entries of `directory`, e.g. "src/pkg/".
            It is also their path relative to the scan root.
        excluded: The directory is itself excluded and is only entered because a
            negation re-includes something beneath it.
    """

    directory: Path
    depth: int = 0
    prefix: str = ""
    excluded: bool = False

    def child(self, name: str, *, excluded: bool = False) -> WalkState:
        """Return the state of the subdirectory `name` one level down."""
        return WalkState(
            directory=self.directory / name,
            depth=self.depth + 1,
            prefix=f"{self.prefix}{name}/",
            excluded=excluded,
        )


@dataclass
class WalkResult:
    """Outcome of a traversal."""

    found_any: bool = False
    files_emitted: int = 0
    read_errors: int = 0
    emitted: list[str] = field(default_factory=list)

    def record(self, display_path: str, *, copied: bool) -> None:
        self.found_any = True
        self.files_emitted += 1
        self.emitted.append(display_path)
        if not copied:
            self.read_errors += 1


def check_root(root: Path) -> Path:
    """Make sure the scan root is a directory the process can enter and list.

    Args:
        root (Path): the requested root

    Raises:
        RootDirectoryError: if `root` is missing, not a directory, or not accessible

    Returns:
        Path: `root`, unchanged
    """
    if not root.is_dir():
        raise RootDirectoryError(folder=root, message="The specified root is not a directory.")
    if not os.access(root, os.R_OK | os.X_OK):
        raise RootDirectoryError(folder=root)
    return root


class TreeWalker:
    """Depth-bounded traversal emitting every selected file through a sink.

    Within a directory, files are handled before subdirectories, both in the
    order the filesystem lists them.
    """

    def __init__(
        self,
        settings: Settings,
        sink: Sink,
        *,
        sniffer: ContentSnifferFn | None = None,
    ) -> None:
        self.settings = settings
        self.sink = sink
        self.sniffer = sniffer or resolve_sniffer(settings.sniffer)
        self.rules: Sequence[ExclusionRule] = compile_patterns(settings.exclude_patterns)
        self.skip_paths: list[Path] = [
            p for p in (settings.output, Path(settings.log_file) if settings.log_file else None) if p
        ]

    def run(self, root: Path | None = None) -> WalkResult:
        """Walk the tree under `root` (defaults to the configured root).

        Raises:
            RootDirectoryError: if the root cannot be entered

        Returns:
            WalkResult: what was emitted
        """
        top = check_root(Path(root) if root is not None else self.settings.root)
        result = WalkResult()
        states: dict[str, WalkState] = {str(top): WalkState(directory=top)}

        def on_error(err: OSError) -> None:
            logger.warning("Cannot list directory %s: %s", err.filename, err.strerror)

        for dirpath, dirnames, filenames in os.walk(top, onerror=on_error, followlinks=True):
            state = states.pop(dirpath, None)
            if state is None:
                dirnames[:] = []
                continue
            for name in filenames:
                self._visit_file(state, name, result)
            selected = self._select_subdirs(state, dirnames)
            dirnames[:] = [name for name, _ in selected]
            for name, excluded in selected:
                states[os.path.join(dirpath, name)] = state.child(name, excluded=excluded)
        return result

    def _visit_file(self, state: WalkState, name: str, result: WalkResult) -> None:
        settings = self.settings
        if not matches_file_type(name, settings.file_type):
            return
        path = state.directory / name
        if not is_regular_file(path):
            logger.debug("Skipping non regular file %s", path)
            return
        if is_same_path(path, self.skip_paths):
            logger.debug("Skipping own output %s", path)
            return
        if is_type_excluded(path, settings.exclude_types, settings.include_binary, sniffer=self.sniffer):
            logger.debug("Excluded by type %s", path)
            return
        rel = state.prefix + name
        if is_excluded(rel, CandidateKind.FILE, self.rules, inherited=state.excluded):
            logger.debug("Excluded by pattern %s", rel)
            return
        copied = write_frame(self.sink, path, rel)
        result.record(rel, copied=copied)

    def _select_subdirs(self, state: WalkState, dirnames: list[str]) -> list[tuple[str, bool]]:
        if state.depth >= self.settings.effective_depth:
            return []
        kept: list[tuple[str, bool]] = []
        for name in dirnames:
            rel = state.prefix + name
            if not is_excluded(rel, CandidateKind.DIRECTORY, self.rules, inherited=state.excluded):
                kept.append((name, False))
            elif has_negation_beneath(rel, self.rules):
                logger.debug("Entering excluded directory %s for a negation", rel)
                kept.append((name, True))
            else:
                logger.debug("Excluded directory %s", rel)
        return kept


def walk_tree(
    root_dir: Path,
    settings: Settings,
    sink: Sink,
    *,
    sniffer: ContentSnifferFn | None = None,
) -> WalkResult:
    """Walk `root_dir` and emit every selected file through `sink`.

    Args:
        root_dir (Path): the directory to scan
        settings (Settings): the run configuration
        sink (Sink): the destination of the frames
        sniffer (ContentSnifferFn | None, optional): content sniffer for the binary
            check; defaults to the one named in `settings`

    Returns:
        WalkResult: the traversal outcome
    """
    return TreeWalker(settings, sink, sniffer=sniffer).run(root_dir)


def walk(root_dir: Path, settings: Settings, sink: Sink) -> bool:
    """Walk `root_dir` and return whether at least one file was emitted."""
    return walk_tree(root_dir, settings, sink).found_any
