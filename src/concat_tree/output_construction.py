from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from concat_tree.exceptions import FileReadError
from concat_tree.logging import logger

if TYPE_CHECKING:
    from pathlib import Path
    from types import TracebackType
    from typing import BinaryIO, TextIO

FRAME_DELIMITER = "---"
COPY_CHUNK_SIZE = 1024 * 1024


class _TextStreamWriter:
    """Byte writer over a text stream that has no binary buffer (e.g. a StringIO)."""

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream

    def write(self, data: bytes) -> int:
        return self._stream.write(data.decode("utf-8", errors="replace"))

    def flush(self) -> None:
        self._stream.flush()


class Sink:
    """Destination of the concatenated stream: an output file or standard output.

    The output file is truncated once when the sink is opened and only appended
    to afterwards. Text is encoded as UTF-8; file content is copied byte for byte.

    Use it as a context manager::

        with Sink(output) as sink:
            sink.write_line("hello")
            sink.copy_file_content(path)
    """

    def __init__(self, output: Path | None = None) -> None:
        self.output = output
        self._stream: BinaryIO | _TextStreamWriter | None = None
        self._owned = False
        self._at_line_start = True

    def __enter__(self) -> Sink:
        self.open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @property
    def at_line_start(self) -> bool:
        """Whether the last byte written is a newline (or nothing was written yet)."""
        return self._at_line_start

    @property
    def is_stdout(self) -> bool:
        return self.output is None

    def open(self) -> None:
        """Truncate (or create) the output file, or attach to standard output."""
        if self._stream is not None:
            return
        if self.output is not None:
            self._stream = self.output.open("wb")
            self._owned = True
            logger.debug("Truncated output file %s", self.output)
            return
        sys.stdout.flush()
        buffer = getattr(sys.stdout, "buffer", None)
        self._stream = buffer if buffer is not None else _TextStreamWriter(sys.stdout)
        self._owned = False

    def close(self) -> None:
        if self._stream is None:
            return
        self._stream.flush()
        if self._owned:
            self._stream.close()  # type: ignore[union-attr]
        self._stream = None

    def _writer(self) -> BinaryIO | _TextStreamWriter:
        if self._stream is None:
            self.open()
        return self._stream  # type: ignore[return-value]

    def _write(self, data: bytes) -> None:
        if data:
            self._writer().write(data)
            self._at_line_start = data.endswith(b"\n")

    def write_line(self, text: str) -> None:
        """Append `text` followed by a newline.

        Undecodable file name bytes, which `os.walk` hands back as surrogate
        escapes, are written back unchanged.
        """
        self._write(text.encode("utf-8", "surrogateescape") + b"\n")

    def copy_file_content(self, path: Path) -> None:
        """Append the raw bytes of `path`.

        Args:
            path (Path): the file to copy

        Raises:
            FileReadError: if the file cannot be opened or read. Bytes read before
                the failure have already been written.
        """
        self._writer()
        try:
            src = path.open("rb")
        except OSError as e:
            raise FileReadError(file=path, reason=e.strerror or str(e)) from e
        with src:
            while True:
                try:
                    blk = src.read(COPY_CHUNK_SIZE)
                except OSError as e:
                    raise FileReadError(file=path, reason=e.strerror or str(e)) from e
                if not blk:
                    break
                self._write(blk)


def frame_header(display_path: str) -> str:
    """Return the line introducing a file in the concatenated stream."""
    return f"filename -> {display_path}:"


def read_error_line(display_path: str, reason: str) -> str:
    """Return the line written in place of the content of an unreadable file."""
    return f"Error: could not read {display_path}: {reason}"


def write_frame(sink: Sink, path: Path, display_path: str) -> bool:
    """Write one file frame to the sink.

    The frame is::

        filename -> <display_path>:
        ---
        <raw file bytes>
        ---
        ---

    A file that cannot be read gets an error line in place of its content; the
    frame is still closed so the stream stays well formed.

    Args:
        sink (Sink): the destination
        path (Path): the file whose content is copied
        display_path (str): the path shown in the header, relative to the scan root

    Returns:
        bool: True if the content was copied, False if a read error was reported inline
    """
    sink.write_line(frame_header(display_path))
    sink.write_line(FRAME_DELIMITER)
    copied = True
    try:
        sink.copy_file_content(path)
    except FileReadError as e:
        logger.warning("Could not read %s: %s", path, e.reason)
        if not sink.at_line_start:
            sink.write_line("")
        sink.write_line(read_error_line(display_path, e.reason))
        copied = False
    else:
        sink.write_line("")
    sink.write_line(FRAME_DELIMITER)
    sink.write_line(FRAME_DELIMITER)
    return copied
