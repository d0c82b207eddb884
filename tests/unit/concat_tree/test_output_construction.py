from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from concat_tree.exceptions import FileReadError
from concat_tree.output_construction import Sink, frame_header, read_error_line, write_frame

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.unit
def test_frame_header() -> None:
    assert frame_header("src/app.py") == "filename -> src/app.py:"


@pytest.mark.unit
def test_read_error_line() -> None:
    assert read_error_line("a.txt", "Permission denied") == "Error: could not read a.txt: Permission denied"


@pytest.mark.unit
def test_write_frame_layout(tmp_path: Path) -> None:
    src = tmp_path / "a.txt"
    src.write_bytes(b"hello\n")
    output = tmp_path / "out" / "frames.txt"
    output.parent.mkdir()

    with Sink(output) as sink:
        copied = write_frame(sink, src, "a.txt")

    assert copied is True
    assert output.read_bytes() == b"filename -> a.txt:\n---\nhello\n\n---\n---\n"


@pytest.mark.unit
def test_copy_preserves_bytes(tmp_path: Path) -> None:
    payload = bytes(range(256)) + b"\r\n\r\nno trailing newline"
    src = tmp_path / "blob.bin"
    src.write_bytes(payload)
    output = tmp_path / "out.bin"

    with Sink(output) as sink:
        sink.copy_file_content(src)

    assert output.read_bytes() == payload


@pytest.mark.unit
def test_sink_truncates_output_once(tmp_path: Path) -> None:
    output = tmp_path / "out.txt"
    output.write_text("stale content\n", encoding="utf-8")

    with Sink(output) as sink:
        sink.write_line("first")
        sink.write_line("second")

    assert output.read_text(encoding="utf-8") == "first\nsecond\n"


@pytest.mark.unit
def test_sink_creates_empty_output(tmp_path: Path) -> None:
    output = tmp_path / "out.txt"

    with Sink(output):
        pass

    assert output.exists()
    assert output.read_bytes() == b""


@pytest.mark.unit
def test_copy_missing_file_raises_file_read_error(tmp_path: Path) -> None:
    with Sink(tmp_path / "out.txt") as sink, pytest.raises(FileReadError) as exc_info:
        sink.copy_file_content(tmp_path / "missing.txt")

    assert exc_info.value.file == tmp_path / "missing.txt"
    assert exc_info.value.reason


@pytest.mark.unit
def test_write_frame_reports_read_error_inline(tmp_path: Path) -> None:
    output = tmp_path / "out.txt"

    with Sink(output) as sink:
        copied = write_frame(sink, tmp_path / "missing.txt", "sub/missing.txt")

    text = output.read_text(encoding="utf-8")
    assert copied is False
    assert text.startswith("filename -> sub/missing.txt:\n---\nError: could not read sub/missing.txt: ")
    assert text.endswith("\n---\n---\n")


@pytest.mark.unit
def test_sink_writes_to_stdout(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    src = tmp_path / "a.txt"
    src.write_text("payload", encoding="utf-8")

    with Sink() as sink:
        assert sink.is_stdout
        write_frame(sink, src, "a.txt")

    assert capsys.readouterr().out == "filename -> a.txt:\n---\npayload\n---\n---\n"


@pytest.mark.unit
def test_write_line_keeps_undecodable_name_bytes(tmp_path: Path) -> None:
    output = tmp_path / "out.txt"
    display = os.fsdecode(b"bad\xff.txt")

    with Sink(output) as sink:
        sink.write_line(f"filename -> {display}:")

    assert output.read_bytes() == b"filename -> bad\xff.txt:\n"


@pytest.mark.unit
def test_read_error_after_partial_content_starts_on_its_own_line(
    tmp_path: Path,
    mocker: MockerFixture,
) -> None:
    reader = mocker.MagicMock()
    reader.__enter__.return_value = reader
    reader.__exit__.return_value = False
    reader.read.side_effect = [b"partial", OSError(5, "Input/output error")]
    src = mocker.Mock()
    src.open.return_value = reader
    output = tmp_path / "out.txt"

    with Sink(output) as sink:
        copied = write_frame(sink, src, "a.txt")

    assert copied is False
    assert output.read_bytes() == (
        b"filename -> a.txt:\n---\npartial\nError: could not read a.txt: Input/output error\n---\n---\n"
    )
