from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from concat_tree.exceptions import FileReadError, RootDirectoryError
from concat_tree.file_manipulation import sniff_null_byte
from concat_tree.output_construction import Sink
from concat_tree.settings import Settings
from concat_tree.walker import WalkState, check_root, walk, walk_tree

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def make_tree(root: Path, files: dict[str, str | bytes]) -> None:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")


def run(root: Path, output: Path, **overrides: object) -> list[str]:
    settings = Settings(root=root, output=output, **overrides)
    with Sink(output) as sink:
        result = walk_tree(root, settings, sink, sniffer=sniff_null_byte)
    return result.emitted


@pytest.fixture
def out_dir(tmp_path: Path) -> Path:
    out = tmp_path / "out"
    out.mkdir()
    return out


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    root = tmp_path / "tree"
    root.mkdir()
    return root


@pytest.mark.unit
def test_walk_state_child_extends_prefix(tmp_path: Path) -> None:
    state = WalkState(directory=tmp_path).child("src").child("pkg", excluded=True)

    assert state.directory == tmp_path / "src" / "pkg"
    assert state.depth == 2
    assert state.prefix == "src/pkg/"
    assert state.excluded is True


@pytest.mark.unit
def test_check_root_rejects_missing_and_files(tmp_path: Path) -> None:
    a_file = tmp_path / "a.txt"
    a_file.write_text("x", encoding="utf-8")

    assert check_root(tmp_path) == tmp_path
    with pytest.raises(RootDirectoryError):
        check_root(tmp_path / "missing")
    with pytest.raises(RootDirectoryError):
        check_root(a_file)


@pytest.mark.unit
def test_extension_filter_and_files_before_subdirectories(tree: Path, out_dir: Path) -> None:
    make_tree(tree, {"a.txt": "A\n", "b.log": "B\n", "sub/c.txt": "C\n"})
    output = out_dir / "result.txt"

    emitted = run(tree, output, file_type="txt", recurse=True, max_depth=1)

    assert emitted == ["a.txt", "sub/c.txt"]
    assert output.read_bytes() == (
        b"filename -> a.txt:\n---\nA\n\n---\n---\n"
        b"filename -> sub/c.txt:\n---\nC\n\n---\n---\n"
    )


@pytest.mark.unit
def test_non_recursive_processes_root_only(tree: Path, out_dir: Path) -> None:
    make_tree(tree, {"a.txt": "A", "sub/c.txt": "C"})

    assert run(tree, out_dir / "r.txt", max_depth=5) == ["a.txt"]


@pytest.mark.unit
def test_depth_bound(tree: Path, out_dir: Path) -> None:
    make_tree(tree, {"d1/d2/at_two.txt": "2", "d1/d2/d3/at_three.txt": "3"})

    emitted = run(tree, out_dir / "r.txt", recurse=True, max_depth=2)

    assert emitted == ["d1/d2/at_two.txt"]


@pytest.mark.unit
def test_bare_name_excludes_at_any_depth(tree: Path, out_dir: Path) -> None:
    make_tree(
        tree,
        {"config.json": "{}", "a/config.json": "{}", "a/b/config.json": "{}", "a/my_config.json": "{}"},
    )

    emitted = run(tree, out_dir / "r.txt", recurse=True, max_depth=3, exclude_patterns=["config.json"])

    assert emitted == ["a/my_config.json"]


@pytest.mark.unit
def test_subtree_excludes_everything_beneath(tree: Path, out_dir: Path) -> None:
    make_tree(tree, {"keep.txt": "k", "dirA/x.txt": "x", "dirA/sub/y.txt": "y", "dirB/z.txt": "z"})

    emitted = run(tree, out_dir / "r.txt", recurse=True, max_depth=3, exclude_patterns=["dirA/**"])

    assert sorted(emitted) == ["dirB/z.txt", "keep.txt"]


@pytest.mark.unit
def test_wildcard_children_excludes_direct_children(tree: Path, out_dir: Path) -> None:
    make_tree(tree, {"keep.txt": "k", "dirA/x.txt": "x", "dirA/sub/y.txt": "y"})

    emitted = run(tree, out_dir / "r.txt", recurse=True, max_depth=3, exclude_patterns=["dirA/*"])

    assert emitted == ["keep.txt"]


@pytest.mark.unit
def test_negation_reincludes_a_subdirectory(tree: Path, out_dir: Path) -> None:
    make_tree(
        tree,
        {
            "keep.txt": "k",
            "dirA/x.txt": "x",
            "dirA/sub/y.txt": "y",
            "dirA/sub/deep/z.txt": "z",
            "dirA/other/w.txt": "w",
        },
    )

    emitted = run(
        tree,
        out_dir / "r.txt",
        recurse=True,
        max_depth=5,
        exclude_patterns=["dirA/**", "!dirA/sub"],
    )

    assert sorted(emitted) == ["dirA/sub/deep/z.txt", "dirA/sub/y.txt", "keep.txt"]


@pytest.mark.unit
def test_negation_below_a_bare_name_exclusion(tree: Path, out_dir: Path) -> None:
    make_tree(tree, {"dirA/x.txt": "x", "dirA/sub/keep/y.txt": "y", "dirA/sub/z.txt": "z"})

    emitted = run(
        tree,
        out_dir / "r.txt",
        recurse=True,
        max_depth=5,
        exclude_patterns=["dirA", "!dirA/sub/keep"],
    )

    assert emitted == ["dirA/sub/keep/y.txt"]


@pytest.mark.unit
def test_exclude_types_and_binary_detection(tree: Path, out_dir: Path) -> None:
    make_tree(tree, {"x.png": b"\x89PNG", "y.txt": "y", "blob.dat": b"a\x00b", "notes.md": "n"})

    assert sorted(run(tree, out_dir / "r1.txt")) == ["notes.md", "y.txt"]
    assert sorted(run(tree, out_dir / "r2.txt", include_binary=True, exclude_types=["png"])) == [
        "blob.dat",
        "notes.md",
        "y.txt",
    ]


@pytest.mark.unit
@pytest.mark.parametrize("spelling", ["absolute", "relative", "dot"])
def test_output_inside_tree_is_never_an_input(
    tree: Path,
    monkeypatch: pytest.MonkeyPatch,
    spelling: str,
) -> None:
    make_tree(tree, {"a.txt": "A", "out.txt": "previous run"})
    monkeypatch.chdir(tree)
    output = {
        "absolute": tree / "out.txt",
        "relative": Path("out.txt"),
        "dot": Path("./out.txt"),
    }[spelling]
    root = tree if spelling == "absolute" else Path()

    emitted = run(root, output)

    assert emitted == ["a.txt"]
    assert b"previous run" not in (tree / "out.txt").read_bytes()


@pytest.mark.unit
def test_read_error_is_reported_inline(tree: Path, out_dir: Path, mocker: MockerFixture) -> None:
    make_tree(tree, {"a.txt": "A", "b.txt": "B"})
    output = out_dir / "r.txt"
    mocker.patch.object(
        Sink,
        "copy_file_content",
        side_effect=FileReadError(file=tree / "a.txt", reason="Permission denied"),
    )
    settings = Settings(root=tree, output=output)

    with Sink(output) as sink:
        result = walk_tree(tree, settings, sink, sniffer=sniff_null_byte)

    assert result.found_any
    assert result.files_emitted == 2
    assert result.read_errors == 2
    assert "Error: could not read a.txt: Permission denied" in output.read_text(encoding="utf-8")


@pytest.mark.unit
def test_runs_are_idempotent(tree: Path, out_dir: Path) -> None:
    make_tree(tree, {"a.txt": "A", "s/b.txt": "B", "s/t/c.txt": "C", "u/d.txt": "D"})

    run(tree, out_dir / "first.txt", recurse=True, max_depth=4)
    run(tree, out_dir / "second.txt", recurse=True, max_depth=4)

    assert (out_dir / "first.txt").read_bytes() == (out_dir / "second.txt").read_bytes()


@pytest.mark.unit
def test_walk_reports_whether_anything_was_found(tree: Path, out_dir: Path) -> None:
    output = out_dir / "r.txt"
    settings = Settings(root=tree, output=output, sniffer="null-byte")

    with Sink(output) as sink:
        assert walk(tree, settings, sink) is False

    make_tree(tree, {"a.txt": "A"})
    with Sink(output) as sink:
        assert walk(tree, settings, sink) is True
