"""Tests for artifact sinks."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from modelforge.emitters.artifact import Artifact
from modelforge.errors import EmissionError
from modelforge.sinks import DirectorySink, MemorySink


class TestDirectorySink:
    def test_writes_nested_artifacts(self, tmp_path: Path) -> None:
        sink = DirectorySink(tmp_path / "out")

        sink.commit([Artifact("sql/schema.sql", "-- ddl\n"), Artifact("elm/Api/Schema.elm", "module Api.Schema")])

        assert (tmp_path / "out" / "sql" / "schema.sql").read_text() == "-- ddl\n"
        assert (tmp_path / "out" / "elm" / "Api" / "Schema.elm").read_text() == "module Api.Schema"
        assert sorted(p.name for p in (tmp_path / "out").iterdir()) == ["elm", "sql"]

    def test_overwrites_previous_output(self, tmp_path: Path) -> None:
        sink = DirectorySink(tmp_path)
        sink.commit([Artifact("a.txt", "one")])
        sink.commit([Artifact("a.txt", "two")])

        assert (tmp_path / "a.txt").read_text() == "two"

    @pytest.mark.parametrize("path", ["../escape.txt", "/etc/passwd", "a/../../b"])
    def test_rejects_paths_outside_output(self, tmp_path: Path, path: str) -> None:
        with pytest.raises(EmissionError):
            DirectorySink(tmp_path / "out").commit([Artifact(path, "x")])

    def test_failed_write_leaves_output_untouched(self, tmp_path: Path) -> None:
        sink = DirectorySink(tmp_path)
        sink.commit([Artifact("a.txt", "old")])

        original_write = Path.write_text

        def failing_write(self: Path, content: str, *args: object, **kwargs: object) -> int:
            if self.name == "b.txt":
                raise OSError("disk full")
            return original_write(self, content, *args, **kwargs)  # type: ignore[arg-type]

        with patch.object(Path, "write_text", failing_write), pytest.raises(OSError, match="disk full"):
            sink.commit([Artifact("a.txt", "new"), Artifact("b.txt", "b")])

        assert (tmp_path / "a.txt").read_text() == "old"
        assert not (tmp_path / "b.txt").exists()
        assert [p.name for p in tmp_path.iterdir()] == ["a.txt"]

    def test_failed_move_restores_previous_output(self, tmp_path: Path) -> None:
        sink = DirectorySink(tmp_path)
        sink.commit([Artifact("a.txt", "old-a"), Artifact("b.txt", "old-b")])

        original_replace = os.replace

        def failing_replace(source: str | Path, destination: str | Path) -> None:
            if Path(destination).name == "b.txt" and "incoming" in Path(source).parts:
                raise OSError("device busy")
            original_replace(source, destination)

        commit = [Artifact("a.txt", "new-a"), Artifact("b.txt", "new-b"), Artifact("c.txt", "new-c")]
        with patch("modelforge.sinks.directory.os.replace", failing_replace), pytest.raises(OSError, match="busy"):
            sink.commit(commit)

        assert (tmp_path / "a.txt").read_text() == "old-a"
        assert (tmp_path / "b.txt").read_text() == "old-b"
        assert sorted(p.name for p in tmp_path.iterdir()) == ["a.txt", "b.txt"]

    def test_new_files_are_removed_when_a_move_fails(self, tmp_path: Path) -> None:
        original_replace = os.replace

        def failing_replace(source: str | Path, destination: str | Path) -> None:
            if Path(destination).name == "b.txt":
                raise OSError("device busy")
            original_replace(source, destination)

        with patch("modelforge.sinks.directory.os.replace", failing_replace), pytest.raises(OSError):
            DirectorySink(tmp_path).commit([Artifact("a.txt", "a"), Artifact("b.txt", "b")])

        assert list(tmp_path.iterdir()) == []


class TestMemorySink:
    def test_commit_replaces_files(self) -> None:
        sink = MemorySink()
        sink.commit([Artifact("a", "1"), Artifact("b", "2")])
        sink.commit([Artifact("c", "3")])

        assert sink.files == {"c": "3"}
        assert sink.commits == 2
