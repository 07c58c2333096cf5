"""Tests for the songvault command line entry point."""

from __future__ import annotations

from pathlib import Path

import pytest

from songvault.__main__ import main, parse_args


class TestParseArgs:
    def test_search_with_excludes(self) -> None:
        args = parse_args(["--db", "x.db", "search", "love", "--exclude", "/a", "--exclude", "/b"])
        assert args.command == "search"
        assert args.term == "love"
        assert args.exclude == ["/a", "/b"]
        assert args.db == Path("x.db")

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            parse_args([])


class TestMain:
    def test_scan_then_search(self, make_wav, tmp_path: Path, capsys) -> None:
        make_wav("music/Night Drive.wav")
        db_path = tmp_path / "library.db"

        assert main(["--db", str(db_path), "scan", str(tmp_path / "music")]) == 0
        assert "added=1" in capsys.readouterr().out

        assert main(["--db", str(db_path), "search", "Night"]) == 0
        out = capsys.readouterr().out
        assert "song\t" in out
        assert "Night Drive" in out

        assert main(["--db", str(db_path), "recount"]) == 0

    def test_remove_unknown_song(self, tmp_path: Path) -> None:
        assert main(["--db", str(tmp_path / "library.db"), "remove", "nope"]) == 0

    def test_scan_missing_folder_fails(self, tmp_path: Path) -> None:
        assert main(["--db", str(tmp_path / "library.db"), "scan", str(tmp_path / "nope")]) == 1
