"""
Tests for songvault.core.scanner.

Tests cover:
- tag value normalization helpers
- content hashing
- folder walking and extraction (real WAV files, no tags)
- unreadable files reported as issues instead of failing the scan
"""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from songvault.core.scanner import (
    ScanConfig,
    _first_text,
    _parse_year_maybe,
    _split_names,
    compute_file_hash,
    extract_songs,
    scan_music_folder,
)


class _Frame:
    """Stand-in for an ID3 frame: mutagen frames expose their values as `.text`."""

    def __init__(self, *text: str) -> None:
        self.text = list(text)


class TestTagHelpers:
    def test_first_text(self) -> None:
        assert _first_text(None) is None
        assert _first_text([]) is None
        assert _first_text(["  Title  ", "Other"]) == "Title"
        assert _first_text(_Frame("From Frame")) == "From Frame"
        assert _first_text("   ") is None

    def test_split_names(self) -> None:
        assert _split_names("Daft Punk; Pharrell Williams") == ("Daft Punk", "Pharrell Williams")
        assert _split_names(["Rock/Pop", "rock"]) == ("Rock", "Pop")
        assert _split_names("Drum & Bass") == ("Drum & Bass",)
        assert _split_names(_Frame("A, B")) == ("A", "B")
        assert _split_names(None) == ()

    def test_parse_year(self) -> None:
        assert _parse_year_maybe("1999") == 1999
        assert _parse_year_maybe("2001-03-12") == 2001
        assert _parse_year_maybe(["1987/1988"]) == 1987
        assert _parse_year_maybe("unknown") is None
        assert _parse_year_maybe("0042") is None


class TestHashing:
    def test_compute_file_hash(self, tmp_path: Path) -> None:
        path = tmp_path / "data.bin"
        path.write_bytes(b"x" * 3_000_000)
        assert compute_file_hash(path) == hashlib.md5(b"x" * 3_000_000).hexdigest()


class TestScanning:
    async def test_scan_folder(self, make_wav, tmp_path: Path) -> None:
        make_wav("music/b/second.wav", tone=1)
        make_wav("music/a/first.WAV", tone=2)
        (tmp_path / "music" / "notes.txt").write_text("not audio")

        result = await scan_music_folder(ScanConfig(root=tmp_path / "music"))

        assert result.issues == []
        assert [s.title for s in result.songs] == ["first", "second"]
        song = result.songs[0]
        assert song.container == "wav"
        assert song.sample_rate == 8000
        assert song.duration is not None and song.duration > 0
        assert song.hash == compute_file_hash(Path(song.path))
        assert song.inode is not None
        assert song.album is None
        assert song.artists == ()
        assert song.id != result.songs[1].id

    async def test_unreadable_file_is_an_issue(self, make_wav, tmp_path: Path) -> None:
        good = make_wav("good.wav")
        bad = tmp_path / "broken.mp3"
        bad.write_bytes(b"\x00" * 64)

        result = await extract_songs([good, bad], max_concurrency=2)

        assert [s.path for s in result.songs] == [str(good)]
        assert len(result.issues) == 1
        assert result.issues[0].path == bad

    async def test_missing_root(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            await scan_music_folder(ScanConfig(root=tmp_path / "nope"))
