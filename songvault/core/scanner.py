from __future__ import annotations

import asyncio
import hashlib
import logging
import re
import uuid
from collections.abc import AsyncIterator, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mutagen import File as mutagen_file

from songvault.core.db.models import UpsertAlbum, UpsertSong

logger = logging.getLogger(__name__)


DEFAULT_AUDIO_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".mp3",
        ".flac",
        ".ogg",
        ".opus",
        ".m4a",
        ".aac",
        ".wav",
        ".aiff",
        ".aif",
        ".wma",
        ".wv",
    }
)

_HASH_CHUNK_SIZE = 1024 * 1024


@dataclass(frozen=True, slots=True)
class ScanConfig:
    """Configuration for scanning a music folder."""

    root: Path
    extensions: frozenset[str] = DEFAULT_AUDIO_EXTENSIONS
    follow_symlinks: bool = False
    max_concurrency: int = 8


@dataclass(frozen=True, slots=True)
class ScanIssue:
    path: Path
    message: str


@dataclass(frozen=True, slots=True)
class ScanResult:
    songs: list[UpsertSong]
    issues: list[ScanIssue]


def _clean_str(value: str | None) -> str | None:
    if value is None:
        return None
    s = value.strip()
    return s if s else None


def _as_text_list(value: Any) -> list[str]:
    """
    Normalize mutagen tag values into a list of strings.

    Shapes seen in the wild:
    - list[str]
    - str
    - ID3 frames / objects with `.text`
    - bytes
    """
    if value is None:
        return []
    if isinstance(value, list | tuple):
        out: list[str] = []
        for v in value:
            out.extend(_as_text_list(v))
        return out
    if isinstance(value, bytes):
        return [value.decode("utf-8", errors="replace")]
    if isinstance(value, str):
        return [value]
    text = getattr(value, "text", None)
    if text is not None:
        return _as_text_list(text)
    return [str(value)]


def _first_text(value: Any) -> str | None:
    """
    Mutagen returns different shapes depending on container/tag type.
    We normalize to a single string (first item if multiple).
    """
    if value is None:
        return None

    if isinstance(value, (list, tuple)):
        if not value:
            return None
        return _first_text(value[0])

    # Mutagen ID3 frames often have `.text` list
    text = getattr(value, "text", None)
    if text is not None:
        return _first_text(text)

    try:
        s = str(value)
    except Exception:
        return None

    return _clean_str(s)


def _split_names(value: Any) -> tuple[str, ...]:
    """
    Split a tag that may hold several artists or genres.

    We split on ';' '/' and ','. '&' is left alone ("Drum & Bass",
    "Simon & Garfunkel"). Duplicates are dropped case-insensitively.
    """
    seen: set[str] = set()
    out: list[str] = []
    for item in _as_text_list(value):
        for part in re.split(r"\s*[;/,]\s*", item or ""):
            name = part.strip()
            if not name or name.casefold() in seen:
                continue
            seen.add(name.casefold())
            out.append(name)
    return tuple(out)


def _parse_year_maybe(value: Any) -> int | None:
    """Accept "1999" or "1999-01-01" or "1999/.." formats."""
    s = _first_text(value)
    if not s:
        return None

    match = re.search(r"\d{4}", s)
    if match is None:
        return None
    year = int(match.group(0))
    return year if 1000 <= year <= 3000 else None


def _tags_get(tags: dict[str, Any] | None, keys: Iterable[str]) -> Any:
    if not tags:
        return None
    for k in keys:
        if k in tags:
            return tags.get(k)
    return None


def compute_file_hash(path: Path) -> str:
    """MD5 of the file contents, used for duplicate detection."""
    digest = hashlib.md5()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(_HASH_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def _extract_song(path: Path) -> UpsertSong:
    """
    Extract metadata using mutagen and build a song ready for storing.

    Synchronous on purpose; scanning runs it in a thread.
    """
    audio = mutagen_file(path)
    if audio is None:
        raise ValueError("unsupported or unreadable audio file")

    tags: dict[str, Any] | None = None
    if getattr(audio, "tags", None) is not None:
        try:
            tags = dict(audio.tags)
        except Exception:
            tags = audio.tags  # type: ignore[assignment]

    duration: float | None = None
    sample_rate: int | None = None
    bitrate: int | None = None
    codec: str | None = None

    info = getattr(audio, "info", None)
    if info is not None:
        length = getattr(info, "length", None)
        if isinstance(length, (int, float)) and length > 0:
            duration = float(length)
        sr = getattr(info, "sample_rate", None)
        if isinstance(sr, int) and sr > 0:
            sample_rate = sr
        br = getattr(info, "bitrate", None)
        if isinstance(br, int) and br > 0:
            bitrate = br
        # Only some containers expose a codec (MP4: "mp4a", "alac", ...)
        raw_codec = getattr(info, "codec", None)
        if isinstance(raw_codec, str):
            codec = _clean_str(raw_codec)

    # Keys: ID3=TIT2, Vorbis=title, MP4=©nam
    title = _first_text(_tags_get(tags, ("TIT2", "title", "TITLE", "©nam"))) or path.stem
    # Keys: ID3=TPE1, Vorbis=artist, MP4=©ART
    artists = _split_names(_tags_get(tags, ("TPE1", "artist", "ARTIST", "©ART")))
    # Keys: ID3=TALB, Vorbis=album, MP4=©alb
    album_name = _first_text(_tags_get(tags, ("TALB", "album", "ALBUM", "©alb")))
    # Keys: ID3=TPE2, Vorbis=albumartist, MP4=aART
    album_artist = _first_text(
        _tags_get(tags, ("TPE2", "albumartist", "ALBUMARTIST", "aART", "ALBUM ARTIST"))
    )
    # Keys: ID3=TCON, Vorbis=genre, MP4=©gen
    genres = _split_names(_tags_get(tags, ("TCON", "genre", "GENRE", "©gen")))
    # Keys: ID3=TDRC/TYER, Vorbis=date, MP4=©day
    date_value = _tags_get(tags, ("TDRC", "TYER", "date", "DATE", "YEAR", "©day"))
    year = _parse_year_maybe(date_value)
    lyrics = _first_text(_tags_get(tags, ("USLT", "lyrics", "LYRICS", "©lyr")))

    stat = path.stat()
    return UpsertSong(
        id=str(uuid.uuid4()),
        title=title,
        path=str(path),
        size=stat.st_size,
        duration=duration,
        date=_first_text(date_value),
        year=year,
        lyrics=lyrics,
        bitrate=bitrate,
        codec=codec,
        container=path.suffix.lower().lstrip(".") or None,
        sample_rate=sample_rate,
        hash=compute_file_hash(path),
        inode=str(stat.st_ino),
        deviceno=str(stat.st_dev),
        album=UpsertAlbum(album_name=album_name, album_artist=album_artist, year=year)
        if album_name
        else None,
        artists=artists,
        genres=genres,
    )


async def iter_audio_files(config: ScanConfig) -> AsyncIterator[Path]:
    """
    Asynchronously yields audio file paths under `config.root`.

    The walk runs in a thread to avoid blocking the event loop on large trees.
    """
    root = config.root
    if not root.exists():
        raise FileNotFoundError(root)
    if not root.is_dir():
        raise NotADirectoryError(root)

    def _walk() -> list[Path]:
        paths: list[Path] = []
        for p in root.rglob("*"):
            try:
                if not config.follow_symlinks and p.is_symlink():
                    continue
                if not p.is_file():
                    continue
                if p.suffix.lower() not in config.extensions:
                    continue
                paths.append(p)
            except OSError:
                continue
        return paths

    paths = await asyncio.to_thread(_walk)
    for p in paths:
        yield p


async def extract_songs(paths: Iterable[Path], *, max_concurrency: int = 8) -> ScanResult:
    """
    Extract songs from the given files with bounded concurrency.

    Unreadable files become `ScanIssue`s instead of failing the whole batch.
    """
    semaphore = asyncio.Semaphore(max(1, max_concurrency))
    songs: list[UpsertSong] = []
    issues: list[ScanIssue] = []

    async def _process(path: Path) -> None:
        async with semaphore:
            try:
                song = await asyncio.to_thread(_extract_song, path)
            except Exception as e:  # noqa: BLE001 - robust scanning, not hard stops
                msg = f"{type(e).__name__}: {e}"
                issues.append(ScanIssue(path=path, message=msg))
                logger.debug("Scan issue for %s: %s", path, msg)
                return
            songs.append(song)

    await asyncio.gather(*(_process(p) for p in paths))

    # Deterministic ordering is useful for tests and predictable UI.
    songs.sort(key=lambda s: (s.path or "").lower())
    return ScanResult(songs=songs, issues=issues)


async def scan_music_folder(config: ScanConfig) -> ScanResult:
    """
    Scan a folder for audio files and extract songs.

    This returns a pure in-memory result. Persisting is a separate
    responsibility (see `MusicLibrary.scan`).
    """
    paths = [p async for p in iter_audio_files(config)]
    return await extract_songs(paths, max_concurrency=config.max_concurrency)
