"""
DB models (DTOs) and small normalization helpers.

This module is intentionally lightweight:
- No DB connection knowledge
- No SQL
- Pure dataclasses + helper functions
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ArtistRow:
    """Artist record as stored in SQLite."""

    artist_id: str
    artist_name: str
    artist_mbid: str | None = None
    artist_coverPath: str | None = None
    artist_song_count: int = 0


@dataclass(frozen=True, slots=True)
class AlbumRow:
    """Album record as stored in SQLite."""

    album_id: str
    album_name: str
    album_coverPath_high: str | None = None
    album_coverPath_low: str | None = None
    album_song_count: int = 0
    album_artist: str | None = None
    year: int | None = None


@dataclass(frozen=True, slots=True)
class GenreRow:
    """Genre record as stored in SQLite."""

    genre_id: str
    genre_name: str
    genre_song_count: int = 0


@dataclass(frozen=True, slots=True)
class PlaylistRow:
    """Playlist record as stored in SQLite."""

    playlist_id: str
    playlist_name: str
    playlist_desc: str | None = None
    playlist_coverPath: str | None = None
    playlist_song_count: int = 0


@dataclass(frozen=True, slots=True)
class SongRow:
    """
    Song record with its related entities attached.

    Notes:
    - `id` is the caller-supplied identifier (`_id` column).
    - `album`, `artists` and `genres` come from the bridge tables, not from
      columns of `allsongs`.
    """

    id: str
    title: str
    path: str | None = None
    size: int | None = None
    duration: float | None = None
    song_coverPath_low: str | None = None
    song_coverPath_high: str | None = None
    date: str | None = None
    year: int | None = None
    lyrics: str | None = None
    bitrate: int | None = None
    codec: str | None = None
    container: str | None = None
    sample_rate: int | None = None
    hash: str | None = None
    inode: str | None = None
    deviceno: str | None = None
    url: str | None = None
    playback_url: str | None = None
    date_added: int | None = None
    provider_extension: str | None = None
    icon: str | None = None
    type: str = "LOCAL"
    album: AlbumRow | None = None
    artists: tuple[ArtistRow, ...] = ()
    genres: tuple[GenreRow, ...] = ()


@dataclass(frozen=True, slots=True)
class UpsertAlbum:
    """
    Album details attached to a song being stored.

    Only `album_name` takes part in deduplication. The other fields are
    written when the album row is first created and ignored afterwards.
    """

    album_name: str | None
    album_coverPath_high: str | None = None
    album_coverPath_low: str | None = None
    album_artist: str | None = None
    year: int | None = None


@dataclass(frozen=True, slots=True)
class UpsertSong:
    """
    Input record produced by scanners/importers.

    `id` identifies the song; storing the same id twice is a no-op.
    `artists` and `genres` are plain names and are resolved to shared rows
    (case-insensitive, trimmed) when storing.
    """

    id: str
    title: str
    path: str | None = None
    size: int | None = None
    duration: float | None = None
    song_coverPath_low: str | None = None
    song_coverPath_high: str | None = None
    date: str | None = None
    year: int | None = None
    lyrics: str | None = None
    bitrate: int | None = None
    codec: str | None = None
    container: str | None = None
    sample_rate: int | None = None
    hash: str | None = None
    inode: str | None = None
    deviceno: str | None = None
    url: str | None = None
    playback_url: str | None = None
    date_added: int | None = None
    provider_extension: str | None = None
    icon: str | None = None
    type: str = "LOCAL"
    album: UpsertAlbum | None = None
    artists: tuple[str, ...] = ()
    genres: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class RemovalResult:
    """
    Outcome of a cascade delete.

    `cover_paths` are the image files that no longer belong to any row. They
    are deleted from disk after commit, outside the transaction.
    """

    song_id: str
    removed: bool
    cover_paths: tuple[str, ...] = ()
    deleted_albums: tuple[str, ...] = ()
    deleted_artists: tuple[str, ...] = ()
    deleted_genres: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class SearchResult:
    songs: tuple[SongRow, ...]
    albums: tuple[AlbumRow, ...]
    artists: tuple[ArtistRow, ...]
    genres: tuple[GenreRow, ...]


def normalize_text(value: str | None) -> str | None:
    """
    Normalize optional text fields:
    - strip whitespace
    - coerce empty strings to None
    """
    if value is None:
        return None
    v = value.strip()
    return v if v else None


def normalize_int(value: int | None) -> int | None:
    """Normalize optional integer fields (coerce to int, keep None)."""
    if value is None:
        return None
    return int(value)


def normalize_names(values: tuple[str, ...] | list[str] | None) -> list[str]:
    """Trim every name and drop the empty ones, keeping input order."""
    if not values:
        return []
    out: list[str] = []
    for v in values:
        n = normalize_text(v)
        if n:
            out.append(n)
    return out
