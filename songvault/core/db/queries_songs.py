"""
Song-related DB queries.

Design:
- Functions are *pure DB helpers*: they take an open `aiosqlite.Connection`
  and return rows/materialized dataclasses.
- SQL for filtered reads comes from `songvault.core.db.query_builder`.
- These functions assume `conn.row_factory = aiosqlite.Row`.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

import aiosqlite

from songvault.core.db.filters import SongFilter
from songvault.core.db.models import (
    AlbumRow,
    ArtistRow,
    GenreRow,
    SongRow,
    UpsertSong,
    normalize_int,
    normalize_text,
)
from songvault.core.db.query_builder import BuiltQuery, build_song_lookup, build_song_query


def _unique_by(items: list[dict[str, Any]], key: str) -> list[dict[str, Any]]:
    """Drop null joins and the duplicates produced by multi-table joins, keeping order."""
    seen: set[Any] = set()
    out: list[dict[str, Any]] = []
    for item in items:
        ident = item.get(key)
        if ident is None or ident in seen:
            continue
        seen.add(ident)
        out.append(item)
    return out


def _row_to_album(row: aiosqlite.Row) -> AlbumRow | None:
    if row["al_album_id"] is None:
        return None
    return AlbumRow(
        album_id=str(row["al_album_id"]),
        album_name=row["al_album_name"],
        album_coverPath_high=row["al_album_coverPath_high"],
        album_coverPath_low=row["al_album_coverPath_low"],
        album_song_count=int(row["al_album_song_count"] or 0),
        album_artist=row["al_album_artist"],
        year=row["al_year"],
    )


def _row_to_song(row: aiosqlite.Row) -> SongRow:
    """Convert a grouped song row (see `build_song_query`) to a SongRow."""
    artists = tuple(
        ArtistRow(
            artist_id=str(a["artist_id"]),
            artist_name=a["artist_name"],
            artist_mbid=a.get("artist_mbid"),
            artist_coverPath=a.get("artist_coverPath"),
            artist_song_count=int(a.get("artist_song_count") or 0),
        )
        for a in _unique_by(json.loads(row["artists_json"] or "[]"), "artist_id")
    )
    genres = tuple(
        GenreRow(
            genre_id=str(g["genre_id"]),
            genre_name=g["genre_name"],
            genre_song_count=int(g.get("genre_song_count") or 0),
        )
        for g in _unique_by(json.loads(row["genres_json"] or "[]"), "genre_id")
    )

    return SongRow(
        id=str(row["_id"]),
        title=row["title"],
        path=row["path"],
        size=row["size"],
        duration=row["duration"],
        song_coverPath_low=row["song_coverPath_low"],
        song_coverPath_high=row["song_coverPath_high"],
        date=row["date"],
        year=row["year"],
        lyrics=row["lyrics"],
        bitrate=row["bitrate"],
        codec=row["codec"],
        container=row["container"],
        sample_rate=row["sampleRate"],
        hash=row["hash"],
        inode=row["inode"],
        deviceno=row["deviceno"],
        url=row["url"],
        playback_url=row["playbackUrl"],
        date_added=row["date_added"],
        provider_extension=row["provider_extension"],
        icon=row["icon"],
        type=row["type"] or "LOCAL",
        album=_row_to_album(row),
        artists=artists,
        genres=genres,
    )


async def _fetch_songs(conn: aiosqlite.Connection, query: BuiltQuery) -> list[SongRow]:
    cursor = await conn.execute(query.sql, query.params)
    rows = await cursor.fetchall()
    return [_row_to_song(r) for r in rows]


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def list_songs(
    conn: aiosqlite.Connection,
    song_filter: SongFilter | None = None,
    exclude_paths: Sequence[str] | None = None,
) -> list[SongRow]:
    return await _fetch_songs(conn, build_song_query(song_filter, exclude_paths))


async def get_song_by_id(conn: aiosqlite.Connection, song_id: str) -> SongRow | None:
    songs = await _fetch_songs(conn, build_song_lookup("_id", song_id))
    return songs[0] if songs else None


async def get_song_by_hash(conn: aiosqlite.Connection, content_hash: str) -> SongRow | None:
    """Return the first song with this content hash, or None."""
    songs = await _fetch_songs(conn, build_song_lookup("hash", content_hash))
    return songs[0] if songs else None


async def song_exists(conn: aiosqlite.Connection, song_id: str) -> bool:
    cursor = await conn.execute("SELECT 1 FROM allsongs WHERE _id = ?;", (song_id,))
    return await cursor.fetchone() is not None


async def count_songs(conn: aiosqlite.Connection) -> int:
    cursor = await conn.execute("SELECT COUNT(*) AS c FROM allsongs;")
    row = await cursor.fetchone()
    return int(row["c"]) if row else 0


# ---------------------------------------------------------------------------
# Writes (run inside the caller's transaction)
# ---------------------------------------------------------------------------


async def insert_song(conn: aiosqlite.Connection, song: UpsertSong, *, date_added: int) -> None:
    await conn.execute(
        """
        INSERT INTO allsongs (
            _id, path, size, title, song_coverPath_low, song_coverPath_high,
            date, year, lyrics, bitrate, codec, container, duration, sampleRate,
            hash, inode, deviceno, url, playbackUrl, date_added,
            provider_extension, icon, type
        ) VALUES (
            :id, :path, :size, :title, :cover_low, :cover_high,
            :date, :year, :lyrics, :bitrate, :codec, :container, :duration, :sample_rate,
            :hash, :inode, :deviceno, :url, :playback_url, :date_added,
            :provider_extension, :icon, :type
        )
        """,
        {
            "id": song.id,
            "path": song.path,
            "size": normalize_int(song.size),
            "title": normalize_text(song.title) or "",
            "cover_low": normalize_text(song.song_coverPath_low),
            "cover_high": normalize_text(song.song_coverPath_high),
            "date": normalize_text(song.date),
            "year": normalize_int(song.year),
            "lyrics": song.lyrics,
            "bitrate": normalize_int(song.bitrate),
            "codec": normalize_text(song.codec),
            "container": normalize_text(song.container),
            "duration": float(song.duration) if song.duration is not None else None,
            "sample_rate": normalize_int(song.sample_rate),
            "hash": normalize_text(song.hash),
            "inode": song.inode,
            "deviceno": song.deviceno,
            "url": normalize_text(song.url),
            "playback_url": normalize_text(song.playback_url),
            "date_added": song.date_added if song.date_added is not None else date_added,
            "provider_extension": normalize_text(song.provider_extension),
            "icon": song.icon,
            "type": song.type or "LOCAL",
        },
    )


async def update_song_cover(
    conn: aiosqlite.Connection, song_id: str, cover_high: str | None, cover_low: str | None
) -> bool:
    """Overwrite both cover paths of a song. Returns False if the song is unknown."""
    cursor = await conn.execute(
        "UPDATE allsongs SET song_coverPath_high = ?, song_coverPath_low = ? WHERE _id = ?;",
        (normalize_text(cover_high), normalize_text(cover_low), song_id),
    )
    return cursor.rowcount > 0


async def get_song_covers(conn: aiosqlite.Connection, song_id: str) -> tuple[str, ...] | None:
    """Return the song's (low, high) cover paths that are set, or None if the song is unknown."""
    cursor = await conn.execute(
        "SELECT song_coverPath_low, song_coverPath_high FROM allsongs WHERE _id = ?;",
        (song_id,),
    )
    row = await cursor.fetchone()
    if row is None:
        return None
    return tuple(p for p in (row["song_coverPath_low"], row["song_coverPath_high"]) if p)
