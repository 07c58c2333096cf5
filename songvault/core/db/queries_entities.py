"""
Shared-entity queries (albums, artists, genres) and song-count recomputation.

Design:
- Functions are *pure DB helpers*: they take an open `aiosqlite.Connection`
  and return rows/materialized dataclasses.
- These functions assume `conn.row_factory = aiosqlite.Row`.
- The `*_song_count` columns are a cache. They are only ever written by the
  recount helpers at the bottom of this module, which derive them from the
  bridge tables.
"""

from __future__ import annotations

from typing import Any, Callable, Final

import aiosqlite

from songvault.core.db.filters import Category, EntityFilter
from songvault.core.db.models import (
    AlbumRow,
    ArtistRow,
    GenreRow,
    PlaylistRow,
    normalize_text,
)
from songvault.core.db.query_builder import build_entity_query


def row_to_album(row: aiosqlite.Row) -> AlbumRow:
    return AlbumRow(
        album_id=str(row["album_id"]),
        album_name=row["album_name"],
        album_coverPath_high=row["album_coverPath_high"],
        album_coverPath_low=row["album_coverPath_low"],
        album_song_count=int(row["album_song_count"] or 0),
        album_artist=row["album_artist"],
        year=row["year"],
    )


def row_to_artist(row: aiosqlite.Row) -> ArtistRow:
    return ArtistRow(
        artist_id=str(row["artist_id"]),
        artist_name=row["artist_name"],
        artist_mbid=row["artist_mbid"],
        artist_coverPath=row["artist_coverPath"],
        artist_song_count=int(row["artist_song_count"] or 0),
    )


def row_to_genre(row: aiosqlite.Row) -> GenreRow:
    return GenreRow(
        genre_id=str(row["genre_id"]),
        genre_name=row["genre_name"],
        genre_song_count=int(row["genre_song_count"] or 0),
    )


def row_to_playlist(row: aiosqlite.Row) -> PlaylistRow:
    return PlaylistRow(
        playlist_id=str(row["playlist_id"]),
        playlist_name=row["playlist_name"],
        playlist_desc=row["playlist_desc"],
        playlist_coverPath=row["playlist_coverPath"],
        playlist_song_count=int(row["playlist_song_count"] or 0),
    )


_CONVERTERS: Final[dict[Category, Callable[[aiosqlite.Row], Any]]] = {
    Category.ALBUM: row_to_album,
    Category.ARTIST: row_to_artist,
    Category.GENRE: row_to_genre,
    Category.PLAYLIST: row_to_playlist,
}


async def list_entities(conn: aiosqlite.Connection, entity_filter: EntityFilter) -> list[Any]:
    """Run an entity filter and return rows typed by the filter's category."""
    query = build_entity_query(entity_filter)
    cursor = await conn.execute(query.sql, query.params)
    rows = await cursor.fetchall()
    convert = _CONVERTERS[entity_filter.category]
    return [convert(r) for r in rows]


async def get_album_by_id(conn: aiosqlite.Connection, album_id: str) -> AlbumRow | None:
    cursor = await conn.execute("SELECT * FROM albums WHERE album_id = ?;", (album_id,))
    row = await cursor.fetchone()
    return row_to_album(row) if row else None


async def get_artist_by_id(conn: aiosqlite.Connection, artist_id: str) -> ArtistRow | None:
    cursor = await conn.execute("SELECT * FROM artists WHERE artist_id = ?;", (artist_id,))
    row = await cursor.fetchone()
    return row_to_artist(row) if row else None


async def get_genre_by_id(conn: aiosqlite.Connection, genre_id: str) -> GenreRow | None:
    cursor = await conn.execute("SELECT * FROM genres WHERE genre_id = ?;", (genre_id,))
    row = await cursor.fetchone()
    return row_to_genre(row) if row else None


async def count_rows(conn: aiosqlite.Connection, category: Category) -> int:
    cursor = await conn.execute(f"SELECT COUNT(*) AS c FROM {category.table};")
    row = await cursor.fetchone()
    return int(row["c"]) if row else 0


# ---------------------------------------------------------------------------
# Covers / details
# ---------------------------------------------------------------------------


async def update_album_cover_if_missing(
    conn: aiosqlite.Connection, song_id: str, cover_high: str | None, cover_low: str | None
) -> bool:
    """
    Fill empty cover slots of the album a song belongs to.

    Existing covers are never overwritten. Returns True if anything changed.
    """
    cursor = await conn.execute(
        """
        SELECT al.album_id, al.album_coverPath_high, al.album_coverPath_low
        FROM album_bridge ab
        JOIN albums al ON al.album_id = ab.album
        WHERE ab.song = ?
        """,
        (song_id,),
    )
    row = await cursor.fetchone()
    if row is None:
        return False

    changed = False
    high = normalize_text(cover_high)
    low = normalize_text(cover_low)
    if high and not row["album_coverPath_high"]:
        await conn.execute(
            "UPDATE albums SET album_coverPath_high = ? WHERE album_id = ?;",
            (high, row["album_id"]),
        )
        changed = True
    if low and not row["album_coverPath_low"]:
        await conn.execute(
            "UPDATE albums SET album_coverPath_low = ? WHERE album_id = ?;",
            (low, row["album_id"]),
        )
        changed = True
    return changed


async def update_artist_details(conn: aiosqlite.Connection, artist: ArtistRow) -> int:
    """
    Update an artist's detail columns.

    The artist is matched by `artist_id`; its id and name are never changed.
    Fields left as None keep their stored value. Returns the number of rows
    updated (0 if nothing was provided).
    """
    updates = {
        column: value
        for column, value in (
            ("artist_mbid", normalize_text(artist.artist_mbid)),
            ("artist_coverPath", normalize_text(artist.artist_coverPath)),
        )
        if value is not None
    }
    if not updates:
        return 0
    # Column names come from the fixed tuple above.
    assignments = ", ".join(f"{column} = :{column}" for column in updates)
    cursor = await conn.execute(
        f"UPDATE artists SET {assignments} WHERE artist_id = :artist_id;",
        {**updates, "artist_id": artist.artist_id},
    )
    return cursor.rowcount


async def get_default_cover_by_artist(conn: aiosqlite.Connection, artist_id: str) -> str | None:
    """Return the high-res cover of any album holding a song by this artist."""
    cursor = await conn.execute(
        """
        SELECT al.album_coverPath_high AS cover
        FROM artists_bridge arb
        JOIN album_bridge ab ON ab.song = arb.song
        JOIN albums al ON al.album_id = ab.album
        WHERE arb.artist = ? AND al.album_coverPath_high IS NOT NULL
        ORDER BY arb.id ASC
        LIMIT 1
        """,
        (artist_id,),
    )
    row = await cursor.fetchone()
    return row["cover"] if row else None


# ---------------------------------------------------------------------------
# Song-count recomputation
# ---------------------------------------------------------------------------


async def update_song_count_album(conn: aiosqlite.Connection) -> None:
    await conn.execute(
        """
        UPDATE albums SET album_song_count = (
            SELECT COUNT(id) FROM album_bridge WHERE album_bridge.album = albums.album_id
        )
        """
    )


async def update_song_count_artist(conn: aiosqlite.Connection) -> None:
    await conn.execute(
        """
        UPDATE artists SET artist_song_count = (
            SELECT COUNT(id) FROM artists_bridge WHERE artists_bridge.artist = artists.artist_id
        )
        """
    )


async def update_song_count_genre(conn: aiosqlite.Connection) -> None:
    await conn.execute(
        """
        UPDATE genres SET genre_song_count = (
            SELECT COUNT(id) FROM genre_bridge WHERE genre_bridge.genre = genres.genre_id
        )
        """
    )


async def update_song_count_playlist(conn: aiosqlite.Connection) -> None:
    await conn.execute(
        """
        UPDATE playlists SET playlist_song_count = (
            SELECT COUNT(id) FROM playlist_bridge
            WHERE playlist_bridge.playlist = playlists.playlist_id
        )
        """
    )
