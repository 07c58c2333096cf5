"""
Cascade delete of a song and the shared entities it leaves orphaned.

`remove_song` must run inside one transaction (see `LibraryDb.transaction`):

1. snapshot reference counts of every album/artist/genre the song uses
2. capture the song's own cover paths
3. delete the song's bridge rows, then the song row
4. delete every entity whose count was exactly 1, capturing its covers
5. drop paths that a remaining row still uses (a playlist cover copied
   from an album, a cover file shared by several songs)
6. return the rest for removal from disk *after* commit

Files are deliberately not touched here; a rolled back transaction must
never have deleted anything on disk.
"""

from __future__ import annotations

import logging

import aiosqlite

from songvault.core.db.bridges import unlink_song
from songvault.core.db.models import RemovalResult
from songvault.core.db.queries_songs import get_song_covers

logger = logging.getLogger(__name__)


async def reference_counts(
    conn: aiosqlite.Connection, bridge: str, column: str, song_id: str
) -> dict[str, int]:
    """
    For every entity the song links to through `bridge`, count all bridge rows
    referencing that entity (the song's own row included).
    """
    cursor = await conn.execute(
        f"""
        SELECT {column} AS entity, COUNT(id) AS refs
        FROM {bridge}
        WHERE {column} IN (SELECT {column} FROM {bridge} WHERE song = ?)
        GROUP BY {column}
        """,
        (song_id,),
    )
    rows = await cursor.fetchall()
    return {str(r["entity"]): int(r["refs"]) for r in rows}


def _sole_references(counts: dict[str, int]) -> list[str]:
    return [entity_id for entity_id, refs in counts.items() if refs == 1]


async def _delete_albums(conn: aiosqlite.Connection, album_ids: list[str]) -> list[str]:
    paths: list[str] = []
    for album_id in album_ids:
        cursor = await conn.execute(
            "SELECT album_coverPath_low, album_coverPath_high FROM albums WHERE album_id = ?;",
            (album_id,),
        )
        row = await cursor.fetchone()
        if row is not None:
            paths.extend(p for p in (row["album_coverPath_low"], row["album_coverPath_high"]) if p)
        await conn.execute("DELETE FROM albums WHERE album_id = ?;", (album_id,))
    return paths


async def _delete_artists(conn: aiosqlite.Connection, artist_ids: list[str]) -> list[str]:
    paths: list[str] = []
    for artist_id in artist_ids:
        cursor = await conn.execute(
            "SELECT artist_coverPath FROM artists WHERE artist_id = ?;",
            (artist_id,),
        )
        row = await cursor.fetchone()
        if row is not None and row["artist_coverPath"]:
            paths.append(row["artist_coverPath"])
        await conn.execute("DELETE FROM artists WHERE artist_id = ?;", (artist_id,))
    return paths


async def _still_referenced(conn: aiosqlite.Connection, paths: list[str]) -> set[str]:
    """Return the paths some remaining song, album, artist or playlist row still uses."""
    kept: set[str] = set()
    for path in paths:
        cursor = await conn.execute(
            """
            SELECT
                EXISTS (SELECT 1 FROM allsongs
                        WHERE song_coverPath_low = :p OR song_coverPath_high = :p)
                OR EXISTS (SELECT 1 FROM albums
                           WHERE album_coverPath_low = :p OR album_coverPath_high = :p)
                OR EXISTS (SELECT 1 FROM artists WHERE artist_coverPath = :p)
                OR EXISTS (SELECT 1 FROM playlists WHERE playlist_coverPath = :p)
                AS used
            """,
            {"p": path},
        )
        row = await cursor.fetchone()
        if row is not None and row["used"]:
            kept.add(path)
    return kept


async def _delete_genres(conn: aiosqlite.Connection, genre_ids: list[str]) -> None:
    for genre_id in genre_ids:
        await conn.execute("DELETE FROM genres WHERE genre_id = ?;", (genre_id,))


async def remove_song(
    conn: aiosqlite.Connection, song_id: str, *, purge_orphan_genres: bool = True
) -> RemovalResult:
    """
    Remove a song and every album/artist (and genre, if enabled) it was the
    last reference to.

    An unknown song id is not an error; the result simply reports
    `removed=False` and no paths.
    """
    song_covers = await get_song_covers(conn, song_id)
    if song_covers is None:
        return RemovalResult(song_id=song_id, removed=False)

    album_counts = await reference_counts(conn, "album_bridge", "album", song_id)
    artist_counts = await reference_counts(conn, "artists_bridge", "artist", song_id)
    genre_counts = await reference_counts(conn, "genre_bridge", "genre", song_id)

    await unlink_song(conn, song_id)
    await conn.execute("DELETE FROM allsongs WHERE _id = ?;", (song_id,))

    orphan_albums = _sole_references(album_counts)
    orphan_artists = _sole_references(artist_counts)
    orphan_genres = _sole_references(genre_counts) if purge_orphan_genres else []

    paths: list[str] = list(song_covers)
    paths.extend(await _delete_albums(conn, orphan_albums))
    paths.extend(await _delete_artists(conn, orphan_artists))
    await _delete_genres(conn, orphan_genres)

    # Dedupe while keeping order; low/high covers may point at the same file.
    candidates = list(dict.fromkeys(paths))
    kept = await _still_referenced(conn, candidates)
    unique_paths = tuple(p for p in candidates if p not in kept)

    logger.debug(
        "Removed song %s (albums=%d artists=%d genres=%d purged, %d cover files)",
        song_id,
        len(orphan_albums),
        len(orphan_artists),
        len(orphan_genres),
        len(unique_paths),
    )

    return RemovalResult(
        song_id=song_id,
        removed=True,
        cover_paths=unique_paths,
        deleted_albums=tuple(orphan_albums),
        deleted_artists=tuple(orphan_artists),
        deleted_genres=tuple(orphan_genres),
    )
