"""
Playlist queries.

Playlists are created and destroyed explicitly. Unlike albums/artists/genres
they are never deduplicated by name and removing one never touches songs.

These functions assume `conn.row_factory = aiosqlite.Row` and run inside the
caller's transaction for writes.
"""

from __future__ import annotations

from typing import Sequence

import aiosqlite

from songvault.core.db.bridges import link_playlist
from songvault.core.db.models import PlaylistRow, normalize_text
from songvault.core.db.queries_entities import row_to_playlist


async def insert_playlist(
    conn: aiosqlite.Connection,
    playlist_id: str,
    name: str,
    desc: str | None = None,
    cover_path: str | None = None,
) -> None:
    await conn.execute(
        """
        INSERT INTO playlists (playlist_id, playlist_name, playlist_desc, playlist_coverPath)
        VALUES (?, ?, ?, ?);
        """,
        (playlist_id, name, normalize_text(desc), normalize_text(cover_path)),
    )


async def get_playlist_by_id(conn: aiosqlite.Connection, playlist_id: str) -> PlaylistRow | None:
    cursor = await conn.execute("SELECT * FROM playlists WHERE playlist_id = ?;", (playlist_id,))
    row = await cursor.fetchone()
    return row_to_playlist(row) if row else None


async def list_playlist_song_ids(conn: aiosqlite.Connection, playlist_id: str) -> list[str]:
    cursor = await conn.execute(
        "SELECT song FROM playlist_bridge WHERE playlist = ? ORDER BY id ASC;",
        (playlist_id,),
    )
    rows = await cursor.fetchall()
    return [str(r["song"]) for r in rows]


async def update_playlist_cover_path(
    conn: aiosqlite.Connection, playlist_id: str, cover_path: str | None
) -> bool:
    cursor = await conn.execute(
        "UPDATE playlists SET playlist_coverPath = ? WHERE playlist_id = ?;",
        (normalize_text(cover_path), playlist_id),
    )
    return cursor.rowcount > 0


async def _album_cover_for_song(conn: aiosqlite.Connection, song_id: str) -> str | None:
    cursor = await conn.execute(
        """
        SELECT al.album_coverPath_high AS cover
        FROM album_bridge ab
        JOIN albums al ON al.album_id = ab.album
        WHERE ab.song = ?
        """,
        (song_id,),
    )
    row = await cursor.fetchone()
    return row["cover"] if row else None


async def add_songs(
    conn: aiosqlite.Connection, playlist: PlaylistRow, song_ids: Sequence[str]
) -> int:
    """
    Link songs into a playlist, skipping songs already in it.

    A playlist without a cover borrows the album cover of the first added song
    that has one. Returns the number of songs added.
    """
    present = set(await list_playlist_song_ids(conn, playlist.playlist_id))
    has_cover = bool(playlist.playlist_coverPath)
    added = 0
    for song_id in song_ids:
        if song_id in present:
            continue
        if not has_cover:
            cover = await _album_cover_for_song(conn, song_id)
            if cover:
                await update_playlist_cover_path(conn, playlist.playlist_id, cover)
                has_cover = True
        added += await link_playlist(conn, song_id, (playlist.playlist_id,))
        present.add(song_id)
    return added


async def remove_songs(
    conn: aiosqlite.Connection, playlist_id: str, song_ids: Sequence[str]
) -> int:
    """Unlink songs from a playlist. Returns the number of bridge rows removed."""
    removed = 0
    for song_id in song_ids:
        cursor = await conn.execute(
            "DELETE FROM playlist_bridge WHERE playlist = ? AND song = ?;",
            (playlist_id, song_id),
        )
        removed += cursor.rowcount
    return removed


async def delete_playlist(conn: aiosqlite.Connection, playlist_id: str) -> bool:
    await conn.execute("DELETE FROM playlist_bridge WHERE playlist = ?;", (playlist_id,))
    cursor = await conn.execute("DELETE FROM playlists WHERE playlist_id = ?;", (playlist_id,))
    return cursor.rowcount > 0
