"""
Bridge (many-to-many) row maintenance.

Each bridge row is a (song, entity) pair. These helpers insert them and
nothing else:
- no deduplication; a repeated pair violates the bridge's UNIQUE constraint
- no existence checks; a dangling id violates a foreign key
Both surface as `aiosqlite.IntegrityError` and abort the caller's transaction.
"""

from __future__ import annotations

from typing import Iterable

import aiosqlite


async def _link(
    conn: aiosqlite.Connection, bridge: str, column: str, song_id: str, entity_ids: Iterable[str]
) -> int:
    rows = [(song_id, entity_id) for entity_id in entity_ids]
    if not rows:
        return 0
    await conn.executemany(
        f"INSERT INTO {bridge} (song, {column}) VALUES (?, ?);",
        rows,
    )
    return len(rows)


async def link_artists(conn: aiosqlite.Connection, song_id: str, artist_ids: Iterable[str]) -> int:
    """Link a song to artists. Returns number of bridge rows inserted."""
    return await _link(conn, "artists_bridge", "artist", song_id, artist_ids)


async def link_genres(conn: aiosqlite.Connection, song_id: str, genre_ids: Iterable[str]) -> int:
    return await _link(conn, "genre_bridge", "genre", song_id, genre_ids)


async def link_album(conn: aiosqlite.Connection, song_id: str, album_id: str | None) -> int:
    """Link a song to its album. A song holds at most one album (UNIQUE on song)."""
    if album_id is None:
        return 0
    return await _link(conn, "album_bridge", "album", song_id, (album_id,))


async def link_playlist(conn: aiosqlite.Connection, song_id: str, playlist_ids: Iterable[str]) -> int:
    return await _link(conn, "playlist_bridge", "playlist", song_id, playlist_ids)


async def unlink_song(conn: aiosqlite.Connection, song_id: str) -> None:
    """Delete every bridge row of a song, in all four bridges."""
    await conn.execute("DELETE FROM artists_bridge WHERE song = ?;", (song_id,))
    await conn.execute("DELETE FROM album_bridge WHERE song = ?;", (song_id,))
    await conn.execute("DELETE FROM genre_bridge WHERE song = ?;", (song_id,))
    await conn.execute("DELETE FROM playlist_bridge WHERE song = ?;", (song_id,))
