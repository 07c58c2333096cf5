"""
Database schema for SongVault.

Responsibilities are split the same way as the rest of the db package:

- Connection management and the public `LibraryDb` facade live in `library_db.py`
- Table creation and schema versioning live here

Design notes:
- We use SQLite `PRAGMA user_version` as the schema version.
- Only forward creation is supported; there is no downgrade or migration tooling.
- Entity names carry `COLLATE NOCASE` so both the UNIQUE constraint and
  lookups treat "Daft Punk" and "daft punk" as the same row.
- Bridge tables reference both sides with foreign keys; `foreign_keys` must be
  enabled on the connection for dangling ids to be rejected.
"""

from __future__ import annotations

from typing import Final

import aiosqlite

# Bump when you change the schema and add a step in `migrate()`.
SCHEMA_VERSION: Final[int] = 1

# Bridge table -> (entity column, entity table, entity id column)
BRIDGES: Final[dict[str, tuple[str, str, str]]] = {
    "artists_bridge": ("artist", "artists", "artist_id"),
    "album_bridge": ("album", "albums", "album_id"),
    "genre_bridge": ("genre", "genres", "genre_id"),
    "playlist_bridge": ("playlist", "playlists", "playlist_id"),
}


async def ensure_schema(conn: aiosqlite.Connection) -> None:
    """
    Create schema at the current version.

    This function assumes:
    - `conn` is an open aiosqlite connection
    - `conn.row_factory` is configured by the caller if desired
    - foreign_keys pragma is enabled by the caller
    """
    cursor = await conn.execute("PRAGMA user_version;")
    row = await cursor.fetchone()
    current = int(row[0]) if row is not None else 0

    if current > SCHEMA_VERSION:
        raise RuntimeError(
            f"Database schema version {current} is newer than supported {SCHEMA_VERSION}."
        )

    if current == SCHEMA_VERSION:
        return

    await migrate(conn, from_version=current, to_version=SCHEMA_VERSION)
    await conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION};")
    await conn.commit()


async def migrate(conn: aiosqlite.Connection, *, from_version: int, to_version: int) -> None:
    """Create tables for every version step between `from_version` and `to_version`."""
    # v0 -> v1
    if from_version == 0 and to_version >= 1:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS allsongs (
                _id TEXT PRIMARY KEY NOT NULL,
                path TEXT,
                size INTEGER,
                title TEXT NOT NULL,
                song_coverPath_low TEXT,
                song_coverPath_high TEXT,
                date TEXT,
                year INTEGER,
                lyrics TEXT,
                bitrate INTEGER,
                codec TEXT,
                container TEXT,
                duration REAL,
                sampleRate INTEGER,
                hash TEXT,
                inode TEXT,
                deviceno TEXT,
                url TEXT,
                playbackUrl TEXT,
                date_added INTEGER,
                provider_extension TEXT,
                icon TEXT,
                type TEXT NOT NULL DEFAULT 'LOCAL'
            )
            """
        )
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_allsongs_path ON allsongs(path);")
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_allsongs_hash ON allsongs(hash);")
        await conn.execute("CREATE INDEX IF NOT EXISTS idx_allsongs_title ON allsongs(title);")

        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS albums (
                album_id TEXT PRIMARY KEY NOT NULL,
                album_name TEXT NOT NULL UNIQUE COLLATE NOCASE,
                album_coverPath_high TEXT,
                album_coverPath_low TEXT,
                album_song_count INTEGER NOT NULL DEFAULT 0,
                album_artist TEXT,
                year INTEGER
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS artists (
                artist_id TEXT PRIMARY KEY NOT NULL,
                artist_name TEXT NOT NULL UNIQUE COLLATE NOCASE,
                artist_mbid TEXT,
                artist_coverPath TEXT,
                artist_song_count INTEGER NOT NULL DEFAULT 0
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS genres (
                genre_id TEXT PRIMARY KEY NOT NULL,
                genre_name TEXT NOT NULL UNIQUE COLLATE NOCASE,
                genre_song_count INTEGER NOT NULL DEFAULT 0
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS playlists (
                playlist_id TEXT PRIMARY KEY NOT NULL,
                playlist_name TEXT NOT NULL,
                playlist_desc TEXT,
                playlist_coverPath TEXT,
                playlist_song_count INTEGER NOT NULL DEFAULT 0
            )
            """
        )

        # Bridges: pairs of ids only. The surrogate `id` is what counts are taken over.
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS artists_bridge (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                song TEXT NOT NULL REFERENCES allsongs(_id) ON DELETE CASCADE,
                artist TEXT NOT NULL REFERENCES artists(artist_id) ON DELETE CASCADE,
                UNIQUE (song, artist)
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS album_bridge (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                song TEXT NOT NULL UNIQUE REFERENCES allsongs(_id) ON DELETE CASCADE,
                album TEXT NOT NULL REFERENCES albums(album_id) ON DELETE CASCADE
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS genre_bridge (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                song TEXT NOT NULL REFERENCES allsongs(_id) ON DELETE CASCADE,
                genre TEXT NOT NULL REFERENCES genres(genre_id) ON DELETE CASCADE,
                UNIQUE (song, genre)
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS playlist_bridge (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                song TEXT NOT NULL REFERENCES allsongs(_id) ON DELETE CASCADE,
                playlist TEXT NOT NULL REFERENCES playlists(playlist_id) ON DELETE CASCADE,
                UNIQUE (playlist, song)
            )
            """
        )

        for bridge, (column, _table, _id_column) in BRIDGES.items():
            await conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{bridge}_song ON {bridge}(song);"
            )
            await conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{bridge}_{column} ON {bridge}({column});"
            )

        await conn.commit()
        from_version = 1

    if from_version != to_version:
        raise RuntimeError(f"No migration path from {from_version} to {to_version}.")
