"""
Entity resolution for shared rows (artists, albums, genres).

Songs reference shared entities by *name*. Two songs tagged "Daft Punk" and
"  daft punk " must end up pointing at one artist row, so every insert is
preceded by a case-insensitive lookup on the trimmed name.

Design:
- Functions take an open `aiosqlite.Connection` and are expected to run inside
  the caller's transaction (see `LibraryDb.transaction`).
- New rows get random UUID4 identifiers.
- These functions assume `conn.row_factory = aiosqlite.Row`.
"""

from __future__ import annotations

import logging
import uuid
from typing import Iterable

import aiosqlite

from songvault.core.db.models import UpsertAlbum, normalize_int, normalize_names, normalize_text

logger = logging.getLogger(__name__)


def new_id() -> str:
    return str(uuid.uuid4())


async def _lookup(conn: aiosqlite.Connection, table: str, id_column: str, name_column: str, name: str) -> str | None:
    # table/column names come from the fixed call sites below, never from input
    cursor = await conn.execute(
        f"SELECT {id_column} AS id FROM {table} WHERE {name_column} = ? COLLATE NOCASE;",
        (name,),
    )
    row = await cursor.fetchone()
    return str(row["id"]) if row is not None else None


async def resolve_artist(conn: aiosqlite.Connection, name: str | None) -> str | None:
    """Get or create an artist by name, return its ID (None for an empty name)."""
    artist_name = normalize_text(name)
    if artist_name is None:
        return None

    existing = await _lookup(conn, "artists", "artist_id", "artist_name", artist_name)
    if existing is not None:
        return existing

    artist_id = new_id()
    await conn.execute(
        "INSERT INTO artists (artist_id, artist_name) VALUES (?, ?);",
        (artist_id, artist_name),
    )
    logger.debug("Created artist %r (%s)", artist_name, artist_id)
    return artist_id


async def resolve_artists(conn: aiosqlite.Connection, names: Iterable[str]) -> list[str]:
    """
    Resolve every artist name independently.

    Returns one ID per non-empty name, in input order. Equivalent names map to
    the same ID, so the result may contain repeats.
    """
    ids: list[str] = []
    for name in normalize_names(list(names)):
        artist_id = await resolve_artist(conn, name)
        if artist_id is not None:
            ids.append(artist_id)
    return ids


async def resolve_genre(conn: aiosqlite.Connection, name: str | None) -> str | None:
    """Get or create a genre by name, return its ID (None for an empty name)."""
    genre_name = normalize_text(name)
    if genre_name is None:
        return None

    existing = await _lookup(conn, "genres", "genre_id", "genre_name", genre_name)
    if existing is not None:
        return existing

    genre_id = new_id()
    await conn.execute(
        "INSERT INTO genres (genre_id, genre_name) VALUES (?, ?);",
        (genre_id, genre_name),
    )
    logger.debug("Created genre %r (%s)", genre_name, genre_id)
    return genre_id


async def resolve_genres(conn: aiosqlite.Connection, names: Iterable[str]) -> list[str]:
    ids: list[str] = []
    for name in normalize_names(list(names)):
        genre_id = await resolve_genre(conn, name)
        if genre_id is not None:
            ids.append(genre_id)
    return ids


async def resolve_album(conn: aiosqlite.Connection, album: UpsertAlbum | None) -> str | None:
    """
    Get or create an album by name, return its ID.

    Cover paths, album artist and year are only written on first insert.
    A name match returns the existing row untouched.
    """
    if album is None:
        return None
    album_name = normalize_text(album.album_name)
    if album_name is None:
        return None

    existing = await _lookup(conn, "albums", "album_id", "album_name", album_name)
    if existing is not None:
        return existing

    album_id = new_id()
    await conn.execute(
        """
        INSERT INTO albums (
            album_id, album_name, album_coverPath_high, album_coverPath_low, album_artist, year
        ) VALUES (?, ?, ?, ?, ?, ?);
        """,
        (
            album_id,
            album_name,
            normalize_text(album.album_coverPath_high),
            normalize_text(album.album_coverPath_low),
            normalize_text(album.album_artist),
            normalize_int(album.year),
        ),
    )
    logger.debug("Created album %r (%s)", album_name, album_id)
    return album_id
