"""
Music library database access layer.

Goals:
- Small, explicit and testable.
- SQLite + aiosqlite, async/await friendly.
- One connection, one logical writer; every mutation runs in one transaction.

This module is intentionally independent of any UI layer.

Note:
- Models/DTOs and normalization helpers live in `songvault.core.db.models`
- Schema lives in `songvault.core.db.schema`
- Entity resolution / bridges / cascade live in their own `songvault.core.db` modules
- Query functions live in `songvault.core.db.queries_*` modules
- `LibraryDb` remains the public facade used by the rest of the codebase
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, AsyncIterator, Iterable, Mapping, Sequence

import aiosqlite

from songvault.core import ConstraintViolationError, CoreError, NotFoundError, StorageUnavailableError
from songvault.core.db import cascade, queries_entities, queries_playlists, queries_songs
from songvault.core.db.bridges import link_album, link_artists, link_genres
from songvault.core.db.filters import (
    AlbumPredicates,
    ArtistPredicates,
    Category,
    EntityFilter,
    GenrePredicates,
    SongFilter,
    SongPredicates,
)
from songvault.core.db.models import (
    AlbumRow,
    ArtistRow,
    GenreRow,
    PlaylistRow,
    RemovalResult,
    SearchResult,
    SongRow,
    UpsertSong,
    normalize_text,
)
from songvault.core.db.resolver import new_id, resolve_album, resolve_artists, resolve_genres
from songvault.core.db.schema import ensure_schema as ensure_schema_sql

if TYPE_CHECKING:
    from songvault.config import LibraryConfig

logger = logging.getLogger(__name__)

# OperationalError messages that mean "try again later" rather than a bug.
_TRANSIENT_MARKERS = ("locked", "busy", "unable to open", "disk i/o")


def _translate_error(exc: BaseException) -> CoreError | None:
    if isinstance(exc, aiosqlite.IntegrityError):
        return ConstraintViolationError(str(exc))
    if isinstance(exc, aiosqlite.OperationalError):
        message = str(exc).lower()
        if any(marker in message for marker in _TRANSIENT_MARKERS):
            return StorageUnavailableError(str(exc))
    return None


def _unique(ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(ids))


class LibraryDb:
    """
    Async access layer for the music library DB.

    Usage:
        db = LibraryDb("songvault.db")
        await db.open()
        await db.ensure_schema()
        ... queries ...
        await db.close()

    Notes:
    - This class is designed to be constructed once and injected into other
      components; there is no module-level instance.
    - Connections are not pooled; we keep a single connection in autocommit
      mode and open transactions explicitly via `transaction()`.
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        case_sensitive_like: bool = False,
        purge_orphan_genres: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        self._db_path = str(db_path)
        self._case_sensitive_like = case_sensitive_like
        self._purge_orphan_genres = purge_orphan_genres
        self._busy_timeout_ms = int(busy_timeout_ms)
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self._tx_task: asyncio.Task[Any] | None = None
        self._savepoint_seq = 0

    @classmethod
    def from_config(cls, config: LibraryConfig) -> LibraryDb:
        return cls(
            config.db_path,
            case_sensitive_like=config.case_sensitive_like,
            purge_orphan_genres=config.purge_orphan_genres,
            busy_timeout_ms=config.busy_timeout_ms,
        )

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    @property
    def case_sensitive_like(self) -> bool:
        return self._case_sensitive_like

    async def open(self) -> None:
        if self._conn is not None:
            return
        try:
            self._conn = await aiosqlite.connect(self._db_path, isolation_level=None)
        except aiosqlite.OperationalError as exc:
            raise StorageUnavailableError(f"Cannot open {self._db_path}: {exc}") from exc
        self._conn.row_factory = aiosqlite.Row

        # Pragmas: modern defaults without being clever.
        await self._pragma(
            f"PRAGMA case_sensitive_like = {'ON' if self._case_sensitive_like else 'OFF'};"
        )
        await self._pragma("PRAGMA foreign_keys = ON;")
        await self._pragma("PRAGMA journal_mode = WAL;")
        await self._pragma("PRAGMA synchronous = NORMAL;")
        await self._pragma("PRAGMA temp_store = MEMORY;")
        await self._pragma(f"PRAGMA busy_timeout = {self._busy_timeout_ms};")

        # SQLite ignores case_sensitive_like silently while a statement is active.
        async with self._conn.execute("SELECT 'A' LIKE 'a' AS folded;") as cursor:
            row = await cursor.fetchone()
        if bool(row["folded"]) == self._case_sensitive_like:
            await self.close()
            raise RuntimeError(
                f"case_sensitive_like={self._case_sensitive_like} could not be applied"
            )
        logger.info("Opened library database %s", self._db_path)

    async def _pragma(self, sql: str) -> None:
        """Run a pragma and drain its result so no statement stays active."""
        conn = self._require_conn()
        async with conn.execute(sql) as cursor:
            await cursor.fetchall()

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("LibraryDb is not open. Call await db.open() first.")
        return self._conn

    async def ensure_schema(self) -> None:
        """Create schema at the current version."""
        conn = self._require_conn()
        async with self._lock:
            await ensure_schema_sql(conn)

    # ===========================================================================
    # Transactions
    # ===========================================================================

    def _owns_transaction(self) -> bool:
        return self._tx_task is not None and self._tx_task is asyncio.current_task()

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Scoped write transaction: begin, run the body, commit or roll back.

        Nesting inside the same task uses a SAVEPOINT, so helpers can open a
        transaction without knowing whether their caller already did.

        SQLite errors are rolled back and re-raised as core errors:
        - IntegrityError -> ConstraintViolationError
        - locked/busy/cannot open -> StorageUnavailableError
        """
        conn = self._require_conn()

        if self._owns_transaction():
            self._savepoint_seq += 1
            name = f"sv_{self._savepoint_seq}"
            await conn.execute(f"SAVEPOINT {name};")
            try:
                yield conn
            except BaseException as exc:
                await conn.execute(f"ROLLBACK TO SAVEPOINT {name};")
                await conn.execute(f"RELEASE SAVEPOINT {name};")
                translated = _translate_error(exc)
                if translated is not None:
                    raise translated from exc
                raise
            await conn.execute(f"RELEASE SAVEPOINT {name};")
            return

        async with self._lock:
            self._tx_task = asyncio.current_task()
            try:
                try:
                    await conn.execute("BEGIN IMMEDIATE;")
                except aiosqlite.Error as exc:
                    translated = _translate_error(exc)
                    if translated is not None:
                        raise translated from exc
                    raise
                try:
                    yield conn
                    # A failed COMMIT (busy, deferred constraint) leaves the transaction open.
                    await conn.execute("COMMIT;")
                except BaseException as exc:
                    # Some errors make SQLite roll back on its own.
                    if conn.in_transaction:
                        await conn.execute("ROLLBACK;")
                    translated = _translate_error(exc)
                    if translated is not None:
                        raise translated from exc
                    raise
            finally:
                self._tx_task = None

    @contextlib.asynccontextmanager
    async def _reading(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Read access. Waits for other tasks' transactions so reads never see
        half-applied writes on the shared connection.
        """
        conn = self._require_conn()
        if self._owns_transaction():
            yield conn
            return
        async with self._lock:
            try:
                yield conn
            except aiosqlite.Error as exc:
                translated = _translate_error(exc)
                if translated is not None:
                    raise translated from exc
                raise

    async def fetch_all(
        self, sql: str, params: Sequence[Any] | Mapping[str, Any] = ()
    ) -> list[aiosqlite.Row]:
        """Run a raw read query. Intended for diagnostics and tests."""
        async with self._reading() as conn:
            cursor = await conn.execute(sql, params)
            return list(await cursor.fetchall())

    # ===========================================================================
    # Songs: store / remove (core business logic - stays here)
    # ===========================================================================

    async def _store_in(self, conn: aiosqlite.Connection, song: UpsertSong) -> bool:
        if await queries_songs.song_exists(conn, song.id):
            logger.debug("Song %s already stored, skipping", song.id)
            return False

        artist_ids = _unique(await resolve_artists(conn, song.artists))
        album_id = await resolve_album(conn, song.album)
        genre_ids = _unique(await resolve_genres(conn, song.genres))

        await queries_songs.insert_song(conn, song, date_added=int(time.time() * 1000))
        await link_artists(conn, song.id, artist_ids)
        await link_album(conn, song.id, album_id)
        await link_genres(conn, song.id, genre_ids)
        return True

    async def store(self, song: UpsertSong) -> bool:
        """
        Store a song with its album, artists and genres.

        Idempotent by song id: if the id exists nothing is written (not even
        new shared entities). Returns True if the song was inserted.
        """
        async with self.transaction() as conn:
            return await self._store_in(conn, song)

    async def store_many(self, songs: Iterable[UpsertSong]) -> int:
        """Store songs in one transaction. Returns count of newly inserted songs."""
        async with self.transaction() as conn:
            count = 0
            for song in songs:
                if await self._store_in(conn, song):
                    count += 1
            return count

    async def remove_song(self, song_id: str) -> RemovalResult:
        """
        Remove a song and the albums/artists/genres only it referenced.

        The returned `cover_paths` are no longer referenced by any row; deleting
        them from disk is the caller's job (see `CoverCleaner`).
        """
        async with self.transaction() as conn:
            return await cascade.remove_song(
                conn, song_id, purge_orphan_genres=self._purge_orphan_genres
            )

    # ===========================================================================
    # Song queries (delegated to queries_songs module)
    # ===========================================================================

    async def get_songs_by_options(
        self,
        options: SongFilter | Mapping[str, Any] | None = None,
        exclude_paths: Sequence[str] | None = None,
    ) -> list[SongRow]:
        song_filter = options if isinstance(options, SongFilter) else SongFilter.from_options(options)
        async with self._reading() as conn:
            return await queries_songs.list_songs(conn, song_filter, exclude_paths)

    async def get_song_by_id(self, song_id: str) -> SongRow | None:
        async with self._reading() as conn:
            return await queries_songs.get_song_by_id(conn, song_id)

    async def get_by_hash(self, content_hash: str) -> SongRow | None:
        async with self._reading() as conn:
            return await queries_songs.get_song_by_hash(conn, content_hash)

    async def count_songs(self) -> int:
        async with self._reading() as conn:
            return await queries_songs.count_songs(conn)

    async def update_song_cover(
        self, song_id: str, cover_high: str | None, cover_low: str | None
    ) -> bool:
        async with self.transaction() as conn:
            return await queries_songs.update_song_cover(conn, song_id, cover_high, cover_low)

    # ===========================================================================
    # Entity queries (delegated to queries_entities module)
    # ===========================================================================

    async def get_entities_by_options(
        self, options: EntityFilter | Mapping[str, Any]
    ) -> list[Any]:
        entity_filter = (
            options if isinstance(options, EntityFilter) else EntityFilter.from_options(options)
        )
        async with self._reading() as conn:
            return await queries_entities.list_entities(conn, entity_filter)

    async def get_album_by_id(self, album_id: str) -> AlbumRow | None:
        async with self._reading() as conn:
            return await queries_entities.get_album_by_id(conn, album_id)

    async def get_artist_by_id(self, artist_id: str) -> ArtistRow | None:
        async with self._reading() as conn:
            return await queries_entities.get_artist_by_id(conn, artist_id)

    async def get_genre_by_id(self, genre_id: str) -> GenreRow | None:
        async with self._reading() as conn:
            return await queries_entities.get_genre_by_id(conn, genre_id)

    async def count_entities(self, category: Category) -> int:
        async with self._reading() as conn:
            return await queries_entities.count_rows(conn, category)

    async def search_all(
        self, term: str, exclude_paths: Sequence[str] | None = None
    ) -> SearchResult:
        """
        Substring search across songs (by path), albums, artists and genres.

        All four lookups run under one read lock so they see the same state.
        """
        async with self._reading() as conn:
            songs = await queries_songs.list_songs(
                conn, SongFilter(song=SongPredicates(path=term)), exclude_paths
            )
            albums = await queries_entities.list_entities(
                conn, EntityFilter.of(AlbumPredicates(album_name=term))
            )
            artists = await queries_entities.list_entities(
                conn, EntityFilter.of(ArtistPredicates(artist_name=term))
            )
            genres = await queries_entities.list_entities(
                conn, EntityFilter.of(GenrePredicates(genre_name=term))
            )
        return SearchResult(
            songs=tuple(songs), albums=tuple(albums), artists=tuple(artists), genres=tuple(genres)
        )

    async def update_album_cover_if_missing(
        self, song_id: str, cover_high: str | None, cover_low: str | None
    ) -> bool:
        async with self.transaction() as conn:
            return await queries_entities.update_album_cover_if_missing(
                conn, song_id, cover_high, cover_low
            )

    async def update_artist_details(self, artist: ArtistRow) -> int:
        async with self.transaction() as conn:
            return await queries_entities.update_artist_details(conn, artist)

    async def get_default_cover_by_artist(self, artist_id: str) -> str | None:
        async with self._reading() as conn:
            return await queries_entities.get_default_cover_by_artist(conn, artist_id)

    # ===========================================================================
    # Song counts
    # ===========================================================================

    async def update_song_count_album(self) -> None:
        async with self.transaction() as conn:
            await queries_entities.update_song_count_album(conn)

    async def update_song_count_artist(self) -> None:
        async with self.transaction() as conn:
            await queries_entities.update_song_count_artist(conn)

    async def update_song_count_genre(self) -> None:
        async with self.transaction() as conn:
            await queries_entities.update_song_count_genre(conn)

    async def update_song_count_playlist(self) -> None:
        async with self.transaction() as conn:
            await queries_entities.update_song_count_playlist(conn)

    async def refresh_counts(self) -> None:
        """Recompute all four song-count caches in one transaction."""
        async with self.transaction() as conn:
            await queries_entities.update_song_count_album(conn)
            await queries_entities.update_song_count_artist(conn)
            await queries_entities.update_song_count_genre(conn)
            await queries_entities.update_song_count_playlist(conn)

    # ===========================================================================
    # Playlists (delegated to queries_playlists module)
    # ===========================================================================

    async def create_playlist(
        self, name: str, desc: str | None = None, cover_path: str | None = None
    ) -> str:
        """Create a playlist and return its id. Names are not deduplicated."""
        playlist_name = normalize_text(name)
        if playlist_name is None:
            raise ValueError("Playlist name must not be empty")
        playlist_id = new_id()
        async with self.transaction() as conn:
            await queries_playlists.insert_playlist(conn, playlist_id, playlist_name, desc, cover_path)
        return playlist_id

    async def get_playlist(self, playlist_id: str) -> PlaylistRow | None:
        async with self._reading() as conn:
            return await queries_playlists.get_playlist_by_id(conn, playlist_id)

    async def get_playlist_song_ids(self, playlist_id: str) -> list[str]:
        async with self._reading() as conn:
            return await queries_playlists.list_playlist_song_ids(conn, playlist_id)

    async def add_to_playlist(self, playlist_id: str, *song_ids: str) -> int:
        """
        Add songs to a playlist and refresh playlist counts.

        Raises NotFoundError for an unknown playlist and ConstraintViolationError
        for an unknown song (nothing is added in that case).
        """
        async with self.transaction() as conn:
            playlist = await queries_playlists.get_playlist_by_id(conn, playlist_id)
            if playlist is None:
                raise NotFoundError(f"Playlist {playlist_id} not found")
            added = await queries_playlists.add_songs(conn, playlist, song_ids)
            await queries_entities.update_song_count_playlist(conn)
        return added

    async def remove_from_playlist(self, playlist_id: str, *song_ids: str) -> int:
        async with self.transaction() as conn:
            removed = await queries_playlists.remove_songs(conn, playlist_id, song_ids)
            await queries_entities.update_song_count_playlist(conn)
        return removed

    async def remove_playlist(self, playlist_id: str) -> bool:
        async with self.transaction() as conn:
            return await queries_playlists.delete_playlist(conn, playlist_id)

    async def update_playlist_cover_path(self, playlist_id: str, cover_path: str | None) -> None:
        async with self.transaction() as conn:
            if not await queries_playlists.update_playlist_cover_path(conn, playlist_id, cover_path):
                raise NotFoundError(f"Playlist {playlist_id} not found")
