from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from songvault.core.cleanup import CoverCleaner
from songvault.core.db.filters import EntityFilter, SongFilter
from songvault.core.db.models import (
    ArtistRow,
    PlaylistRow,
    RemovalResult,
    SearchResult,
    SongRow,
    UpsertSong,
)
from songvault.core.library_db import LibraryDb
from songvault.core.scanner import ScanConfig, extract_songs, scan_music_folder

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ImportResult:
    scanned_files: int
    added_songs: int
    duplicates: int
    errors: int


class MusicLibraryError(RuntimeError):
    """Base error for MusicLibrary operations."""


class MusicLibraryNotReadyError(MusicLibraryError):
    """Raised when operations are attempted before the library is initialized."""


class MusicLibrary:
    """
    High-level facade for the SongVault music library.

    This is the surface outer layers (UI, IPC, extensions) talk to:
    - writes go through `LibraryDb`, one transaction each
    - cover files orphaned by removals are cleaned up after commit
    - imports use the scanner and skip files whose content hash is known

    Dependencies:
    - `LibraryDb` for persistence
    - `CoverCleaner` for post-commit file removal
    - `scanner` for tag extraction
    """

    def __init__(self, *, db: LibraryDb, cleaner: CoverCleaner | None = None) -> None:
        self._db = db
        self._cleaner = cleaner or CoverCleaner()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def db(self) -> LibraryDb:
        return self._db

    @property
    def cleaner(self) -> CoverCleaner:
        return self._cleaner

    async def initialize(self) -> None:
        """
        Prepare the library.

        Contract:
        - `LibraryDb` must already be open.
        - the schema is ensured here for convenience.
        """
        if not self._db.is_open:
            raise MusicLibraryError(
                "LibraryDb is not open. Open it before initializing MusicLibrary."
            )

        await self._db.ensure_schema()
        self._initialized = True

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise MusicLibraryNotReadyError("MusicLibrary is not initialized.")

    # -----------------------------------------------------------------------
    # Songs
    # -----------------------------------------------------------------------

    async def store(self, song: UpsertSong) -> bool:
        self._require_initialized()
        return await self._db.store(song)

    async def remove_song(self, song_id: str) -> RemovalResult:
        """
        Remove a song, purge what it orphaned, then delete orphaned cover files.

        File removal happens after commit and never fails the call; paths that
        could not be removed stay in `cleaner.pending`.
        """
        self._require_initialized()
        result = await self._db.remove_song(song_id)
        if result.cover_paths:
            failed = await self._cleaner.remove(result.cover_paths)
            if failed:
                logger.info(
                    "Song %s removed; %d cover file(s) left for retry", song_id, len(failed)
                )
        return result

    async def get_songs_by_options(
        self,
        options: SongFilter | Mapping[str, Any] | None = None,
        exclude_paths: Sequence[str] | None = None,
    ) -> list[SongRow]:
        self._require_initialized()
        return await self._db.get_songs_by_options(options, exclude_paths)

    async def get_entities_by_options(self, options: EntityFilter | Mapping[str, Any]) -> list[Any]:
        self._require_initialized()
        return await self._db.get_entities_by_options(options)

    async def search_all(
        self, term: str, exclude_paths: Sequence[str] | None = None
    ) -> SearchResult:
        self._require_initialized()
        return await self._db.search_all(term, exclude_paths)

    async def get_by_hash(self, content_hash: str) -> SongRow | None:
        self._require_initialized()
        return await self._db.get_by_hash(content_hash)

    async def update_song_cover(self, song_id: str, cover_high: str, cover_low: str) -> bool:
        self._require_initialized()
        return await self._db.update_song_cover(song_id, cover_high, cover_low)

    async def update_album_cover_if_missing(
        self, song_id: str, cover_high: str, cover_low: str
    ) -> bool:
        self._require_initialized()
        return await self._db.update_album_cover_if_missing(song_id, cover_high, cover_low)

    async def update_artist_details(self, artist: ArtistRow) -> int:
        self._require_initialized()
        return await self._db.update_artist_details(artist)

    async def get_default_cover_by_artist(self, artist_id: str) -> str | None:
        self._require_initialized()
        return await self._db.get_default_cover_by_artist(artist_id)

    # -----------------------------------------------------------------------
    # Playlists
    # -----------------------------------------------------------------------

    async def create_playlist(
        self, name: str, desc: str | None = None, cover_path: str | None = None
    ) -> str:
        self._require_initialized()
        return await self._db.create_playlist(name, desc, cover_path)

    async def get_playlist(self, playlist_id: str) -> PlaylistRow | None:
        self._require_initialized()
        return await self._db.get_playlist(playlist_id)

    async def add_to_playlist(self, playlist_id: str, *song_ids: str) -> int:
        self._require_initialized()
        return await self._db.add_to_playlist(playlist_id, *song_ids)

    async def remove_from_playlist(self, playlist_id: str, *song_ids: str) -> int:
        self._require_initialized()
        return await self._db.remove_from_playlist(playlist_id, *song_ids)

    async def remove_playlist(self, playlist_id: str) -> bool:
        self._require_initialized()
        return await self._db.remove_playlist(playlist_id)

    async def update_playlist_cover_path(self, playlist_id: str, cover_path: str | None) -> None:
        self._require_initialized()
        await self._db.update_playlist_cover_path(playlist_id, cover_path)

    # -----------------------------------------------------------------------
    # Song counts
    # -----------------------------------------------------------------------

    async def update_song_count_album(self) -> None:
        self._require_initialized()
        await self._db.update_song_count_album()

    async def update_song_count_artist(self) -> None:
        self._require_initialized()
        await self._db.update_song_count_artist()

    async def update_song_count_genre(self) -> None:
        self._require_initialized()
        await self._db.update_song_count_genre()

    async def update_song_count_playlist(self) -> None:
        self._require_initialized()
        await self._db.update_song_count_playlist()

    async def refresh_counts(self) -> None:
        self._require_initialized()
        await self._db.refresh_counts()

    # -----------------------------------------------------------------------
    # Import
    # -----------------------------------------------------------------------

    async def _store_new(self, songs: Iterable[UpsertSong]) -> tuple[int, int]:
        """Store songs whose content hash is unknown. Returns (added, duplicates)."""
        fresh: list[UpsertSong] = []
        seen_hashes: set[str] = set()
        duplicates = 0
        for song in songs:
            if song.hash and (
                song.hash in seen_hashes or await self._db.get_by_hash(song.hash) is not None
            ):
                logger.debug("Skipping duplicate %s (hash %s)", song.path, song.hash)
                duplicates += 1
                continue
            if song.hash:
                seen_hashes.add(song.hash)
            fresh.append(song)

        added = await self._db.store_many(fresh)
        if added:
            await self._db.refresh_counts()
        return added, duplicates

    async def import_files(self, paths: Sequence[Path], *, max_concurrency: int = 8) -> ImportResult:
        """Extract metadata from the given files and store the new ones."""
        self._require_initialized()
        result = await extract_songs(paths, max_concurrency=max_concurrency)
        added, duplicates = await self._store_new(result.songs)
        return ImportResult(
            scanned_files=len(result.songs) + len(result.issues),
            added_songs=added,
            duplicates=duplicates,
            errors=len(result.issues),
        )

    async def scan(self, config: ScanConfig) -> ImportResult:
        """Scan a folder and store every song not already in the library."""
        self._require_initialized()
        result = await scan_music_folder(config)
        added, duplicates = await self._store_new(result.songs)
        logger.info(
            "Scan of %s finished: %d added, %d duplicates, %d errors",
            config.root,
            added,
            duplicates,
            len(result.issues),
        )
        return ImportResult(
            scanned_files=len(result.songs) + len(result.issues),
            added_songs=added,
            duplicates=duplicates,
            errors=len(result.issues),
        )
