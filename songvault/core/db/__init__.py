"""
Internal DB subpackage for SongVault.

This package splits the data-store engine into focused units (models, schema,
entity resolution, bridges, query building, cascade delete and query groups)
while keeping `LibraryDb` as the single public interface that the rest of the
codebase imports.

Re-exports here are primarily for convenience inside the `core` package.
External code should continue to import `LibraryDb` from `songvault.core.library_db`.
"""

from __future__ import annotations

# Filters
from .filters import (
    AlbumPredicates,
    ArtistPredicates,
    Category,
    Combine,
    EntityFilter,
    GenrePredicates,
    InvalidFilterError,
    PlaylistPredicates,
    SongFilter,
    SongPredicates,
    SortField,
    SortSpec,
)

# Models / DTOs
from .models import (
    AlbumRow,
    ArtistRow,
    GenreRow,
    PlaylistRow,
    RemovalResult,
    SearchResult,
    SongRow,
    UpsertAlbum,
    UpsertSong,
)

# Schema
from .schema import ensure_schema, migrate

__all__ = [
    # filters
    "AlbumPredicates",
    "ArtistPredicates",
    "Category",
    "Combine",
    "EntityFilter",
    "GenrePredicates",
    "InvalidFilterError",
    "PlaylistPredicates",
    "SongFilter",
    "SongPredicates",
    "SortField",
    "SortSpec",
    # models
    "AlbumRow",
    "ArtistRow",
    "GenreRow",
    "PlaylistRow",
    "RemovalResult",
    "SearchResult",
    "SongRow",
    "UpsertAlbum",
    "UpsertSong",
    # schema
    "ensure_schema",
    "migrate",
]
