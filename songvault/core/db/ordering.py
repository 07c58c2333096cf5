"""
Shared ORDER BY clause helpers for song and entity queries.

These helpers centralize the translation from higher-level sort keys into
SQL snippets (including COLLATE handling) so the logic doesn't get duplicated
across query modules.

Important:
- The returned strings are *static SQL fragments* selected from a small
  whitelist. Do NOT concatenate user input into ORDER BY.
"""

from __future__ import annotations

from songvault.core.db.filters import Category, SortField, SortSpec

# Song queries alias the joined tables as s/al/ar/g/pl and GROUP BY s._id,
# so multi-valued joins are sorted by their smallest value.
_SONG_SORT_EXPRESSIONS: dict[SortField, str] = {
    SortField.TITLE: "s.title COLLATE NOCASE",
    SortField.ALBUM: "al.album_name COLLATE NOCASE",
    SortField.ARTIST: "MIN(ar.artist_name) COLLATE NOCASE",
    SortField.GENRE: "MIN(g.genre_name) COLLATE NOCASE",
    SortField.PLAYLIST: "MIN(pl.playlist_name) COLLATE NOCASE",
    SortField.DATE_ADDED: "s.date_added",
}


def songs_order_clause(sort: SortSpec | None) -> str:
    """
    Return an ORDER BY clause for grouped song queries.

    Without a sort spec the order is left to SQLite (GROUP BY on the song id).
    """
    if sort is None:
        return ""
    direction = "ASC" if sort.ascending else "DESC"
    expression = _SONG_SORT_EXPRESSIONS.get(sort.field, _SONG_SORT_EXPRESSIONS[SortField.TITLE])
    # Song id as tiebreaker keeps paging stable.
    return f"ORDER BY {expression} {direction}, s._id ASC"


def entities_order_clause(category: Category, *, ascending: bool = True) -> str:
    """Return an ORDER BY clause on the category's title column."""
    direction = "ASC" if ascending else "DESC"
    return f"ORDER BY {category.table}.{category.title_column} COLLATE NOCASE {direction}"
