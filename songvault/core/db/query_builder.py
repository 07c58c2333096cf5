"""
SQL construction for filtered song and entity queries.

Design:
- Builders are pure: they take typed filters and return SQL text plus bound
  parameters. Nothing here touches a connection.
- Table and column names only ever come from the filter dataclasses (a fixed
  whitelist). Caller values are always bound as `%value%` parameters.
- Song queries return one row per song. Artists and genres of each song are
  aggregated into JSON arrays; the matching itself happens in a subquery so a
  song matched through one artist still reports all of its artists.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from songvault.core.db.filters import Category, Combine, EntityFilter, SongFilter
from songvault.core.db.ordering import entities_order_clause, songs_order_clause


@dataclass(frozen=True, slots=True)
class BuiltQuery:
    sql: str
    params: tuple[Any, ...]


# Joins from the song table to every entity table, using bare table names so
# that predicates can be written as `<table>.<column>`.
_MATCH_JOINS = """
    LEFT JOIN album_bridge ON album_bridge.song = allsongs._id
    LEFT JOIN albums ON albums.album_id = album_bridge.album
    LEFT JOIN artists_bridge ON artists_bridge.song = allsongs._id
    LEFT JOIN artists ON artists.artist_id = artists_bridge.artist
    LEFT JOIN genre_bridge ON genre_bridge.song = allsongs._id
    LEFT JOIN genres ON genres.genre_id = genre_bridge.genre
    LEFT JOIN playlist_bridge ON playlist_bridge.song = allsongs._id
    LEFT JOIN playlists ON playlists.playlist_id = playlist_bridge.playlist
"""

_SONG_SELECT = """
    SELECT
        s.*,
        al.album_id AS al_album_id,
        al.album_name AS al_album_name,
        al.album_coverPath_high AS al_album_coverPath_high,
        al.album_coverPath_low AS al_album_coverPath_low,
        al.album_song_count AS al_album_song_count,
        al.album_artist AS al_album_artist,
        al.year AS al_year,
        json_group_array(json_object(
            'artist_id', ar.artist_id,
            'artist_name', ar.artist_name,
            'artist_mbid', ar.artist_mbid,
            'artist_coverPath', ar.artist_coverPath,
            'artist_song_count', ar.artist_song_count
        )) AS artists_json,
        json_group_array(json_object(
            'genre_id', g.genre_id,
            'genre_name', g.genre_name,
            'genre_song_count', g.genre_song_count
        )) AS genres_json
    FROM allsongs s
    LEFT JOIN album_bridge ab ON ab.song = s._id
    LEFT JOIN albums al ON al.album_id = ab.album
    LEFT JOIN artists_bridge arb ON arb.song = s._id
    LEFT JOIN artists ar ON ar.artist_id = arb.artist
    LEFT JOIN genre_bridge gb ON gb.song = s._id
    LEFT JOIN genres g ON g.genre_id = gb.genre
    LEFT JOIN playlist_bridge pb ON pb.song = s._id
    LEFT JOIN playlists pl ON pl.playlist_id = pb.playlist
"""

# Exact lookups used by get-by-id / get-by-hash.
_LOOKUP_COLUMNS: frozenset[str] = frozenset({"_id", "hash", "path"})


def like_pattern(value: Any) -> str:
    """Wrap a predicate value for substring matching."""
    return f"%{value}%"


def _where_predicates(
    predicates: Sequence[tuple[Category, str, Any]], combine: Combine
) -> tuple[str, list[Any]]:
    clauses: list[str] = []
    params: list[Any] = []
    for category, column, value in predicates:
        clauses.append(f"{category.table}.{column} LIKE ?")
        params.append(like_pattern(value))
    if not clauses:
        return "", []
    return "(" + f" {combine.value} ".join(clauses) + ")", params


def _exclude_clause(exclude_paths: Sequence[str] | None) -> tuple[str, list[Any]]:
    paths = [p for p in (exclude_paths or ()) if p]
    if not paths:
        return "", []
    placeholders = ", ".join("?" for _ in paths)
    # Songs without a path (streams) are never excluded.
    return f"(s.path IS NULL OR s.path NOT IN ({placeholders}))", list(paths)


def build_song_query(
    song_filter: SongFilter | None = None, exclude_paths: Sequence[str] | None = None
) -> BuiltQuery:
    """
    Build the grouped song query for a filter.

    Zero predicates means no WHERE on the match side: every song (minus the
    excluded paths) is returned.
    """
    song_filter = song_filter or SongFilter()

    conditions: list[str] = []
    params: list[Any] = []

    match_sql, match_params = _where_predicates(song_filter.predicates(), song_filter.combine)
    if match_sql:
        conditions.append(
            f"s._id IN (SELECT allsongs._id FROM allsongs {_MATCH_JOINS} WHERE {match_sql})"
        )
        params.extend(match_params)

    exclude_sql, exclude_params = _exclude_clause(exclude_paths)
    if exclude_sql:
        conditions.append(exclude_sql)
        params.extend(exclude_params)

    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
    sql = f"{_SONG_SELECT} {where} GROUP BY s._id {songs_order_clause(song_filter.sort)};"
    return BuiltQuery(sql=sql, params=tuple(params))


def build_song_lookup(column: str, value: Any) -> BuiltQuery:
    """Build an exact-match song query on a whitelisted column."""
    if column not in _LOOKUP_COLUMNS:
        raise ValueError(f"Unsupported lookup column: {column!r}")
    sql = f"{_SONG_SELECT} WHERE s.{column} = ? GROUP BY s._id ORDER BY s._id ASC;"
    return BuiltQuery(sql=sql, params=(value,))


def build_entity_query(entity_filter: EntityFilter) -> BuiltQuery:
    """
    Build a single-table query for albums, artists, genres or playlists.

    `EntityFilter.all_rows()` skips predicates entirely.
    """
    category = entity_filter.category
    predicates = [(category, column, value) for column, value in entity_filter.items()]
    where_sql, params = _where_predicates(predicates, entity_filter.combine)
    where = f"WHERE {where_sql}" if where_sql else ""
    order = entities_order_clause(category, ascending=entity_filter.ascending)
    return BuiltQuery(sql=f"SELECT * FROM {category.table} {where} {order};", params=tuple(params))
