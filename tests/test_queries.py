"""
Tests for filtered song/entity queries.

These tests verify:
- parsing of the loose option mappings into typed filters
- SQL produced by the pure query builders
- inclusive (AND) vs union (OR) semantics against a real database
- substring matching, case sensitivity, exclusion lists and sorting
"""

from __future__ import annotations

import pytest

from songvault.core.db.filters import (
    AlbumPredicates,
    ArtistPredicates,
    Category,
    Combine,
    EntityFilter,
    InvalidFilterError,
    SongFilter,
    SongPredicates,
    SortField,
    SortSpec,
)
from songvault.core.db.models import UpsertAlbum, UpsertSong
from songvault.core.db.ordering import entities_order_clause, songs_order_clause
from songvault.core.db.query_builder import build_entity_query, build_song_lookup, build_song_query
from songvault.core.library_db import LibraryDb


# =============================================================================
# Option parsing
# =============================================================================


class TestSongFilterParsing:
    def test_empty_options(self) -> None:
        f = SongFilter.from_options(None)
        assert f.predicates() == []
        assert f.combine is Combine.ANY
        assert f.sort is None

    def test_categories_and_columns(self) -> None:
        f = SongFilter.from_options(
            {
                "song": {"title": "love", "playbackUrl": "http"},
                "artist": {"artist_name": "Bob"},
                "inclusive": True,
            }
        )
        assert f.combine is Combine.ALL
        assert f.song == SongPredicates(title="love", playback_url="http")
        assert f.artist == ArtistPredicates(artist_name="Bob")
        assert sorted(f.predicates()) == sorted(
            [
                (Category.SONG, "title", "love"),
                (Category.SONG, "playbackUrl", "http"),
                (Category.ARTIST, "artist_name", "Bob"),
            ]
        )

    def test_song_id_maps_to_id_column(self) -> None:
        f = SongFilter.from_options({"song": {"_id": "abc"}})
        assert f.song == SongPredicates(id="abc")
        assert f.predicates() == [(Category.SONG, "_id", "abc")]

    def test_sort_by(self) -> None:
        f = SongFilter.from_options({"sortBy": {"field": "date_added", "ascending": False}})
        assert f.sort == SortSpec(field=SortField.DATE_ADDED, ascending=False)

    def test_unknown_category_rejected(self) -> None:
        with pytest.raises(InvalidFilterError):
            SongFilter.from_options({"composer": {"name": "Bach"}})

    def test_unknown_column_rejected(self) -> None:
        with pytest.raises(InvalidFilterError):
            SongFilter.from_options({"song": {"colour": "blue"}})

    def test_non_scalar_value_rejected(self) -> None:
        with pytest.raises(InvalidFilterError):
            SongFilter.from_options({"song": {"title": ["a", "b"]}})
        with pytest.raises(InvalidFilterError):
            SongFilter.from_options({"song": {"year": True}})

    def test_unknown_sort_field_rejected(self) -> None:
        with pytest.raises(InvalidFilterError):
            SongFilter.from_options({"sortBy": {"field": "bpm"}})

    def test_invalid_filter_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            SongFilter.from_options({"song": "title"})


class TestEntityFilterParsing:
    def test_all_rows(self) -> None:
        f = EntityFilter.from_options({"album": True})
        assert f.category is Category.ALBUM
        assert f.match_all_rows is True
        assert f.items() == []

    def test_predicates(self) -> None:
        f = EntityFilter.from_options({"artist": {"artist_name": "x"}, "inclusive": True})
        assert f.category is Category.ARTIST
        assert f.combine is Combine.ALL
        assert f.items() == [("artist_name", "x")]

    def test_sort_direction(self) -> None:
        f = EntityFilter.from_options({"artist": True, "sortBy": {"ascending": False}})
        assert f.match_all_rows is True
        assert f.ascending is False

        f = EntityFilter.from_options(
            {"album": {"album_name": "x"}, "sortBy": {"ascending": False}}
        )
        assert f.ascending is False
        assert EntityFilter.from_options({"album": True}).ascending is True

    def test_exactly_one_category(self) -> None:
        with pytest.raises(InvalidFilterError):
            EntityFilter.from_options({"album": True, "artist": True})
        with pytest.raises(InvalidFilterError):
            EntityFilter.from_options({"inclusive": True})

    def test_song_category_rejected(self) -> None:
        with pytest.raises(InvalidFilterError):
            EntityFilter.from_options({"song": True})

    def test_mismatched_predicates_rejected(self) -> None:
        with pytest.raises(InvalidFilterError):
            EntityFilter(category=Category.GENRE, predicates=AlbumPredicates(album_name="x"))


# =============================================================================
# Pure SQL builders
# =============================================================================


class TestQueryBuilder:
    def test_no_predicates_has_no_where(self) -> None:
        q = build_song_query(SongFilter())
        assert "WHERE" not in q.sql
        assert "GROUP BY s._id" in q.sql
        assert q.params == ()

    def test_union_predicates(self) -> None:
        q = build_song_query(
            SongFilter(
                song=SongPredicates(title="a"),
                album=AlbumPredicates(album_name="b"),
            )
        )
        assert "(allsongs.title LIKE ? OR albums.album_name LIKE ?)" in q.sql
        assert q.params == ("%a%", "%b%")

    def test_inclusive_predicates(self) -> None:
        q = build_song_query(
            SongFilter(song=SongPredicates(title="a", codec="flac"), combine=Combine.ALL)
        )
        assert "allsongs.title LIKE ? AND allsongs.codec LIKE ?" in q.sql

    def test_exclusion_is_anded_after_predicates(self) -> None:
        q = build_song_query(SongFilter(song=SongPredicates(title="a")), ["/x.mp3", "", "/y.mp3"])
        assert "s.path IS NULL OR s.path NOT IN (?, ?)" in q.sql
        assert q.sql.index("s._id IN") < q.sql.index("NOT IN")
        assert q.params == ("%a%", "/x.mp3", "/y.mp3")

    def test_values_are_bound_not_inlined(self) -> None:
        q = build_song_query(SongFilter(song=SongPredicates(title="'; DROP TABLE allsongs; --")))
        assert "DROP TABLE" not in q.sql

    def test_lookup_whitelist(self) -> None:
        assert build_song_lookup("hash", "h").params == ("h",)
        with pytest.raises(ValueError):
            build_song_lookup("title", "x")

    def test_entity_query(self) -> None:
        q = build_entity_query(EntityFilter.of(ArtistPredicates(artist_name="dj")))
        assert q.sql.startswith("SELECT * FROM artists WHERE (artists.artist_name LIKE ?)")
        assert "ORDER BY artists.artist_name COLLATE NOCASE ASC" in q.sql
        assert q.params == ("%dj%",)

    def test_order_clauses(self) -> None:
        assert songs_order_clause(None) == ""
        assert songs_order_clause(SortSpec(SortField.ARTIST, ascending=False)) == (
            "ORDER BY MIN(ar.artist_name) COLLATE NOCASE DESC, s._id ASC"
        )
        assert entities_order_clause(Category.PLAYLIST, ascending=False) == (
            "ORDER BY playlists.playlist_name COLLATE NOCASE DESC"
        )


# =============================================================================
# Query semantics against a database
# =============================================================================


SONGS = [
    UpsertSong(
        id="s1",
        title="Love Song",
        path="/music/a/love.mp3",
        artists=("Bob",),
        album=UpsertAlbum(album_name="Blue"),
        genres=("Jazz",),
    ),
    UpsertSong(
        id="s2",
        title="Hate Song",
        path="/music/b/hate.mp3",
        artists=("Alice", "Bob"),
        album=UpsertAlbum(album_name="Red"),
        genres=("Rock",),
    ),
    UpsertSong(
        id="s3",
        title="Stream",
        url="https://radio.example/stream",
        type="URL",
        artists=("Carol",),
    ),
]


class TestQuerySemantics:
    @pytest.fixture
    async def db(self) -> LibraryDb:
        db = LibraryDb(":memory:")
        await db.open()
        await db.ensure_schema()
        await db.store_many(SONGS)
        yield db
        await db.close()

    async def test_no_predicates_returns_everything(self, db: LibraryDb) -> None:
        songs = await db.get_songs_by_options({})
        assert sorted(s.id for s in songs) == ["s1", "s2", "s3"]

    async def test_union_semantics(self, db: LibraryDb) -> None:
        songs = await db.get_songs_by_options(
            {"song": {"title": "Love"}, "album": {"album_name": "Red"}}
        )
        assert sorted(s.id for s in songs) == ["s1", "s2"]

    async def test_inclusive_semantics(self, db: LibraryDb) -> None:
        songs = await db.get_songs_by_options(
            {"song": {"title": "Song"}, "artist": {"artist_name": "Alice"}, "inclusive": True}
        )
        assert [s.id for s in songs] == ["s2"]

    async def test_substring_match_is_case_insensitive_by_default(self, db: LibraryDb) -> None:
        songs = await db.get_songs_by_options({"song": {"title": "love"}})
        assert [s.id for s in songs] == ["s1"]

    async def test_match_through_one_artist_keeps_all_artists(self, db: LibraryDb) -> None:
        (song,) = await db.get_songs_by_options({"artist": {"artist_name": "Alice"}})
        assert song.id == "s2"
        assert sorted(a.artist_name for a in song.artists) == ["Alice", "Bob"]
        assert [g.genre_name for g in song.genres] == ["Rock"]
        assert song.album is not None and song.album.album_name == "Red"

    async def test_one_row_per_song(self, db: LibraryDb) -> None:
        playlist_id = await db.create_playlist("P1")
        other_id = await db.create_playlist("P2")
        await db.add_to_playlist(playlist_id, "s2")
        await db.add_to_playlist(other_id, "s2")

        songs = await db.get_songs_by_options({"artist": {"artist_name": "o"}})
        assert sorted(s.id for s in songs) == ["s1", "s2", "s3"]

    async def test_playlist_predicate(self, db: LibraryDb) -> None:
        playlist_id = await db.create_playlist("Evening")
        await db.add_to_playlist(playlist_id, "s1")

        songs = await db.get_songs_by_options({"playlist": {"playlist_name": "even"}})
        assert [s.id for s in songs] == ["s1"]

    async def test_exclude_paths(self, db: LibraryDb) -> None:
        songs = await db.get_songs_by_options({}, exclude_paths=["/music/a/love.mp3"])
        assert sorted(s.id for s in songs) == ["s2", "s3"]

    async def test_exclusion_never_drops_pathless_songs(self, db: LibraryDb) -> None:
        songs = await db.get_songs_by_options(
            {"song": {"title": "Stream"}}, exclude_paths=["/music/b/hate.mp3"]
        )
        assert [s.id for s in songs] == ["s3"]

    async def test_sort_by_title(self, db: LibraryDb) -> None:
        asc = await db.get_songs_by_options({"sortBy": {"field": "title", "ascending": True}})
        desc = await db.get_songs_by_options({"sortBy": {"field": "title", "ascending": False}})
        assert [s.title for s in asc] == ["Hate Song", "Love Song", "Stream"]
        assert [s.title for s in desc] == ["Stream", "Love Song", "Hate Song"]

    async def test_typed_filter(self, db: LibraryDb) -> None:
        songs = await db.get_songs_by_options(
            SongFilter(song=SongPredicates(type="URL"), sort=SortSpec(SortField.TITLE))
        )
        assert [s.id for s in songs] == ["s3"]
        assert songs[0].url == "https://radio.example/stream"
        assert songs[0].album is None

    async def test_entities_all_rows_sorted(self, db: LibraryDb) -> None:
        artists = await db.get_entities_by_options({"artist": True})
        assert [a.artist_name for a in artists] == ["Alice", "Bob", "Carol"]

    async def test_entities_by_predicate(self, db: LibraryDb) -> None:
        albums = await db.get_entities_by_options({"album": {"album_name": "e"}})
        assert [a.album_name for a in albums] == ["Blue", "Red"]

    async def test_entities_sorted_descending(self, db: LibraryDb) -> None:
        artists = await db.get_entities_by_options({"artist": True, "sortBy": {"ascending": False}})
        assert [a.artist_name for a in artists] == ["Carol", "Bob", "Alice"]

        albums = await db.get_entities_by_options(
            {"album": {"album_name": "e"}, "sortBy": {"ascending": False}}
        )
        assert [a.album_name for a in albums] == ["Red", "Blue"]

    async def test_search_all(self, db: LibraryDb) -> None:
        found = await db.search_all("b")
        assert sorted(s.id for s in found.songs) == ["s2"]
        assert [a.album_name for a in found.albums] == ["Blue"]
        assert [a.artist_name for a in found.artists] == ["Bob"]
        assert found.genres == ()


class TestCaseSensitiveLike:
    async def test_case_sensitive_matching(self) -> None:
        db = LibraryDb(":memory:", case_sensitive_like=True)
        await db.open()
        await db.ensure_schema()
        try:
            await db.store_many(SONGS)
            assert await db.get_songs_by_options({"song": {"title": "love"}}) == []
            songs = await db.get_songs_by_options({"song": {"title": "Love"}})
            assert [s.id for s in songs] == ["s1"]
        finally:
            await db.close()
