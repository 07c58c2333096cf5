"""
Typed filter model for song and entity queries.

Outer layers historically spoke in loose mappings such as::

    {"song": {"title": "love"}, "artist": {"artist_name": "Bob"}, "inclusive": True}

Here every category gets its own predicate dataclass with one field per
filterable column, and predicate combination is an explicit enum. The loose
form is still accepted through `SongFilter.from_options` /
`EntityFilter.from_options`, which reject unknown categories and columns
instead of silently dropping them.

Every predicate is a substring match (`LIKE '%value%'`), identifiers included.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, Mapping, Union

from songvault.core import CoreError

PredicateValue = Union[str, int]

# Keys of the loose mapping form that are metadata, not categories.
RESERVED_KEYS: frozenset[str] = frozenset({"inclusive", "sortBy"})


class InvalidFilterError(CoreError, ValueError):
    """Raised when a filter mapping names an unknown category, column or sort field."""


class Category(str, enum.Enum):
    SONG = "song"
    ALBUM = "album"
    ARTIST = "artist"
    GENRE = "genre"
    PLAYLIST = "playlist"

    @property
    def table(self) -> str:
        return _TABLES[self]

    @property
    def title_column(self) -> str:
        return _TITLE_COLUMNS[self]


_TABLES: dict[Category, str] = {
    Category.SONG: "allsongs",
    Category.ALBUM: "albums",
    Category.ARTIST: "artists",
    Category.GENRE: "genres",
    Category.PLAYLIST: "playlists",
}

_TITLE_COLUMNS: dict[Category, str] = {
    Category.SONG: "title",
    Category.ALBUM: "album_name",
    Category.ARTIST: "artist_name",
    Category.GENRE: "genre_name",
    Category.PLAYLIST: "playlist_name",
}


class Combine(enum.Enum):
    """How multiple predicates are joined."""

    ALL = "AND"
    ANY = "OR"

    @classmethod
    def from_inclusive(cls, inclusive: Any) -> Combine:
        return cls.ALL if inclusive else cls.ANY


class SortField(str, enum.Enum):
    TITLE = "title"
    ALBUM = "album"
    ARTIST = "artist"
    GENRE = "genre"
    PLAYLIST = "playlist"
    DATE_ADDED = "date_added"


@dataclass(frozen=True, slots=True)
class SortSpec:
    field: SortField = SortField.TITLE
    ascending: bool = True


def _col(name: str) -> Any:
    """Declare a predicate field whose DB column differs from the attribute name."""
    return field(default=None, metadata={"column": name})


class _Predicates:
    category: ClassVar[Category]

    def items(self) -> list[tuple[str, PredicateValue]]:
        """Return (column, value) pairs for every predicate that is set."""
        out: list[tuple[str, PredicateValue]] = []
        for f in fields(self):  # type: ignore[arg-type]
            value = getattr(self, f.name)
            if value is None:
                continue
            out.append((f.metadata.get("column", f.name), value))
        return out

    def __bool__(self) -> bool:
        return bool(self.items())

    @classmethod
    def columns(cls) -> dict[str, str]:
        """Map DB column name -> attribute name."""
        return {f.metadata.get("column", f.name): f.name for f in fields(cls)}  # type: ignore[arg-type]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Any:
        known = cls.columns()
        kwargs: dict[str, PredicateValue] = {}
        for column, value in data.items():
            attr = known.get(column)
            if attr is None:
                raise InvalidFilterError(
                    f"Unknown column {column!r} for category {cls.category.value!r}"
                )
            if isinstance(value, bool) or not isinstance(value, (str, int)):
                raise InvalidFilterError(
                    f"Predicate {cls.category.value}.{column} must be a string or integer"
                )
            kwargs[attr] = value
        return cls(**kwargs)


@dataclass(frozen=True, slots=True)
class SongPredicates(_Predicates):
    category: ClassVar[Category] = Category.SONG

    id: PredicateValue | None = _col("_id")
    path: PredicateValue | None = None
    title: PredicateValue | None = None
    hash: PredicateValue | None = None
    url: PredicateValue | None = None
    playback_url: PredicateValue | None = _col("playbackUrl")
    codec: PredicateValue | None = None
    container: PredicateValue | None = None
    date: PredicateValue | None = None
    year: PredicateValue | None = None
    provider_extension: PredicateValue | None = None
    type: PredicateValue | None = None


@dataclass(frozen=True, slots=True)
class AlbumPredicates(_Predicates):
    category: ClassVar[Category] = Category.ALBUM

    album_id: PredicateValue | None = None
    album_name: PredicateValue | None = None
    album_artist: PredicateValue | None = None
    year: PredicateValue | None = None


@dataclass(frozen=True, slots=True)
class ArtistPredicates(_Predicates):
    category: ClassVar[Category] = Category.ARTIST

    artist_id: PredicateValue | None = None
    artist_name: PredicateValue | None = None
    artist_mbid: PredicateValue | None = None


@dataclass(frozen=True, slots=True)
class GenrePredicates(_Predicates):
    category: ClassVar[Category] = Category.GENRE

    genre_id: PredicateValue | None = None
    genre_name: PredicateValue | None = None


@dataclass(frozen=True, slots=True)
class PlaylistPredicates(_Predicates):
    category: ClassVar[Category] = Category.PLAYLIST

    playlist_id: PredicateValue | None = None
    playlist_name: PredicateValue | None = None
    playlist_desc: PredicateValue | None = None


AnyPredicates = Union[
    SongPredicates, AlbumPredicates, ArtistPredicates, GenrePredicates, PlaylistPredicates
]

PREDICATE_TYPES: dict[Category, type] = {
    Category.SONG: SongPredicates,
    Category.ALBUM: AlbumPredicates,
    Category.ARTIST: ArtistPredicates,
    Category.GENRE: GenrePredicates,
    Category.PLAYLIST: PlaylistPredicates,
}


def _parse_category(key: str) -> Category:
    try:
        return Category(key)
    except ValueError:
        raise InvalidFilterError(f"Unknown filter category {key!r}") from None


def _parse_sort(data: Any) -> SortSpec | None:
    if data is None:
        return None
    if not isinstance(data, Mapping):
        raise InvalidFilterError("sortBy must be a mapping with 'field' and 'ascending'")
    try:
        sort_field = SortField(data.get("field", SortField.TITLE.value))
    except ValueError:
        raise InvalidFilterError(f"Unknown sort field {data.get('field')!r}") from None
    return SortSpec(field=sort_field, ascending=bool(data.get("ascending", True)))


@dataclass(frozen=True, slots=True)
class SongFilter:
    """
    Filter over songs, spanning the song table and its joined entity tables.

    With no predicates set the query returns every song.
    """

    song: SongPredicates | None = None
    album: AlbumPredicates | None = None
    artist: ArtistPredicates | None = None
    genre: GenrePredicates | None = None
    playlist: PlaylistPredicates | None = None
    combine: Combine = Combine.ANY
    sort: SortSpec | None = None

    def predicates(self) -> list[tuple[Category, str, PredicateValue]]:
        out: list[tuple[Category, str, PredicateValue]] = []
        for group in (self.song, self.album, self.artist, self.genre, self.playlist):
            if group is None:
                continue
            for column, value in group.items():
                out.append((group.category, column, value))
        return out

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | None) -> SongFilter:
        """Parse the loose mapping form (`inclusive` / `sortBy` are metadata keys)."""
        if not options:
            return cls()
        groups: dict[str, Any] = {}
        for key, value in options.items():
            if key in RESERVED_KEYS:
                continue
            category = _parse_category(key)
            if not isinstance(value, Mapping):
                raise InvalidFilterError(f"Predicates for {key!r} must be a mapping")
            groups[category.value] = PREDICATE_TYPES[category].from_mapping(value)
        return cls(
            **groups,
            combine=Combine.from_inclusive(options.get("inclusive")),
            sort=_parse_sort(options.get("sortBy")),
        )


@dataclass(frozen=True, slots=True)
class EntityFilter:
    """
    Filter over one entity table (album, artist, genre or playlist).

    `match_all_rows` is the "return every row of this category" shortcut;
    predicates are ignored when it is set.
    """

    category: Category
    predicates: AnyPredicates | None = None
    match_all_rows: bool = False
    combine: Combine = Combine.ANY
    ascending: bool = True

    def __post_init__(self) -> None:
        if self.category is Category.SONG:
            raise InvalidFilterError("Entity filters do not cover songs; use SongFilter")
        if self.predicates is not None and self.predicates.category is not self.category:
            raise InvalidFilterError(
                f"{type(self.predicates).__name__} cannot filter {self.category.value!r}"
            )

    @classmethod
    def of(cls, predicates: AnyPredicates, *, combine: Combine = Combine.ANY) -> EntityFilter:
        return cls(category=predicates.category, predicates=predicates, combine=combine)

    @classmethod
    def all_rows(cls, category: Category, *, ascending: bool = True) -> EntityFilter:
        return cls(category=category, match_all_rows=True, ascending=ascending)

    def items(self) -> list[tuple[str, PredicateValue]]:
        if self.match_all_rows or self.predicates is None:
            return []
        return self.predicates.items()

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> EntityFilter:
        """
        Parse `{"album": {...}}` or `{"album": True}` plus optional `inclusive`
        and `sortBy`.

        Exactly one category key is allowed. Entities always sort by their
        title column, so only `sortBy.ascending` is used.
        """
        keys = [k for k in options if k not in RESERVED_KEYS]
        if len(keys) != 1:
            raise InvalidFilterError(
                f"Entity filter needs exactly one category, got {sorted(keys)!r}"
            )
        category = _parse_category(keys[0])
        value = options[keys[0]]
        sort = _parse_sort(options.get("sortBy"))
        ascending = sort.ascending if sort is not None else True
        if value is True:
            return cls.all_rows(category, ascending=ascending)
        if not isinstance(value, Mapping):
            raise InvalidFilterError(f"Predicates for {keys[0]!r} must be a mapping or true")
        return cls(
            category=category,
            predicates=PREDICATE_TYPES[category].from_mapping(value),
            combine=Combine.from_inclusive(options.get("inclusive")),
            ascending=ascending,
        )
