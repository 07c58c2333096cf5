"""
SongVault - a local music library data store.

SongVault persists songs together with their albums, artists, genres and
playlists in SQLite, answers filtered queries over them and keeps shared
entities reference-counted as songs come and go.
"""

__version__ = "0.1.0"
__author__ = "SongVault Contributors"
__license__ = "GPL-2.0"

from songvault.core.library import MusicLibrary
from songvault.core.library_db import LibraryDb

__all__ = ["LibraryDb", "MusicLibrary", "__version__"]
