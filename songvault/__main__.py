"""
SongVault - command line entry point

Run with: python -m songvault
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

from songvault.config import LibraryConfig, load_library_config
from songvault.core import CoreError
from songvault.core.library import MusicLibrary
from songvault.core.library_db import LibraryDb
from songvault.core.scanner import ScanConfig


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # Reduce noise from third-party libraries
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="songvault",
        description="SongVault - local music library data store",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose (debug) logging",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to a library.toml (default: bundled defaults)",
    )

    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Database file (overrides the config's db_path)",
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Scan a folder and store new songs")
    scan.add_argument("folder", type=Path)

    search = sub.add_parser("search", help="Search songs, albums, artists and genres")
    search.add_argument("term")
    search.add_argument(
        "--exclude", action="append", default=[], help="Song path to leave out (repeatable)"
    )

    remove = sub.add_parser("remove", help="Remove a song by id")
    remove.add_argument("song_id")

    sub.add_parser("recount", help="Recompute cached song counts")

    return parser.parse_args(argv)


async def run_command(args: argparse.Namespace, config: LibraryConfig) -> None:
    """Open the library, run one command, close the library."""
    logger = logging.getLogger(__name__)

    db = LibraryDb.from_config(config)
    await db.open()
    try:
        library = MusicLibrary(db=db)
        await library.initialize()

        if args.command == "scan":
            result = await library.scan(
                ScanConfig(
                    root=args.folder,
                    follow_symlinks=config.scan_follow_symlinks,
                    max_concurrency=config.scan_max_concurrency,
                )
            )
            print(
                f"scanned={result.scanned_files} added={result.added_songs} "
                f"duplicates={result.duplicates} errors={result.errors}"
            )
        elif args.command == "search":
            found = await library.search_all(args.term, args.exclude)
            for song in found.songs:
                print(f"song\t{song.id}\t{song.title}\t{song.path or song.url or ''}")
            for album in found.albums:
                print(f"album\t{album.album_id}\t{album.album_name}")
            for artist in found.artists:
                print(f"artist\t{artist.artist_id}\t{artist.artist_name}")
            for genre in found.genres:
                print(f"genre\t{genre.genre_id}\t{genre.genre_name}")
        elif args.command == "remove":
            removed = await library.remove_song(args.song_id)
            if not removed.removed:
                logger.warning("No song with id %s", args.song_id)
            else:
                print(f"removed {args.song_id}, {len(removed.cover_paths)} cover file(s) purged")
        elif args.command == "recount":
            await library.refresh_counts()
    finally:
        await db.close()


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the application."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose)

    logger = logging.getLogger(__name__)

    config = load_library_config(args.config)
    if args.db is not None:
        config = replace(config, db_path=args.db)

    try:
        asyncio.run(run_command(args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except CoreError as e:
        logger.error("%s", e)
        return 1
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
