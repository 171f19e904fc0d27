#!/usr/bin/env python3
"""Folio - story library with versioned drafts.

Command line tools for inspecting and maintaining a library database.

Usage:
    python main.py universes                  # List universes
    python main.py tree UNIVERSE_ID           # Print the container/story tree
    python main.py versions STORY_ID          # List a story's versions
    python main.py snapshots VERSION_ID       # List a version's snapshots
    python main.py cleanup VERSION_ID KEEP    # Keep only the KEEP newest snapshots
    python main.py check                      # Audit hierarchy and pointer integrity
"""

import argparse
import logging
import sys
from pathlib import Path

from src.memory.library_database import LibraryDatabase
from src.utils.exceptions import ConfigError, FolioError
from src.utils.logging_config import log_context, log_performance, setup_logging

logger = logging.getLogger(__name__)


def _print_tree(db: LibraryDatabase, universe_id: str) -> None:
    """Print a universe as an indented tree, siblings in their stored order."""
    graph = db.build_hierarchy_graph(universe_id)

    def walk(node_id: str, indent: int) -> None:
        children = sorted(graph.successors(node_id), key=lambda n: graph.nodes[n]["order"])
        for child_id in children:
            data = graph.nodes[child_id]
            if data["kind"] == "container":
                label = f"[{data['container_type']}] {data['title']}"
            else:
                label = f"{data['title']} ({data['word_count']} words)"
            print(f"{'  ' * indent}{label}  <{child_id}>")
            walk(child_id, indent + 1)

    print(f"{graph.nodes[universe_id]['title']}  <{universe_id}>")
    walk(universe_id, 1)


def run_command(args: argparse.Namespace) -> int:
    """Run a parsed CLI command.

    Args:
        args: Parsed command line arguments.

    Returns:
        Process exit code.
    """
    from src.services import ServiceContainer
    from src.settings import Settings

    settings = Settings.load()
    db = LibraryDatabase(args.db or settings.get_database_path())

    with ServiceContainer(settings, db) as services, log_context(f"cli-{args.command}"):
        if args.command == "universes":
            for universe in services.container.list_universes():
                print(f"{universe.id}  {universe.name}")

        elif args.command == "tree":
            _print_tree(services.db, args.universe_id)

        elif args.command == "versions":
            story = services.story.get_story(args.story_id)
            for version in services.story.list_versions(story.id):
                marker = "*" if version.id == story.active_version_id else " "
                created = f"{version.created_at:%Y-%m-%d %H:%M}"
                print(f"{marker} {version.id}  {version.name}  ({created})")

        elif args.command == "snapshots":
            for snapshot in services.story.list_snapshots(args.version_id):
                words = len(snapshot.content.split())
                print(f"{snapshot.id}  {snapshot.created_at:%Y-%m-%d %H:%M:%S}  {words} words")

        elif args.command == "cleanup":
            deleted = services.story.cleanup_old_snapshots(args.version_id, args.keep)
            print(f"Deleted {deleted} snapshot(s)")

        elif args.command == "check":
            with log_performance(logger, "integrity_check"):
                issues = services.db.check_integrity()
            for issue in issues:
                print(f"{issue.kind:<16} {issue.subject_id}  {issue.message}")
            print(f"{len(issues)} issue(s) found")
            return 1 if issues else 0

    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(description="Folio - story library with versioned drafts")
    parser.add_argument(
        "--db",
        type=str,
        metavar="PATH",
        help="Library database path (default: database_path from settings)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: log_level from settings)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Log file path (default: output/logs/folio.log, use 'none' to disable)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("universes", help="List universes")
    tree = subparsers.add_parser("tree", help="Print a universe's container/story tree")
    tree.add_argument("universe_id")
    versions = subparsers.add_parser("versions", help="List a story's versions")
    versions.add_argument("story_id")
    snapshots = subparsers.add_parser("snapshots", help="List a version's snapshots")
    snapshots.add_argument("version_id")
    cleanup = subparsers.add_parser("cleanup", help="Keep only the newest snapshots of a version")
    cleanup.add_argument("version_id")
    cleanup.add_argument("keep", type=int)
    subparsers.add_parser("check", help="Audit hierarchy and pointer integrity")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    from src.settings import Settings

    try:
        settings = Settings.load()
    except ConfigError as e:
        print(f"Invalid settings: {e}", file=sys.stderr)
        return 2

    level = args.log_level or settings.log_level
    if args.log_file is None:
        log_file: str | Path | None = settings.get_log_file()
    else:
        log_file = None if args.log_file.lower() == "none" else args.log_file
    setup_logging(level=level, log_file=log_file)

    try:
        return run_command(args)
    except FolioError as e:
        logger.error("%s failed: %s", args.command, e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
