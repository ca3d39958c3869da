"""Command-line interface for Email Sync Engine.

This module provides the main entry point for the CLI application.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import structlog

from email_sync_engine import __version__
from email_sync_engine.config import Settings, get_settings
from email_sync_engine.engine import MailSyncEngine, build_cache
from email_sync_engine.gmail.client import GmailClient
from email_sync_engine.models import LabelNode
from email_sync_engine.profiles import Profile, StaticProfileDirectory

logger = structlog.get_logger()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="email-sync", description="Email Sync Engine")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="List messages for a Gmail query")
    list_parser.add_argument(
        "--query",
        default=None,
        help="Gmail search query (default: settings inbox_query)",
    )
    list_parser.add_argument("--limit", type=int, default=None, help="Page size")
    list_parser.add_argument(
        "--pages",
        type=int,
        default=1,
        help="Number of pages to load (later pages use the continuation token)",
    )
    list_parser.add_argument(
        "--refresh",
        action="store_true",
        help="Bypass the cache for the first page",
    )

    thread_parser = subparsers.add_parser("thread", help="Show a reconstructed conversation")
    thread_parser.add_argument("thread_id", help="Gmail thread id")
    thread_parser.add_argument(
        "--full",
        action="store_true",
        help="Print cleaned bodies instead of previews",
    )

    labels_parser = subparsers.add_parser("labels", help="Show unread counts per label")
    labels_parser.add_argument("--top", type=int, default=None, help="Number of root labels")

    cache_parser = subparsers.add_parser("cache", help="Manage the local cache")
    cache_sub = cache_parser.add_subparsers(dest="cache_command", required=True)
    cache_sub.add_parser("clear", help="Remove every cached entry")

    return parser


def _profile_directory(settings: Settings) -> StaticProfileDirectory:
    profiles: list[Profile] = []
    if settings.active_profile_id:
        profiles.append(
            Profile(
                profile_id=settings.active_profile_id,
                name=settings.active_profile_name or settings.active_profile_id,
            )
        )
    for name in settings.out_of_office_profiles:
        profiles.append(Profile(profile_id=f"ooo:{name}", name=name, is_out_of_office=True))
    return StaticProfileDirectory(profiles, active_profile_id=settings.active_profile_id)


async def _open_engine(settings: Settings) -> MailSyncEngine:
    gmail = GmailClient(settings)
    await gmail.authenticate()
    return MailSyncEngine(gmail, _profile_directory(settings), settings)


async def _cmd_list(args: argparse.Namespace) -> int:
    settings = get_settings()
    engine = await _open_engine(settings)
    query = args.query or settings.inbox_query

    try:
        page = await engine.fetch_list(query, force_refresh=args.refresh, max_results=args.limit)
        messages = list(page.messages)
        for _ in range(args.pages - 1):
            if not page.next_page_token:
                break
            page = await engine.fetch_list(
                query, page_token=page.next_page_token, max_results=args.limit
            )
            messages.extend(page.messages)
    finally:
        engine.close()

    for m in messages:
        state = "UNREAD" if not m.is_read else "READ"
        star = "*" if m.is_starred else " "
        print(f"{state}\t{star}\t{m.date.isoformat()}\t{m.sender}\t{m.subject}")

    print(f"\n{len(messages)} messages (estimate {page.result_size_estimate})")
    return 0


async def _cmd_thread(args: argparse.Namespace) -> int:
    settings = get_settings()
    engine = await _open_engine(settings)
    try:
        view = await engine.open_thread(args.thread_id)
    finally:
        engine.close()

    if not view.messages:
        print(f"No messages found for thread {args.thread_id}")
        return 1

    for m in view.messages:
        print(f"--- {m.date.isoformat()} {m.sender}")
        print(f"Subject: {m.subject}")
        print(m.body if args.full else m.preview)
        print()

    if view.attachments:
        print(f"{view.attachment_count} attachments:")
        for a in view.attachments:
            print(f"- {a.name} ({a.mime_type}, {a.size} bytes)")

    return 0


def _print_label_nodes(nodes: list[LabelNode]) -> None:
    for node in nodes:
        count = "99+" if node.count > 99 else str(node.count)
        print(f"{'  ' * node.depth}{node.name}\t{count}")
        _print_label_nodes(node.children)


async def _cmd_labels(args: argparse.Namespace) -> int:
    settings = get_settings()
    engine = await _open_engine(settings)
    try:
        tree = await engine.get_label_tree(top_n=args.top)
    finally:
        engine.close()

    if not tree:
        print("No unread labelled messages")
        return 0

    _print_label_nodes(tree)
    return 0


def _cmd_cache_clear(args: argparse.Namespace) -> int:
    settings = get_settings()
    cache = build_cache(settings, active_profile_id=settings.active_profile_id)
    cache.invalidate_all()
    print(f"Cleared cache in {settings.cache_db_path}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point for the Email Sync Engine CLI.

    Args:
        args: Command-line arguments. If None, uses sys.argv.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    if args is None:
        args = sys.argv[1:]

    settings = get_settings()

    # Configure logging
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )

    logger.info("email_sync_engine_started", version=__version__, debug=settings.debug)

    parser = _build_parser()
    parsed = parser.parse_args(args)

    if parsed.command == "list":
        return asyncio.run(_cmd_list(parsed))
    if parsed.command == "thread":
        return asyncio.run(_cmd_thread(parsed))
    if parsed.command == "labels":
        return asyncio.run(_cmd_labels(parsed))
    if parsed.command == "cache" and parsed.cache_command == "clear":
        return _cmd_cache_clear(parsed)

    logger.error("unknown_command", command=parsed.command)
    return 2


if __name__ == "__main__":
    sys.exit(main())
