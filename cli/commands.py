"""
CLI subcommand implementations for the EduPortal data layer.

Subcommands::

    eduportal [--data-dir D] init
    eduportal [--data-dir D] videos list [--user U]
    eduportal [--data-dir D] videos reset [--yes]
    eduportal [--data-dir D] users list
    eduportal [--data-dir D] progress show USER_ID
"""

import argparse
import logging
import sys
from pathlib import Path

from eduportal.config import get_data_dir, get_log_level
from eduportal.errors import DataError
from eduportal.facade import DataService, open_data_service


async def _open(args) -> DataService:
    data_dir = Path(args.data_dir) if args.data_dir else get_data_dir()
    try:
        return await open_data_service(data_dir)
    except DataError as e:
        print(f"Error: could not open data store in {data_dir}: {e}")
        sys.exit(1)


# ---------------------------------------------------------------------------
# Subcommand: init
# ---------------------------------------------------------------------------

async def cmd_init(args):
    """Open the stores, run the migration and report the outcome."""
    service = await _open(args)
    try:
        videos = await service.list_videos()
        users = service.list_users()
        print(f"Migration state: {service.migration_state.value}")
        print(f"Videos: {len(videos)}")
        print(f"Users:  {len(users)}")
    finally:
        await service.close()


# ---------------------------------------------------------------------------
# Subcommand: videos
# ---------------------------------------------------------------------------

async def cmd_videos(args):
    """List or reset the video catalog."""
    service = await _open(args)
    try:
        if args.videos_action == 'list':
            videos = await service.list_videos(args.user)
            if not videos:
                print("No videos found.")
                return
            print(f"\n{'ID':<24}  {'Status':<9}  {'Class':>5}  {'Subject':<16}  {'Title'}")
            print("-" * 80)
            for v in videos:
                title = v.title if len(v.title) <= 30 else v.title[:27] + "..."
                mark = " ✓" if v.completed else ""
                print(f"{v.id[:24]:<24}  {v.status:<9}  {v.class_:>5}  {v.subject:<16}  {title}{mark}")

        elif args.videos_action == 'reset':
            if not args.yes:
                try:
                    confirm = input("Reset all videos to the initial catalog? This cannot be undone. (y/N): ")
                except (EOFError, KeyboardInterrupt):
                    return
                if confirm.strip().lower() not in ('y', 'yes'):
                    print("Cancelled.")
                    return
            try:
                count = await service.reset_videos()
            except DataError as e:
                print(f"Error: {e}")
                sys.exit(1)
            print(f"✓ Catalog reset ({count} videos).")
    finally:
        await service.close()


# ---------------------------------------------------------------------------
# Subcommand: users
# ---------------------------------------------------------------------------

async def cmd_users(args):
    """List user accounts (never shows passwords)."""
    service = await _open(args)
    try:
        users = service.list_users()
        if not users:
            print("No users found.")
            return
        print(f"\n{'ID':<24}  {'Role':<8}  {'Class':>5}  {'Status':<9}  {'Email'}")
        print("-" * 80)
        for u in users:
            print(f"{u.id[:24]:<24}  {u.role:<8}  {u.class_ or '-':>5}  {u.status:<9}  {u.email}")
    finally:
        await service.close()


# ---------------------------------------------------------------------------
# Subcommand: progress
# ---------------------------------------------------------------------------

async def cmd_progress(args):
    """Show one user's progress map and completion set."""
    service = await _open(args)
    try:
        if service.get_user(args.user_id) is None:
            print(f"User {args.user_id} not found.")
            sys.exit(1)

        progress = service.get_progress(args.user_id)
        completions = service.get_completions(args.user_id)
        print(f"\nProgress for {args.user_id} ({len(progress)} video(s)):")
        for video_id, entry in progress.items():
            pct = (entry.progress / entry.duration * 100) if entry.duration else 0
            print(f"  • {video_id}: {entry.progress:.0f}s / {entry.duration:.0f}s ({pct:.0f}%)")
        print(f"\nCompleted ({len(completions)}):")
        for video_id in completions:
            print(f"  • {video_id}")
    finally:
        await service.close()


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="eduportal",
        description="Administer the EduPortal video catalog and user data",
    )
    parser.add_argument("--data-dir", help="Directory holding the store files "
                                           "(default: $EDUPORTAL_DATA_DIR or ~/.eduportal)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Initialise stores and run the migration")

    p_videos = subparsers.add_parser("videos", help="Manage the video catalog")
    sp_videos = p_videos.add_subparsers(dest="videos_action", required=True)
    sp_vlist = sp_videos.add_parser("list", help="List videos, newest first")
    sp_vlist.add_argument("--user", help="Mark videos completed by this user id")
    sp_vreset = sp_videos.add_parser("reset", help="Reset the catalog to the initial videos")
    sp_vreset.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    p_users = subparsers.add_parser("users", help="Manage user accounts")
    sp_users = p_users.add_subparsers(dest="users_action", required=True)
    sp_users.add_parser("list", help="List all users")

    p_progress = subparsers.add_parser("progress", help="Inspect watch progress")
    sp_progress = p_progress.add_subparsers(dest="progress_action", required=True)
    sp_pshow = sp_progress.add_parser("show", help="Show a user's progress")
    sp_pshow.add_argument("user_id", help="User ID")

    return parser


async def main(argv=None):
    """Entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=get_log_level())

    if args.command == 'init':
        await cmd_init(args)
    elif args.command == 'videos':
        await cmd_videos(args)
    elif args.command == 'users':
        await cmd_users(args)
    elif args.command == 'progress':
        await cmd_progress(args)
