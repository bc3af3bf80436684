import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from tracker.config import Config
from tracker.constants import RunConstants, SkillConstants
from tracker.data_models.snapshot import PlayerNotFound, overall_value
from tracker.database.database import Database
from tracker.operations.snapshot_comparison import compare_snapshots
from tracker.services.hiscores_client import HiscoresClient
from tracker.services.update_runner import UpdateRunner
from tracker.utils.exceptions import TrackerException
from tracker.utils.logger import setup_logger

logger = setup_logger(__name__)


def _install_stop_handlers(stop_event: asyncio.Event) -> None:
    """Stop starting new players on SIGINT/SIGTERM; in-flight ones finish."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Signal handlers are unavailable on some platforms
            pass


async def run_update(args: argparse.Namespace) -> int:
    """Run one batch of player updates and return the exit code"""
    db = Database()
    try:
        await db.initialize()
    except TrackerException as e:
        logger.error(f"Fatal error: {e}")
        return RunConstants.EXIT_FAILURE
    
    stop_event = asyncio.Event()
    _install_stop_handlers(stop_event)
    
    try:
        async with HiscoresClient() as client:
            runner = UpdateRunner(
                db,
                client,
                concurrency=args.concurrency,
                dry_run=args.dry_run,
                stop_event=stop_event,
            )
            report = await runner.run(only_usernames=args.username)
    finally:
        await db.close()
    
    logger.info(f"Run finished: {report.state.value}")
    return report.exit_code


async def track_player(args: argparse.Namespace) -> int:
    """Fetch a player's current stats and store them immediately"""
    db = Database()
    try:
        await db.initialize()
        async with HiscoresClient() as client:
            result = await client.fetch_stats(args.username)
        if isinstance(result, PlayerNotFound):
            logger.error(f"Player not found upstream: {args.username}")
            return RunConstants.EXIT_FAILURE
        
        snapshot = await db.insert_snapshot(args.username, result)
        logger.info(
            f"Saved snapshot {snapshot.id} for {snapshot.username} "
            f"({overall_value(snapshot.stats) // SkillConstants.XP_SCALE:,} Overall XP)"
        )
        return RunConstants.EXIT_SUCCESS
    except TrackerException as e:
        logger.error(f"Failed to track {args.username}: {e}")
        return RunConstants.EXIT_FAILURE
    finally:
        await db.close()


async def show_history(args: argparse.Namespace) -> int:
    """Print a player's snapshots with the changes between consecutive ones"""
    db = Database()
    try:
        await db.initialize()
        history = await db.get_history(args.username)
    except TrackerException as e:
        logger.error(f"Failed to load history for {args.username}: {e}")
        return RunConstants.EXIT_FAILURE
    finally:
        await db.close()
    
    if not history:
        print(f"No snapshots for {args.username}")
        return RunConstants.EXIT_FAILURE
    
    print(f"{len(history)} snapshots for {history[-1].username}")
    previous = None
    for snapshot in history:
        overall_xp = overall_value(snapshot.stats) // SkillConstants.XP_SCALE
        print(f"{snapshot.created_at:%Y-%m-%d %H:%M} UTC  {overall_xp:>12,} XP")
        if previous is not None:
            summary = compare_snapshots(previous, snapshot)
            for change in summary.changes:
                if change.skill_type == SkillConstants.OVERALL:
                    continue
                levels = f" (level {change.old_level} -> {change.new_level})" if change.level_diff else ""
                print(f"    {change.skill_name:<14} +{change.xp_diff:,} XP{levels}")
        previous = snapshot
    return RunConstants.EXIT_SUCCESS


async def show_tracking_stats(args: argparse.Namespace) -> int:
    """Print the number of tracked players and the most recently added ones"""
    db = Database()
    try:
        await db.initialize()
        total = await db.count_distinct_players()
        recent = await db.get_recently_added_players(RunConstants.RECENT_PLAYERS_LIMIT)
    except TrackerException as e:
        logger.error(f"Failed to load tracking stats: {e}")
        return RunConstants.EXIT_FAILURE
    finally:
        await db.close()
    
    print(f"Tracking {total} players")
    for snapshot in recent:
        overall = snapshot.overall
        level = overall.level if overall else 0
        print(f"  {snapshot.username:<14} total level {level:>5}  (last updated {snapshot.created_at:%Y-%m-%d %H:%M} UTC)")
    return RunConstants.EXIT_SUCCESS


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hiscores player tracker")
    subparsers = parser.add_subparsers(dest='command', required=True)
    
    update = subparsers.add_parser('update', help="Update every tracked player")
    update.add_argument('--dry-run', action='store_true', help="Fetch and decide but do not store snapshots")
    update.add_argument('--concurrency', type=int, default=None, help="Players processed at once")
    update.add_argument('--username', action='append', default=None,
                        help="Only update this tracked player (repeatable)")
    update.set_defaults(handler=run_update)
    
    track = subparsers.add_parser('track', help="Fetch and store a player's stats now")
    track.add_argument('username')
    track.set_defaults(handler=track_player)
    
    history = subparsers.add_parser('history', help="Show a player's snapshot history")
    history.add_argument('username')
    history.set_defaults(handler=show_history)
    
    stats = subparsers.add_parser('stats', help="Show tracking statistics")
    stats.set_defaults(handler=show_tracking_stats)
    
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    try:
        Config.validate()
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return RunConstants.EXIT_FAILURE
    return asyncio.run(args.handler(args))


if __name__ == "__main__":
    sys.exit(main())
