"""
Remove every scrobble by one artist from yesterday.

Usage:
    scrobble-remove-artist-day "Jonas Alaska" [--tz Europe/Oslo] [--yes] [--dry-run]

"Yesterday" is the previous calendar day in the given time zone. Matching on
the artist name is case-insensitive. Deletions go through the same web login,
delay and re-login handling as a cleaning run.
"""

import argparse
import logging
import time
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from scrobble_cleaner import config
from scrobble_cleaner.lastfm_client import LastFMClient
from scrobble_cleaner.lastfm_web import LastFMWebClient
from scrobble_cleaner.main import delete_scrobbles, format_time, setup_logging
from scrobble_cleaner.models import Scrobble

log = logging.getLogger("remove-artist-day")


def yesterday_window(now: datetime) -> tuple[int, int]:
    """Unix [start, end] of the calendar day before `now`, in now's time zone."""
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start = today - timedelta(days=1)
    # Rebuild from the date so DST changes give the real midnight
    start = datetime(start.year, start.month, start.day, tzinfo=now.tzinfo)
    end = datetime(today.year, today.month, today.day, tzinfo=now.tzinfo)
    return int(start.timestamp()), int(end.timestamp()) - 1


def match_artist(scrobbles: list[Scrobble], artist: str) -> list[Scrobble]:
    wanted = artist.casefold()
    return [s for s in scrobbles if s.artist.casefold() == wanted]


def remove_artist_day(settings: config.Settings, client: LastFMClient, web: LastFMWebClient,
                      artist: str, now: datetime, confirm=None, dry_run: bool = False,
                      sleep=time.sleep) -> tuple[int, int]:
    """Find and delete yesterday's scrobbles by `artist`. Returns (deleted, failed).

    `confirm` is called with the matches and must return True before anything
    is deleted; None skips the prompt.
    """
    since, until = yesterday_window(now)
    log.info('Looking for "%s" scrobbles from %s to %s', artist, format_time(since), format_time(until))

    scrobbles = client.get_recent_scrobbles(settings.username, since, until)
    matches = match_artist(scrobbles, artist)
    log.info("Fetched %s scrobbles in window, %s by %s", len(scrobbles), len(matches), artist)

    if not matches:
        log.info('No scrobbles found for "%s". Nothing to do.', artist)
        return 0, 0

    for s in matches:
        log.info("  %s - %s @ %s (uts: %s)", s.artist, s.track, format_time(s.timestamp), s.timestamp)

    if dry_run:
        log.info("DRY RUN: Would delete %s scrobble(s). No action taken.", len(matches))
        return 0, 0
    if confirm is not None and not confirm(matches):
        log.info("Aborted.")
        return 0, 0
    if not settings.password:
        raise SystemExit("LASTFM_PASSWORD is required to delete scrobbles")

    deleted, failed = delete_scrobbles(web, settings, matches, sleep=sleep)
    log.info("Done. Deleted: %s, Failed: %s", deleted, failed)
    return deleted, failed


def _ask(matches: list[Scrobble]) -> bool:
    answer = input(f"\nDelete all {len(matches)} scrobble(s)? (y/n): ")
    return answer.strip().lower() == "y"


def main(argv=None):
    parser = argparse.ArgumentParser(description="Remove all of yesterday's scrobbles by one artist")
    parser.add_argument("artist", help="Artist name (case-insensitive)")
    parser.add_argument("--tz", default="Europe/Oslo", help="Time zone that defines 'yesterday'")
    parser.add_argument("--yes", action="store_true", help="Delete without asking for confirmation")
    parser.add_argument("--dry-run", action="store_true", help="List matches without deleting")
    args = parser.parse_args(argv)

    # DRY_RUN from the environment does not apply here; use --dry-run
    settings = config.from_env()
    setup_logging(settings.log_level)

    remove_artist_day(
        settings,
        LastFMClient(settings.api_key, settings.api_secret),
        LastFMWebClient(settings.username),
        args.artist,
        now=datetime.now(ZoneInfo(args.tz)),
        confirm=None if args.yes else _ask,
        dry_run=args.dry_run,
    )


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        log.info("Aborted.")
