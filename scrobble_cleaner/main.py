import asyncio
import logging
import random
import time
from datetime import datetime, timezone

import requests

from scrobble_cleaner import config
from scrobble_cleaner.detect import detect_duplicates
from scrobble_cleaner.duration_cache import DurationCache, DurationStore
from scrobble_cleaner.lastfm_client import LastFMClient
from scrobble_cleaner.lastfm_web import LastFMWebClient, LastFMWebError, SessionExpiredError
from scrobble_cleaner.models import Scrobble
from scrobble_cleaner.notifier import Notifier, RunSummary, from_env as notifier_from_env

log = logging.getLogger("scrobble-cleaner")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        force=True,  # ensure our config is used even if libs pre-configure logging
    )
    # pylast logs every HTTP request at INFO
    logging.getLogger("pylast").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def format_time(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, timezone.utc).strftime("%d %b %Y, %H:%M UTC")


def delete_scrobbles(web: LastFMWebClient, settings: config.Settings,
                     scrobbles: list[Scrobble], sleep=time.sleep) -> tuple[int, int]:
    """Delete each scrobble, re-logging in once per expired session. Returns (deleted, failed)."""
    deleted = failed = 0
    log.info("Logging in to Last.fm web...")
    web.login(settings.username, settings.password)

    for i, s in enumerate(scrobbles):
        try:
            if web.delete_scrobble(artist=s.artist, track=s.track, timestamp=s.timestamp):
                deleted += 1
                log.info("Deleted: %s - %s", s.artist, s.track)
            else:
                failed += 1
                log.error("Delete returned false: %s - %s", s.artist, s.track)
        except SessionExpiredError as e:
            failed += 1
            log.error("Failed: %s - %s: %s", s.artist, s.track, e)
            log.info("Re-authenticating...")
            try:
                web.login(settings.username, settings.password)
            except Exception as e:
                log.error("Re-authentication failed (%s). Stopping.", e)
                break
        except (LastFMWebError, requests.RequestException) as e:
            failed += 1
            log.error("Failed: %s - %s: %s", s.artist, s.track, e)

        if i < len(scrobbles) - 1:
            # Random spacing between deletions avoids 406 responses from the web endpoint
            sleep(random.uniform(settings.deletion_delay_min_ms, settings.deletion_delay_max_ms) / 1000)

    return deleted, failed


def run_once(settings: config.Settings, client: LastFMClient, web: LastFMWebClient,
             notifier: Notifier, now: int | None = None, sleep=time.sleep) -> RunSummary:
    now = int(now if now is not None else time.time())
    since = now - settings.fetch_window_hours * 3600
    summary = RunSummary(dry_run=settings.dry_run)

    log.info("Fetching scrobbles from %s to now (dry run: %s)", format_time(since), settings.dry_run)
    scrobbles = client.get_recent_scrobbles(settings.username, since, now)
    summary.scrobbles_scanned = len(scrobbles)
    log.info("Fetched %s scrobbles", len(scrobbles))

    if not scrobbles:
        log.info("No scrobbles in window. Done.")
        notifier.send_summary(summary)
        return summary

    store = DurationStore(settings.duration_cache_path) if settings.duration_cache_path else None
    cache = DurationCache(client.get_track_duration, store)
    result = asyncio.run(detect_duplicates(scrobbles, cache, settings=settings.detector))

    summary.sessions_found = result.session_count
    summary.duplicates_found = len(result.flagged)
    log.info("Found %s duplicate(s) across %s session(s)", len(result.flagged), result.session_count)

    if not result.flagged:
        log.info("No duplicates found. Done.")
        notifier.send_summary(summary)
        return summary

    for f in result.flagged:
        log.info("  [%s] %s - %s @ %s", f.reason, f.scrobble.artist, f.scrobble.track,
                 format_time(f.scrobble.timestamp))

    # Circuit breaker
    if len(result.flagged) > settings.max_deletions_per_run:
        log.warning("Circuit breaker: %s duplicates exceed max %s. Only deleting first %s.",
                    len(result.flagged), settings.max_deletions_per_run, settings.max_deletions_per_run)
        summary.circuit_breaker_triggered = True

    to_delete = result.flagged[:settings.max_deletions_per_run]
    summary.items = [
        dict(artist=f.scrobble.artist, track=f.scrobble.track, reason=f.reason,
             time=format_time(f.scrobble.timestamp))
        for f in to_delete
    ]

    if settings.dry_run:
        log.info("DRY RUN: Would delete %s scrobble(s). No action taken.", len(to_delete))
    elif to_delete:
        summary.deleted, summary.failed = delete_scrobbles(
            web, settings, [f.scrobble for f in to_delete], sleep=sleep)
        log.info("Done. Deleted: %s, Failed: %s", summary.deleted, summary.failed)

    notifier.send_summary(summary)
    return summary


def main():
    settings = config.from_env()
    setup_logging(settings.log_level)

    client = LastFMClient(settings.api_key, settings.api_secret)
    web = LastFMWebClient(settings.username)
    notifier = notifier_from_env()

    if not settings.run_interval_hours:
        run_once(settings, client, web, notifier)
        return

    interval = settings.run_interval_hours * 3600
    log.info("Starting scrobble cleaner for %s. Run interval: %sh", settings.username, settings.run_interval_hours)
    while True:
        try:
            run_once(settings, client, web, notifier)
        except Exception as e:
            log.exception("Cleaning run failed: %s", e)
            notifier.send("ERROR", "Cleaning run failed", str(e))
        time.sleep(interval)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        log.info("Shutting down…")
