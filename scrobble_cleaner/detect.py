"""
Duplicate scrobble detection.

Three independent passes over the same scrobble window:

- session replay: the first track of a session repeats the last track of the
  previous one (a client resuming an interrupted track after an idle gap)
- duration overlap: two plays of the same track closer together than the
  track is long
- incomplete replay: a run of the same track where some plays were skipped

`resolve()` merges them into one list with one entry per scrobble.
Artist/track names are compared exactly as received (case-sensitive).
"""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

from scrobble_cleaner.models import (
    BOTH,
    DURATION_OVERLAP,
    INCOMPLETE_REPLAY,
    SESSION_REPLAY,
    DetectionResult,
    DetectorSettings,
    DurationLookup,
    FlaggedDuplicate,
    Scrobble,
    Session,
)

log = logging.getLogger("detect")


def _chronological(scrobbles: Iterable[Scrobble]) -> list[Scrobble]:
    # Last.fm returns newest-first; never touch the caller's list
    return sorted(scrobbles, key=lambda s: s.timestamp)


def _duration_seconds(duration_ms: int | None) -> float | None:
    if not duration_ms:
        return None
    return duration_ms / 1000


def group_into_sessions(scrobbles: Sequence[Scrobble], gap_seconds: int) -> list[Session]:
    """Split scrobbles into sessions separated by idle gaps longer than gap_seconds.

    A gap exactly equal to gap_seconds stays in the same session.
    """
    chrono = _chronological(scrobbles)
    if not chrono:
        return []

    groups: list[list[Scrobble]] = [[chrono[0]]]
    for prev, curr in zip(chrono, chrono[1:]):
        if curr.timestamp - prev.timestamp > gap_seconds:
            groups.append([curr])
        else:
            groups[-1].append(curr)

    return [Session(tuple(g)) for g in groups]


async def detect_session_replays(
    sessions: Sequence[Session],
    lookup: DurationLookup,
    settings: DetectorSettings,
) -> list[Scrobble]:
    """Flag the first scrobble of a session when it replays the previous session's last track.

    The replay is kept when the next scrobble in the new session came late
    enough to show the track was really listened to.
    """
    replays: list[Scrobble] = []

    for before, after in zip(sessions, sessions[1:]):
        candidate = after.first
        if before.last.key != candidate.key:
            continue

        # Nothing after it in the session to measure playback against
        if len(after) == 1:
            log.debug("Session replay (single-scrobble session): %s - %s @ %s",
                      candidate.artist, candidate.track, candidate.timestamp)
            replays.append(candidate)
            continue

        gap = after.scrobbles[1].timestamp - candidate.timestamp
        duration = _duration_seconds(await lookup.lookup(candidate.artist, candidate.track))

        if duration is not None and gap >= duration * settings.replay_completion_ratio:
            log.debug("Replay kept, played %ss of %ss: %s - %s",
                      gap, duration, candidate.artist, candidate.track)
            continue

        log.debug("Session replay: %s - %s @ %s (gap=%s duration=%s)",
                  candidate.artist, candidate.track, candidate.timestamp, gap, duration)
        replays.append(candidate)

    return replays


async def detect_duration_overlaps(
    scrobbles: Sequence[Scrobble],
    lookup: DurationLookup,
    settings: DetectorSettings,
) -> list[Scrobble]:
    """Flag the later of two adjacent same-track scrobbles that overlap in time."""
    chrono = _chronological(scrobbles)
    overlaps: list[Scrobble] = []

    for prev, curr in zip(chrono, chrono[1:]):
        if prev.key != curr.key:
            continue

        gap = curr.timestamp - prev.timestamp
        duration = _duration_seconds(await lookup.lookup(curr.artist, curr.track))
        if duration is None:
            continue

        if gap < duration * settings.overlap_ratio:
            log.debug("Duration overlap: %s - %s @ %s (gap=%s duration=%s)",
                      curr.artist, curr.track, curr.timestamp, gap, duration)
            overlaps.append(curr)

    return overlaps


async def detect_incomplete_replays(
    scrobbles: Sequence[Scrobble],
    lookup: DurationLookup,
    settings: DetectorSettings,
) -> list[Scrobble]:
    """Flag skipped plays inside runs of 2+ consecutive scrobbles of the same track.

    A play counts as completed when the next scrobble (any track) starts at
    least overlap_ratio of the duration later. The last scrobble of the window
    always counts as completed. Completed plays are kept and the rest flagged;
    if none completed, only the first play of the run is kept.
    """
    chrono = _chronological(scrobbles)
    incomplete: list[Scrobble] = []

    start = 0
    while start < len(chrono):
        end = start
        while end + 1 < len(chrono) and chrono[end + 1].key == chrono[start].key:
            end += 1

        if end > start:
            first = chrono[start]
            duration = _duration_seconds(await lookup.lookup(first.artist, first.track))

            if duration is not None:
                completed = []
                for idx in range(start, end + 1):
                    if idx == len(chrono) - 1:
                        completed.append(True)
                    else:
                        gap = chrono[idx + 1].timestamp - chrono[idx].timestamp
                        completed.append(gap >= duration * settings.overlap_ratio)

                run = chrono[start:end + 1]
                if any(completed):
                    flagged = [s for s, done in zip(run, completed) if not done]
                else:
                    flagged = run[1:]

                for s in flagged:
                    log.debug("Incomplete replay: %s - %s @ %s", s.artist, s.track, s.timestamp)
                incomplete.extend(flagged)

        start = end + 1

    return incomplete


def resolve(
    replays: Sequence[Scrobble],
    overlaps: Sequence[Scrobble],
    incompletes: Sequence[Scrobble],
) -> list[FlaggedDuplicate]:
    """Merge detector output: one entry per timestamp, replay > overlap > incomplete."""
    overlap_ids = {s.timestamp for s in overlaps}
    seen: set[int] = set()
    flagged: list[FlaggedDuplicate] = []

    for s in replays:
        if s.timestamp in seen:
            continue
        seen.add(s.timestamp)
        reason = BOTH if s.timestamp in overlap_ids else SESSION_REPLAY
        flagged.append(FlaggedDuplicate(s, reason))

    for reason, scrobbles in ((DURATION_OVERLAP, overlaps), (INCOMPLETE_REPLAY, incompletes)):
        for s in scrobbles:
            if s.timestamp not in seen:
                seen.add(s.timestamp)
                flagged.append(FlaggedDuplicate(s, reason))

    return flagged


async def detect_duplicates(
    scrobbles: Sequence[Scrobble],
    lookup: DurationLookup,
    gap_seconds: int | None = None,
    settings: DetectorSettings | None = None,
) -> DetectionResult:
    """Run all detectors over one scrobble window (newest-first, as fetched)."""
    settings = settings or DetectorSettings()
    if gap_seconds is None:
        gap_seconds = settings.gap_seconds

    sessions = group_into_sessions(scrobbles, gap_seconds)
    replays = await detect_session_replays(sessions, lookup, settings)
    overlaps = await detect_duration_overlaps(scrobbles, lookup, settings)
    incompletes = await detect_incomplete_replays(scrobbles, lookup, settings)

    flagged = resolve(replays, overlaps, incompletes)
    log.info("Detected %s duplicate(s) in %s scrobble(s) across %s session(s) "
             "(replay=%s overlap=%s incomplete=%s)",
             len(flagged), len(scrobbles), len(sessions),
             len(replays), len(overlaps), len(incompletes))

    return DetectionResult(
        flagged=flagged,
        session_count=len(sessions),
        scrobble_count=len(scrobbles),
    )
