from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

SESSION_REPLAY = "session-replay"
DURATION_OVERLAP = "duration-overlap"
INCOMPLETE_REPLAY = "incomplete-replay"
BOTH = "both"

# -------------------------
# One scrobble as returned by Last.fm (identity = timestamp)
# -------------------------
@dataclass(frozen=True)
class Scrobble:
    artist: str
    track: str
    timestamp: int  # unix seconds, playback start
    album: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.artist, self.track)


@dataclass(frozen=True)
class Session:
    """Contiguous run of scrobbles, oldest-first, with no idle gap above the threshold."""
    scrobbles: tuple[Scrobble, ...]

    @property
    def first(self) -> Scrobble:
        return self.scrobbles[0]

    @property
    def last(self) -> Scrobble:
        return self.scrobbles[-1]

    def __len__(self) -> int:
        return len(self.scrobbles)


@dataclass(frozen=True)
class FlaggedDuplicate:
    scrobble: Scrobble
    reason: str  # one of SESSION_REPLAY, DURATION_OVERLAP, INCOMPLETE_REPLAY, BOTH


@dataclass(frozen=True)
class DetectionResult:
    flagged: list[FlaggedDuplicate] = field(default_factory=list)
    session_count: int = 0
    scrobble_count: int = 0


@dataclass(frozen=True)
class DetectorSettings:
    """Tunable thresholds.

    replay_completion_ratio: share of the track a resumed first play must have
    run for before the next scrobble to count as a real listen.
    overlap_ratio: share of the track that must separate two plays of it; also
    the completion bar for runs of the same track.
    """
    gap_seconds: int = 1800
    replay_completion_ratio: float = 0.5
    overlap_ratio: float = 0.9


class DurationLookup(Protocol):
    async def lookup(self, artist: str, track: str) -> int | None:
        """Track length in milliseconds, or None when unknown."""
        ...
