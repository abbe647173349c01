"""Shared test helpers: fixed-answer lookups and scrobble/settings builders."""

from unittest.mock import MagicMock

from scrobble_cleaner.config import Settings
from scrobble_cleaner.models import DetectorSettings, Scrobble

DURATIONS = {("A", "T"): 200000}


class StubLookup:
    """Fixed-answer duration lookup; records every call."""

    def __init__(self, durations=None, error=None):
        self.durations = durations or {}
        self.error = error
        self.calls = []

    async def lookup(self, artist, track):
        self.calls.append((artist, track))
        if self.error is not None:
            raise self.error
        return self.durations.get((artist, track))


def newest_first(*plays):
    """Build a Last.fm-ordered list from chronological (artist, track, timestamp) tuples."""
    return [Scrobble(artist, track, ts) for artist, track, ts in reversed(plays)]


def make_settings(**overrides):
    values = dict(
        username="me",
        api_key="key",
        api_secret="secret",
        password="pw",
        detector=DetectorSettings(),
        deletion_delay_min_ms=0,
        deletion_delay_max_ms=0,
        duration_cache_path=None,
    )
    values.update(overrides)
    return Settings(**values)


def make_client(scrobbles):
    client = MagicMock()
    client.get_recent_scrobbles.return_value = scrobbles
    client.get_track_duration.side_effect = lambda artist, track: DURATIONS.get((artist, track))
    return client
