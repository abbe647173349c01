import pylast
import logging

from scrobble_cleaner.models import Scrobble

log = logging.getLogger("lastfm")

# Custom error classes so callers can branch
class LastFMAuthError(Exception): ...
class LastFMRateLimitError(Exception): ...
class LastFMNetworkError(Exception): ...
class LastFMNotFoundError(Exception): ...
class LastFMUnknownError(Exception): ...


def _map_ws_error(e: pylast.WSError) -> Exception:
    try:
        code = int(e.get_id())
    except (TypeError, ValueError):
        code = None
    msg = str(e)
    # 9=Invalid session, 4=Auth failed, 14=Token expired, 10=Invalid API key
    if code in (4, 9, 10, 14):
        return LastFMAuthError(msg)
    if code == 29:  # Rate limit exceeded
        return LastFMRateLimitError(msg)
    if code == 6:  # Track/artist not found
        return LastFMNotFoundError(msg)
    return LastFMUnknownError(f"Last.fm API error {code}: {msg}")


class LastFMClient:
    """Read-only pylast wrapper: recent scrobbles and track durations."""

    def __init__(self, api_key: str, api_secret: str):
        if not api_key or not api_secret:
            raise ValueError("Missing Last.fm API credentials")
        self.network = pylast.LastFMNetwork(api_key=api_key, api_secret=api_secret)

    def get_recent_scrobbles(self, username: str, time_from: int, time_to: int) -> list[Scrobble]:
        """All scrobbles in [time_from, time_to], newest-first. Now-playing is excluded."""
        try:
            played = self.network.get_user(username).get_recent_tracks(
                limit=None, time_from=time_from, time_to=time_to, now_playing=False
            )
        except pylast.WSError as e:
            raise _map_ws_error(e)
        except Exception as e:
            raise LastFMNetworkError(str(e))

        scrobbles = []
        for p in played:
            if not p.timestamp:
                continue
            scrobbles.append(Scrobble(
                artist=str(p.track.artist.name),
                track=str(p.track.title),
                timestamp=int(p.timestamp),
                album=p.album or None,
            ))
        log.debug("Fetched %s scrobbles for %s between %s and %s",
                  len(scrobbles), username, time_from, time_to)
        return scrobbles

    def get_track_duration(self, artist: str, track: str) -> int | None:
        """Track length in milliseconds from track.getInfo; None if unknown or zero."""
        try:
            duration = pylast.Track(artist, track, self.network).get_duration()
        except pylast.WSError as e:
            raise _map_ws_error(e)
        except Exception as e:
            raise LastFMNetworkError(str(e))
        return int(duration) if duration else None
