import os
from dataclasses import dataclass
from typing import Mapping

from scrobble_cleaner.models import DetectorSettings

# -------------------------
# Configuration via ENV VARS
# -------------------------
@dataclass(frozen=True)
class Settings:
    username: str
    api_key: str
    api_secret: str
    password: str | None
    detector: DetectorSettings
    fetch_window_hours: int = 26       # overlaps the daily schedule to catch boundaries
    max_deletions_per_run: int = 20    # circuit breaker
    deletion_delay_min_ms: int = 1000
    deletion_delay_max_ms: int = 10000
    dry_run: bool = True
    duration_cache_path: str | None = "/data/durations.json"
    run_interval_hours: float = 0      # 0 = run once
    log_level: str = "INFO"


def from_env(env: Mapping[str, str] | None = None) -> Settings:
    env = os.environ if env is None else env

    def required(key: str) -> str:
        val = env.get(key)
        if not val:
            raise SystemExit(f"Missing required env var: {key}")
        return val

    dry_run = env.get("DRY_RUN", "true").strip().lower() != "false"
    password = env.get("LASTFM_PASSWORD") or None
    if not dry_run and not password:
        raise SystemExit("LASTFM_PASSWORD is required when DRY_RUN=false")

    delay_min = max(0, int(env.get("DELETION_DELAY_MIN_MS", "1000")))
    delay_max = max(delay_min, int(env.get("DELETION_DELAY_MAX_MS", "10000")))

    return Settings(
        username=required("LASTFM_USERNAME"),
        api_key=required("LASTFM_API_KEY"),
        api_secret=required("LASTFM_API_SECRET"),
        password=password,
        detector=DetectorSettings(
            gap_seconds=int(env.get("SESSION_GAP_SECONDS", "1800")),
            replay_completion_ratio=float(env.get("REPLAY_COMPLETION_RATIO", "0.5")),
            overlap_ratio=float(env.get("OVERLAP_RATIO", "0.9")),
        ),
        fetch_window_hours=int(env.get("FETCH_WINDOW_HOURS", "26")),
        max_deletions_per_run=max(0, int(env.get("MAX_DELETIONS_PER_RUN", "20"))),
        deletion_delay_min_ms=delay_min,
        deletion_delay_max_ms=delay_max,
        dry_run=dry_run,
        duration_cache_path=env.get("DURATION_CACHE_PATH", "/data/durations.json") or None,
        run_interval_hours=max(0.0, float(env.get("RUN_INTERVAL_HOURS", "0"))),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )
