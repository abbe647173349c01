"""
Run summary notifications.

- Webhook: POST JSON body to NOTIFY_WEBHOOK_URL.
- Gotify: POST /message with app token (GOTIFY_URL + GOTIFY_TOKEN).
- Each respects its own min level (default INFO, so every run summary goes out).
- Best-effort: failures are logged but do not crash the run.
"""

from __future__ import annotations
import logging
import os
from dataclasses import dataclass, field
from typing import Mapping

import requests

log = logging.getLogger("notifier")

_LEVELS = {"DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50}
DEFAULT_TAG = "Last.fm Cleaner"


@dataclass
class RunSummary:
    scrobbles_scanned: int = 0
    sessions_found: int = 0
    duplicates_found: int = 0
    deleted: int = 0
    failed: int = 0
    dry_run: bool = True
    items: list[dict] = field(default_factory=list)  # artist, track, reason, time
    circuit_breaker_triggered: bool = False

    @property
    def subject(self) -> str:
        if not self.duplicates_found:
            return "No duplicates found"
        verb = "Found" if self.dry_run else "Deleted"
        return f"{verb} {self.duplicates_found} duplicate(s)"

    @property
    def level(self) -> str:
        if self.failed:
            return "WARNING"
        return "INFO"

    def to_text(self) -> str:
        lines = [
            f"Scrobbles scanned: {self.scrobbles_scanned}",
            f"Sessions found: {self.sessions_found}",
            f"Duplicates detected: {self.duplicates_found}",
            "",
            f"Mode: {'DRY RUN (no deletions)' if self.dry_run else 'LIVE'}",
        ]
        if self.circuit_breaker_triggered:
            lines += ["", "Circuit breaker triggered - limited deletions."]
        if self.items:
            lines += ["", "Would delete:" if self.dry_run else "Deleted:", ""]
            for item in self.items:
                lines.append(f"  [{item['reason']}] {item['artist']} - {item['track']}")
                lines.append(f"    Time: {item['time']}")
        if not self.dry_run and self.duplicates_found:
            lines += ["", f"Result: {self.deleted} deleted, {self.failed} failed"]
        if not self.duplicates_found:
            lines += ["", "No duplicates found. Your scrobbles are clean!"]
        return "\n".join(lines)


class WebhookNotifier:
    def __init__(self, webhook_url: str | None, min_level: str = "INFO", app_tag: str = DEFAULT_TAG):
        self.webhook_url = webhook_url.strip() if webhook_url else None
        self.min_level = _LEVELS.get(min_level.upper(), 30)
        self.app_tag = app_tag

    def send(self, level: str, title: str, message: str, extra: dict | None = None):
        if not self.webhook_url:
            return
        if _LEVELS.get(level.upper(), 30) < self.min_level:
            return

        payload = {
            "level": level.upper(),
            "title": f"{self.app_tag}: {title}",
            "message": message,
            "extra": extra or {},
        }
        try:
            requests.post(self.webhook_url, json=payload, timeout=5)
        except requests.RequestException as e:
            log.debug("Webhook send failed: %s", e)


class GotifyNotifier:
    def __init__(self, url: str | None, token: str | None, min_level: str = "INFO",
                 default_priority: int = 5, app_tag: str = DEFAULT_TAG):
        self.url = url.rstrip("/") if url else None
        self.token = token.strip() if token else None
        self.min_level = _LEVELS.get(min_level.upper(), 30)
        self.default_priority = default_priority
        self.app_tag = app_tag

    def send(self, level: str, title: str, message: str, extra: dict | None = None):
        if not self.url or not self.token:
            return
        if _LEVELS.get(level.upper(), 30) < self.min_level:
            return

        body = {
            "title": f"{self.app_tag}: {title}",
            "message": message if not extra else f"{message}\n\n{extra}",
            "priority": self.default_priority,
        }
        try:
            requests.post(f"{self.url}/message", json=body,
                          headers={"X-Gotify-Key": self.token}, timeout=5)
        except requests.RequestException as e:
            log.debug("Gotify send failed: %s", e)


class Notifier:
    """Fans a message out to every configured backend."""

    def __init__(self, *backends):
        self.backends = backends

    def send(self, level: str, title: str, message: str, extra: dict | None = None):
        for backend in self.backends:
            try:
                backend.send(level, title, message, extra)
            except Exception as e:
                log.debug("Notifier %s failed: %s", type(backend).__name__, e)

    def send_summary(self, summary: RunSummary):
        self.send(summary.level, summary.subject, summary.to_text())


def from_env(env: Mapping[str, str] | None = None) -> Notifier:
    env = os.environ if env is None else env
    app_tag = env.get("APP_TAG", DEFAULT_TAG)
    webhook = WebhookNotifier(
        webhook_url=env.get("NOTIFY_WEBHOOK_URL"),
        min_level=env.get("NOTIFY_MIN_LEVEL", "INFO"),
        app_tag=app_tag,
    )
    gotify = GotifyNotifier(
        env.get("GOTIFY_URL"),
        env.get("GOTIFY_TOKEN"),
        min_level=env.get("GOTIFY_MIN_LEVEL", "INFO"),
        default_priority=int(env.get("GOTIFY_PRIORITY", "5")),
        app_tag=app_tag,
    )
    return Notifier(webhook, gotify)
