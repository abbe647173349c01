"""
Track duration cache.

- In-memory map for the current run, keyed by lowercased "artist::track".
- Optional JSON file on disk so known durations survive between runs.
- Falls back to Last.fm track.getInfo on a miss; any failure there is
  reported as unknown (None), never raised.
"""

from __future__ import annotations
import asyncio
import json
import logging
import os
import threading
from typing import Callable, Dict

log = logging.getLogger("duration-cache")


def cache_key(artist: str, track: str) -> str:
    return f"{artist.lower()}::{track.lower()}"


class DurationStore:
    """Persistent {key: duration_ms} map stored as a JSON file."""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()
        self._data: Dict[str, int] = {}
        self._load()

    def _load(self) -> None:
        try:
            if os.path.isfile(self.path):
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    self._data = {k: int(v) for k, v in data.items() if v}
        except (OSError, ValueError, TypeError) as e:
            # Corrupt or unreadable file? Start fresh.
            log.warning("Ignoring unreadable duration cache %s: %s", self.path, e)
            self._data = {}

    def _save(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        # Write atomically to avoid corruption
        tmp = f"{self.path}.tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False, sort_keys=True)
        os.replace(tmp, self.path)

    def get(self, key: str) -> int | None:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, duration_ms: int) -> None:
        with self._lock:
            self._data[key] = duration_ms
            self._save()

    def size(self) -> int:
        with self._lock:
            return len(self._data)


class DurationCache:
    """Duration lookup for the detector: memory, then disk, then Last.fm."""

    def __init__(self, fetch: Callable[[str, str], int | None], store: DurationStore | None = None):
        self.fetch = fetch
        self.store = store
        self._mem: Dict[str, int | None] = {}
        self._pending: Dict[str, asyncio.Future] = {}

    async def lookup(self, artist: str, track: str) -> int | None:
        key = cache_key(artist, track)
        if key in self._mem:
            return self._mem[key]

        # Concurrent lookups of the same key wait for the first one
        if key in self._pending:
            return await asyncio.shield(self._pending[key])

        future = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            duration = await self._resolve(key, artist, track)
            self._mem[key] = duration
            future.set_result(duration)
            return duration
        finally:
            if not future.done():
                future.cancel()
            del self._pending[key]

    async def _resolve(self, key: str, artist: str, track: str) -> int | None:
        if self.store is not None:
            stored = self.store.get(key)
            if stored:
                return stored

        try:
            duration = await asyncio.to_thread(self.fetch, artist, track)
        except Exception as e:
            log.debug("Duration lookup failed for %s - %s: %s", artist, track, e)
            return None

        duration = int(duration) if duration else None
        if duration is not None and self.store is not None:
            try:
                await asyncio.to_thread(self.store.put, key, duration)
            except OSError as e:
                log.debug("Could not persist duration for %s: %s", key, e)
        return duration
