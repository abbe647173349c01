"""Finds and removes replayed or skipped duplicate scrobbles from a Last.fm history."""
