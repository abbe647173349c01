"""Tests for a full cleaning run with mocked Last.fm collaborators."""

from unittest.mock import MagicMock

import pytest
import requests

from scrobble_cleaner.lastfm_web import LastFMWebAuthError, SessionExpiredError
from scrobble_cleaner.main import run_once
from tests.helpers import make_client, make_settings, newest_first

# Three quick replays of A - T, then something else: 10, 20 and 30 are dupes
SKIPPY = newest_first(("A", "T", 0), ("A", "T", 10), ("A", "T", 20), ("A", "T", 30), ("B", "U", 40))


class TestRunOnce:
    def test_empty_window(self):
        client, web, notifier = make_client([]), MagicMock(), MagicMock()

        summary = run_once(make_settings(), client, web, notifier, now=100000)

        assert summary.scrobbles_scanned == 0
        client.get_recent_scrobbles.assert_called_once_with("me", 100000 - 26 * 3600, 100000)
        notifier.send_summary.assert_called_once_with(summary)
        web.login.assert_not_called()

    def test_clean_window(self):
        scrobbles = newest_first(("A", "T", 0), ("B", "U", 300))
        notifier = MagicMock()

        summary = run_once(make_settings(), make_client(scrobbles), MagicMock(), notifier, now=1000)

        assert summary.duplicates_found == 0
        assert summary.sessions_found == 1
        notifier.send_summary.assert_called_once()

    def test_dry_run_does_not_delete(self):
        web, notifier = MagicMock(), MagicMock()

        summary = run_once(make_settings(dry_run=True), make_client(SKIPPY), web, notifier, now=1000)

        assert summary.duplicates_found == 3
        assert [item["reason"] for item in summary.items] == ["duration-overlap"] * 3
        web.login.assert_not_called()
        web.delete_scrobble.assert_not_called()

    def test_live_run_deletes(self):
        web = MagicMock()
        web.delete_scrobble.return_value = True
        sleep = MagicMock()

        summary = run_once(make_settings(dry_run=False), make_client(SKIPPY), web, MagicMock(),
                           now=1000, sleep=sleep)

        web.login.assert_called_once_with("me", "pw")
        assert [c.kwargs["timestamp"] for c in web.delete_scrobble.call_args_list] == [10, 20, 30]
        assert summary.deleted == 3
        assert summary.failed == 0
        assert sleep.call_count == 2

    def test_circuit_breaker_limits_deletions(self):
        web = MagicMock()
        web.delete_scrobble.return_value = True

        summary = run_once(make_settings(dry_run=False, max_deletions_per_run=2),
                           make_client(SKIPPY), web, MagicMock(), now=1000, sleep=MagicMock())

        assert summary.circuit_breaker_triggered
        assert summary.duplicates_found == 3
        assert len(summary.items) == 2
        assert web.delete_scrobble.call_count == 2

    def test_failed_deletes_counted(self):
        web = MagicMock()
        web.delete_scrobble.side_effect = [True, False, requests.ConnectionError("reset")]

        summary = run_once(make_settings(dry_run=False), make_client(SKIPPY), web, MagicMock(),
                           now=1000, sleep=MagicMock())

        assert summary.deleted == 1
        assert summary.failed == 2

    def test_expired_session_relogs_once(self):
        web = MagicMock()
        web.delete_scrobble.side_effect = [SessionExpiredError("403"), True, True]

        summary = run_once(make_settings(dry_run=False), make_client(SKIPPY), web, MagicMock(),
                           now=1000, sleep=MagicMock())

        assert web.login.call_count == 2
        assert summary.deleted == 2
        assert summary.failed == 1

    def test_failed_relogin_stops(self):
        web = MagicMock()
        web.delete_scrobble.side_effect = SessionExpiredError("403")
        web.login.side_effect = [None, LastFMWebAuthError("nope")]

        summary = run_once(make_settings(dry_run=False), make_client(SKIPPY), web, MagicMock(),
                           now=1000, sleep=MagicMock())

        assert web.delete_scrobble.call_count == 1
        assert summary.failed == 1

    def test_initial_login_failure_propagates(self):
        web = MagicMock()
        web.login.side_effect = LastFMWebAuthError("bad password")

        with pytest.raises(LastFMWebAuthError):
            run_once(make_settings(dry_run=False), make_client(SKIPPY), web, MagicMock(), now=1000)

    def test_duration_lookup_failure_treated_as_unknown(self):
        client = make_client(SKIPPY)
        client.get_track_duration.side_effect = RuntimeError("timeout")

        summary = run_once(make_settings(), client, MagicMock(), MagicMock(), now=1000)

        assert summary.duplicates_found == 0
