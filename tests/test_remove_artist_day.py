"""Tests for removing one artist's scrobbles from yesterday."""

from datetime import datetime, timezone
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import pytest

from scrobble_cleaner.lastfm_web import SessionExpiredError
from scrobble_cleaner.models import Scrobble
from scrobble_cleaner.remove_artist_day import match_artist, remove_artist_day, yesterday_window
from tests.helpers import make_client, make_settings

OSLO = ZoneInfo("Europe/Oslo")
NOW = datetime(2024, 2, 10, 9, 30, tzinfo=OSLO)


def utc(*args):
    return int(datetime(*args, tzinfo=timezone.utc).timestamp())


YESTERDAY = [
    Scrobble("Jonas Alaska", "Freeze", utc(2024, 2, 9, 20, 0)),
    Scrobble("Someone Else", "Song", utc(2024, 2, 9, 19, 0)),
    Scrobble("jonas alaska", "Summer", utc(2024, 2, 9, 8, 0)),
]


class TestYesterdayWindow:
    def test_winter_day(self):
        assert yesterday_window(NOW) == (utc(2024, 2, 8, 23, 0), utc(2024, 2, 9, 23, 0) - 1)

    def test_day_with_dst_change_is_short(self):
        start, end = yesterday_window(datetime(2024, 4, 1, 12, 0, tzinfo=OSLO))
        assert start == utc(2024, 3, 30, 23, 0)
        assert end == utc(2024, 3, 31, 22, 0) - 1


class TestMatchArtist:
    def test_case_insensitive(self):
        assert [s.track for s in match_artist(YESTERDAY, "JONAS ALASKA")] == ["Freeze", "Summer"]

    def test_no_partial_match(self):
        assert match_artist(YESTERDAY, "Jonas") == []


class TestRemoveArtistDay:
    def test_deletes_matches(self):
        client, web, sleep = make_client(YESTERDAY), MagicMock(), MagicMock()
        web.delete_scrobble.return_value = True

        result = remove_artist_day(make_settings(), client, web, "Jonas Alaska", NOW, sleep=sleep)

        assert result == (2, 0)
        client.get_recent_scrobbles.assert_called_once_with(
            "me", utc(2024, 2, 8, 23, 0), utc(2024, 2, 9, 23, 0) - 1
        )
        web.login.assert_called_once_with("me", "pw")
        assert [c.kwargs["track"] for c in web.delete_scrobble.call_args_list] == ["Freeze", "Summer"]
        assert sleep.call_count == 1

    def test_nothing_to_do(self):
        web = MagicMock()
        assert remove_artist_day(make_settings(), make_client(YESTERDAY), web, "Nobody", NOW) == (0, 0)
        web.login.assert_not_called()

    def test_declined_confirmation(self):
        web, confirm = MagicMock(), MagicMock(return_value=False)

        result = remove_artist_day(make_settings(), make_client(YESTERDAY), web, "Jonas Alaska", NOW,
                                   confirm=confirm)

        assert result == (0, 0)
        assert len(confirm.call_args.args[0]) == 2
        web.delete_scrobble.assert_not_called()

    def test_dry_run(self):
        web, confirm = MagicMock(), MagicMock()

        remove_artist_day(make_settings(), make_client(YESTERDAY), web, "Jonas Alaska", NOW,
                          confirm=confirm, dry_run=True)

        confirm.assert_not_called()
        web.login.assert_not_called()

    def test_expired_session_relogs(self):
        web = MagicMock()
        web.delete_scrobble.side_effect = [SessionExpiredError("403"), True]

        result = remove_artist_day(make_settings(), make_client(YESTERDAY), web, "Jonas Alaska", NOW,
                                   sleep=MagicMock())

        assert result == (1, 1)
        assert web.login.call_count == 2

    def test_password_required(self):
        with pytest.raises(SystemExit, match="LASTFM_PASSWORD"):
            remove_artist_day(make_settings(password=None), make_client(YESTERDAY), MagicMock(),
                              "Jonas Alaska", NOW)
