"""
Last.fm web deletion client.

The API has no working delete method, so this logs in through the web form
and posts to the library delete endpoint with the session cookies.

- POST https://www.last.fm/user/{username}/library/delete
- Auth: sessionid + csrftoken cookies from the web login
"""

from __future__ import annotations
import logging
import requests

log = logging.getLogger("lastfm-web")

BASE_URL = "https://www.last.fm"

class LastFMWebError(Exception): ...
class LastFMWebAuthError(LastFMWebError): ...
class SessionExpiredError(LastFMWebError): ...


class LastFMWebClient:
    def __init__(self, username: str, timeout: int = 15, session: requests.Session | None = None):
        self.username = username
        self.timeout = timeout
        self.http = session or requests.Session()
        self.csrftoken: str | None = None
        self.logged_in = False

    def login(self, username: str, password: str) -> None:
        """Log in via the web form. Raises LastFMWebAuthError if no session cookie comes back."""
        self.logged_in = False
        self.http.cookies.clear()

        # Step 1: login page hands out the initial CSRF token
        page = self.http.get(f"{BASE_URL}/login", timeout=self.timeout, allow_redirects=False)
        csrftoken = page.cookies.get("csrftoken") or self.http.cookies.get("csrftoken")
        if not csrftoken:
            raise LastFMWebAuthError("Failed to get CSRF token from login page")

        # Step 2: post credentials; success redirects and sets sessionid
        resp = self.http.post(
            f"{BASE_URL}/login",
            data={
                "csrfmiddlewaretoken": csrftoken,
                "username_or_email": username,
                "password": password,
                "submit": "",
            },
            headers={"Referer": f"{BASE_URL}/login"},
            timeout=self.timeout,
            allow_redirects=False,
        )
        if not self.http.cookies.get("sessionid"):
            raise LastFMWebAuthError(f"Login failed (status {resp.status_code}). Check username/password.")

        self.csrftoken = self.http.cookies.get("csrftoken") or csrftoken
        self.logged_in = True
        log.info("Web login successful")

    def delete_scrobble(self, *, artist: str, track: str, timestamp: int) -> bool:
        """Delete one scrobble. True when Last.fm confirms the deletion."""
        if not self.logged_in:
            raise LastFMWebError("Not logged in")

        resp = self.http.post(
            f"{BASE_URL}/user/{self.username}/library/delete",
            data={
                "csrfmiddlewaretoken": self.csrftoken,
                "artist_name": artist,
                "track_name": track,
                "timestamp": str(timestamp),
                "ajax": "1",
            },
            headers={"Referer": f"{BASE_URL}/user/{self.username}"},
            timeout=self.timeout,
            allow_redirects=False,
        )

        if resp.status_code == 403:
            self.logged_in = False
            raise SessionExpiredError("Session expired (403). Re-authentication needed.")
        if not resp.ok:
            raise LastFMWebError(f"Delete failed with status {resp.status_code}")

        try:
            data = resp.json()
        except ValueError:
            return False
        return isinstance(data, dict) and data.get("result") is True
