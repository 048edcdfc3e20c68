"""Minimal client for the YouTube Data API v3."""

import requests

API_ROOT = "https://www.googleapis.com/youtube/v3"
PLAYLIST_PAGE_SIZE = 300


class YouTubeError(Exception):
    """Raised when the API fails or returns nothing usable."""


class YouTubeClient:
    """Looks up video and playlist metadata."""

    def __init__(self, api_key, session=None):
        self.api_key = api_key
        self.session = session if session is not None else requests.Session()

    def _items(self, resource: str, **params) -> list[dict]:
        query = {"part": "snippet", "key": self.api_key, **params}
        try:
            response = self.session.get(f"{API_ROOT}/{resource}", params=query, timeout=30)
        except requests.RequestException as exc:
            raise YouTubeError(f"request to {resource} failed: {exc}") from exc
        if response.status_code != 200:
            raise YouTubeError(f"{resource} returned HTTP {response.status_code}")
        items = response.json().get("items") or []
        if not items:
            raise YouTubeError(f"{resource} returned no items")
        return items

    def video_info(self, video_id: str) -> tuple[str, str]:
        """Return ``(channel_title, video_title)`` for a video."""
        snippet = self._items("videos", id=video_id)[0]["snippet"]
        return snippet["channelTitle"], snippet["title"]

    def playlist_title(self, list_id: str) -> str:
        """Return the title of a playlist."""
        return self._items("playlists", id=list_id)[0]["snippet"]["title"]

    def playlist_items(self, list_id: str) -> tuple[list[str], list[str], str]:
        """Return ``(video_ids, video_titles, channel_title)`` for a playlist."""
        items = self._items("playlistItems", playlistId=list_id, maxResults=PLAYLIST_PAGE_SIZE)
        snippets = [item["snippet"] for item in items]
        video_ids = [s["resourceId"]["videoId"] for s in snippets]
        titles = [s["title"] for s in snippets]
        return video_ids, titles, snippets[0]["channelTitle"]