import pytest
import requests

from ytdlpbot.youtube import YouTubeClient, YouTubeError


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        if self.error is not None:
            raise self.error
        return self.response


def test_video_info():
    session = FakeSession(
        FakeResponse({"items": [{"snippet": {"channelTitle": "Chan", "title": "Vid"}}]})
    )
    client = YouTubeClient("placeholder", session)
    assert client.video_info("abc") == ("Chan", "Vid")
    url, params = session.calls[0]
    assert url.endswith("/videos")
    assert params == {"part": "snippet", "key": "placeholder", "id": "abc"}


def test_playlist_title():
    session = FakeSession(FakeResponse({"items": [{"snippet": {"title": "My list"}}]}))
    client = YouTubeClient("placeholder", session)
    assert client.playlist_title("PL1") == "My list"
    url, params = session.calls[0]
    assert url.endswith("/playlists")
    assert params["id"] == "PL1"


def test_playlist_items():
    payload = {
        "items": [
            {"snippet": {"title": "One", "channelTitle": "Chan", "resourceId": {"videoId": "v1"}}},
            {"snippet": {"title": "Two", "channelTitle": "Chan", "resourceId": {"videoId": "v2"}}},
        ]
    }
    session = FakeSession(FakeResponse(payload))
    client = YouTubeClient("placeholder", session)
    assert client.playlist_items("PL1") == (["v1", "v2"], ["One", "Two"], "Chan")
    url, params = session.calls[0]
    assert url.endswith("/playlistItems")
    assert params["playlistId"] == "PL1"
    assert params["maxResults"] == 300


def test_empty_items_raise():
    client = YouTubeClient("placeholder", FakeSession(FakeResponse({"items": []})))
    with pytest.raises(YouTubeError):
        client.video_info("abc")


def test_http_error_raises():
    client = YouTubeClient("placeholder", FakeSession(FakeResponse({}, status_code=403)))
    with pytest.raises(YouTubeError, match="403"):
        client.playlist_title("PL1")


def test_transport_error_raises():
    session = FakeSession(error=requests.ConnectionError("down"))
    client = YouTubeClient("placeholder", session)
    with pytest.raises(YouTubeError):
        client.playlist_items("PL1")