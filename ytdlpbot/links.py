"""Turning YouTube links into download queue entries."""

import re
import secrets
import string
from urllib.parse import parse_qs, urlparse

from ytdlpbot.storage import QueueEntry

SHORTS_PLAYLIST = "Shorts"

_HASHTAGS = re.compile(r"#.+(,|\Z|\t)?")
_DISALLOWED = re.compile(r"[^0-9a-zA-Zа-яА-Я,!?:;%-\\ ]")
_RANDOM_TITLE_LENGTH = 12


def video_title_filter(title: str) -> str:
    """Make a title safe to use as a file name.

    Hashtags and unsupported characters are dropped; an empty result is
    replaced by a random name.
    """
    title = title.replace(" | ", "-")
    title = _HASHTAGS.sub("", title)
    title = _DISALLOWED.sub("", title)
    title = title.strip()
    if not title:
        title = "".join(secrets.choice(string.ascii_letters) for _ in range(_RANDOM_TITLE_LENGTH))
    return title


def _parse(link: str):
    try:
        return urlparse(link)
    except ValueError:
        return None


def _last_path_segment(link: str) -> str | None:
    parsed = _parse(link)
    if parsed is None:
        return None
    return parsed.path.split("/")[-1]


def _single_video(video_id, youtube, playlist_title) -> list[QueueEntry]:
    channel_title, video_title = youtube.video_info(video_id)
    return [
        QueueEntry(
            video_id=video_id,
            video_title=video_title_filter(video_title),
            channel_title=channel_title,
            playlist_title=playlist_title,
        )
    ]


def _from_path(link, youtube, playlist_title) -> list[QueueEntry]:
    video_id = _last_path_segment(link)
    if video_id is None:
        return []
    return _single_video(video_id, youtube, playlist_title)


def _from_watch(link, youtube) -> list[QueueEntry]:
    parsed = _parse(link)
    if parsed is None:
        return []
    query = parse_qs(parsed.query, keep_blank_values=True)
    if "v" not in query:
        return []
    video_id = query["v"][0]
    channel_title, video_title = youtube.video_info(video_id)
    playlist_title = youtube.playlist_title(query["list"][0]) if "list" in query else ""
    return [
        QueueEntry(
            video_id=video_id,
            video_title=video_title_filter(video_title),
            channel_title=channel_title,
            playlist_title=playlist_title,
        )
    ]


def _from_playlist(link, youtube) -> list[QueueEntry]:
    parsed = _parse(link)
    if parsed is None:
        return []
    query = parse_qs(parsed.query, keep_blank_values=True)
    if "list" not in query:
        return []
    list_id = query["list"][0]
    ids, titles, channel_title = youtube.playlist_items(list_id)
    playlist_title = youtube.playlist_title(list_id)
    return [
        QueueEntry(
            video_id=video_id,
            video_title=video_title_filter(title),
            channel_title=channel_title,
            playlist_title=playlist_title,
        )
        for video_id, title in zip(ids, titles)
    ]


def entries_from_link(link: str, youtube) -> list[QueueEntry]:
    """Queue entries for a video, playlist, live or shorts link; empty if unknown."""
    if "/watch" in link:
        return _from_watch(link, youtube)
    if "/playlist" in link:
        return _from_playlist(link, youtube)
    if "//youtu.be" in link or "/live" in link:
        return _from_path(link, youtube, "")
    if "/shorts" in link:
        return _from_path(link, youtube, SHORTS_PLAYLIST)
    return []