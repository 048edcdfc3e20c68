"""Telegram bot that queues YouTube links in SQLite and downloads them with yt-dlp."""

__version__ = "0.1.0"