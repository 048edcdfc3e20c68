"""Small client for the Telegram Bot API."""

import logging
from collections.abc import Iterable

import requests

API_ROOT = "https://api.telegram.org"
PARSE_MODE_MARKDOWN = "Markdown"
_HTTP_TIMEOUT = 60

log = logging.getLogger(__name__)


class TelegramError(Exception):
    """Raised when a Bot API call fails."""


class TelegramClient:
    """Calls Bot API methods on behalf of one bot."""

    def __init__(self, token, session=None):
        self.token = token
        self.session = session if session is not None else requests.Session()

    def _url(self, method: str) -> str:
        return f"{API_ROOT}/bot{self.token}/{method}"

    def _call(self, method: str, payload=None, files=None, timeout=_HTTP_TIMEOUT):
        try:
            if files is None:
                response = self.session.post(self._url(method), json=payload or {}, timeout=timeout)
            else:
                response = self.session.post(
                    self._url(method), data=payload or {}, files=files, timeout=timeout
                )
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise TelegramError(f"{method} failed: {exc}") from exc
        if not body.get("ok"):
            raise TelegramError(f"{method} failed: {body.get('description', 'unknown error')}")
        return body.get("result")

    def bot_id(self) -> int:
        """The bot's user id, taken from the token."""
        prefix = self.token.split(":", 1)[0]
        try:
            return int(prefix)
        except ValueError as exc:
            raise TelegramError("the token does not start with a bot id") from exc

    def send_message(self, chat_id, text, parse_mode=None, reply_markup=None) -> dict:
        """Send a text message and return it."""
        payload = {"chat_id": chat_id, "text": text}
        if parse_mode is not None:
            payload["parse_mode"] = parse_mode
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        return self._call("sendMessage", payload)

    def edit_message_text(self, chat_id, message_id, text):
        """Replace the text of a message."""
        return self._call(
            "editMessageText", {"chat_id": chat_id, "message_id": message_id, "text": text}
        )

    def _send_file(self, method, field, chat_id, filename, data, caption) -> dict:
        payload = {"chat_id": str(chat_id)}
        if caption:
            payload["caption"] = caption
        return self._call(method, payload, files={field: (filename, data)})

    def send_document(self, chat_id, filename, data, caption="") -> dict:
        """Upload ``data`` as a document named ``filename``."""
        return self._send_file("sendDocument", "document", chat_id, filename, data, caption)

    def send_video(self, chat_id, filename, data, caption="") -> dict:
        """Upload ``data`` as a video named ``filename``."""
        return self._send_file("sendVideo", "video", chat_id, filename, data, caption)

    def delete_messages(self, chat_id, message_ids: Iterable[int]):
        """Delete several messages of a chat."""
        return self._call(
            "deleteMessages", {"chat_id": chat_id, "message_ids": list(message_ids)}
        )

    def pin_chat_message(self, chat_id, message_id):
        """Pin a message in a chat."""
        return self._call("pinChatMessage", {"chat_id": chat_id, "message_id": message_id})

    def set_my_commands(self, commands: Iterable[tuple[str, str]]):
        """Publish the bot's command list from ``(command, description)`` pairs."""
        listed = [
            {"command": command, "description": description} for command, description in commands
        ]
        return self._call("setMyCommands", {"commands": listed})

    def answer_callback_query(self, callback_query_id, show_alert=False):
        """Acknowledge a button press."""
        return self._call(
            "answerCallbackQuery",
            {"callback_query_id": callback_query_id, "show_alert": show_alert},
        )

    def get_updates(self, offset=None, timeout=30) -> list[dict]:
        """Long-poll for updates newer than ``offset``."""
        payload = {"timeout": timeout}
        if offset is not None:
            payload["offset"] = offset
        return self._call("getUpdates", payload, timeout=timeout + _HTTP_TIMEOUT) or []