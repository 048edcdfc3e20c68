"""The chat-facing side of the bot: messages, uploads and update dispatch."""

import logging
from datetime import datetime, timezone

from ytdlpbot.storage import Message
from ytdlpbot.telegram import PARSE_MODE_MARKDOWN, TelegramError

log = logging.getLogger(__name__)

COMMANDS = (
    ("restart", "Перезагрузить бота"),
    ("stop", "Остановить бота"),
    ("reload_cookies", "Перезагрузить куки"),
    ("update_ytdlp", "Обновить утилиту yt-dlp"),
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
POLL_TIMEOUT = 10
_RETRY_DELAY = 1.0


class YtBot:
    """Talks to the configured chat and routes incoming updates to handlers."""

    def __init__(self, env, client, storage, handlers):
        self.env = env
        self.chat_id = env.chat_id
        self.client = client
        self.storage = storage
        self.handlers = handlers
        self._text_routes = {
            "/restart": handlers.handle_restart,
            "/stop": handlers.handle_stop,
            "/reload_cookies": handlers.handle_reload_cookies,
            "/update_ytdlp": handlers.handle_update_ytdlp,
        }
        self._callback_routes = (
            ("restart#dialog_button", handlers.handle_restart_callback),
            ("stop#dialog_button", handlers.handle_stop_callback),
        )

    def _record(self, message: dict) -> None:
        now = datetime.now(timezone.utc).strftime(DATE_FORMAT)
        self.storage.put_message(Message(id=message["message_id"], date=now))

    def send_message(self, text: str) -> int:
        """Send a Markdown message to the chat, record it and return its id."""
        try:
            message = self.client.send_message(
                self.chat_id, text, parse_mode=PARSE_MODE_MARKDOWN
            )
        except TelegramError:
            log.error("Could not send message %r to chat %d", text, self.chat_id)
            raise
        self._record(message)
        return message["message_id"]

    def edit_message_create_if_not_exist(self, message_id: int, text: str) -> int:
        """Edit a message, or send a new one if that fails; return the id in use."""
        try:
            self.client.edit_message_text(self.chat_id, message_id, text)
        except TelegramError:
            log.info("Message with id=%d cannot be edited", message_id)
            return self.send_message(text)
        return message_id

    def _upload(self, send, kind, caption, filename, file_path):
        try:
            with open(file_path, "rb") as handle:
                payload = handle.read()
        except OSError:
            log.error("Could not read file %s", file_path)
            return None
        try:
            message = send(self.chat_id, filename, payload, caption)
        except TelegramError as exc:
            log.error("Could not send %s %s to chat %d: %s", kind, file_path, self.chat_id, exc)
            return None
        self._record(message)
        return message["message_id"]

    def send_document(self, caption: str, filename: str, file_path: str) -> int | None:
        """Upload a file as a document; return the message id, or None on failure."""
        return self._upload(self.client.send_document, "document", caption, filename, file_path)

    def send_video(self, caption: str, filename: str, file_path: str) -> int | None:
        """Upload a file as a video; return the message id, or None on failure."""
        return self._upload(self.client.send_video, "video", caption, filename, file_path)

    def delete_messages(self, message_ids) -> None:
        """Delete messages from the chat."""
        try:
            self.client.delete_messages(self.chat_id, list(message_ids))
        except TelegramError as exc:
            log.warning("Could not delete messages: %s", exc)

    def delete_message(self, message_id: int) -> None:
        """Delete one message from the chat and forget it."""
        self.delete_messages([message_id])
        self.storage.delete_message(message_id)

    def delete_all_messages(self) -> None:
        """Delete every recorded message and forget them all."""
        log.info("Clearing message history")
        self.delete_messages(self.storage.message_ids(clear=True))

    def pin_message(self, message_id: int) -> None:
        """Pin a message in the chat."""
        try:
            self.client.pin_chat_message(self.chat_id, message_id)
        except TelegramError as exc:
            log.warning("Could not pin message %d: %s", message_id, exc)

    def init_commands(self) -> None:
        """Publish the bot's command menu."""
        try:
            self.client.set_my_commands(COMMANDS)
        except TelegramError as exc:
            log.warning("Could not set commands: %s", exc)

    def dispatch(self, update: dict) -> None:
        """Hand one update to the handler that matches it."""
        message = update.get("message")
        if message is not None:
            handler = self._text_routes.get(message.get("text"), self.handlers.handle_message)
            handler(message)
            return
        query = update.get("callback_query")
        if query is not None:
            data = query.get("data", "")
            for prefix, handler in self._callback_routes:
                if data.startswith(prefix):
                    handler(query)
                    return

    def run(self, stop_event) -> None:
        """Poll for updates and dispatch them until ``stop_event`` is set."""
        offset = None
        while not stop_event.is_set():
            try:
                updates = self.client.get_updates(offset, POLL_TIMEOUT)
            except TelegramError as exc:
                log.warning("Polling failed: %s", exc)
                stop_event.wait(_RETRY_DELAY)
                continue
            for update in updates:
                offset = update["update_id"] + 1
                try:
                    self.dispatch(update)
                except Exception:
                    log.exception("Update %d could not be handled", update["update_id"])