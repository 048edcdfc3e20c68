"""Handlers for chat messages, bot commands and dialog buttons."""

import logging
import os
import signal
import subprocess

from ytdlpbot.links import entries_from_link
from ytdlpbot.security import check_auth
from ytdlpbot.youtube import YouTubeError

log = logging.getLogger(__name__)

YES = "dialog_button_yes"
NO = "dialog_button_no"
SERVICE_NAME = "bot-app.service"


def yes_no_keyboard(command: str, reason_message_id: int) -> dict:
    """Inline keyboard with "yes" and "no" buttons for ``command``."""
    return {
        "inline_keyboard": [
            [
                {"text": "Да", "callback_data": f"{command}#{YES}#{reason_message_id}"},
                {"text": "Нет", "callback_data": f"{command}#{NO}#{reason_message_id}"},
            ]
        ]
    }


class CommandHandlers:
    """Reacts to incoming messages and callback queries."""

    def __init__(self, client, storage, youtube, env):
        self.client = client
        self.storage = storage
        self.youtube = youtube
        self.env = env

    def _authorized(self, message: dict) -> bool:
        user_id = message["from"]["id"]
        if check_auth(user_id, self.env):
            return True
        self.client.send_message(
            message["chat"]["id"], f"Пользователь с id {user_id} не авторизован"
        )
        return False

    def _delete(self, message: dict) -> None:
        self.client.delete_messages(message["chat"]["id"], [message["message_id"]])

    def handle_message(self, message: dict) -> None:
        """Queue the videos a link points to."""
        if not self._authorized(message):
            return
        if message["from"]["id"] == self.client.bot_id():
            return
        text = message.get("text", "")
        if text == "/start":
            self._delete(message)
            return
        try:
            entries = entries_from_link(text, self.youtube)
        except YouTubeError as exc:
            log.warning("Link %r could not be resolved: %s", text, exc)
            entries = []
        if not entries:
            self.client.send_message(message["chat"]["id"], "Неизвестная ссылка")
            return
        self.storage.put_entries(entries)
        self._delete(message)

    def handle_restart(self, message: dict) -> None:
        """Ask whether the bot should restart."""
        if self._authorized(message):
            self.send_yes_no_dialog(
                message["chat"]["id"],
                "restart",
                message["message_id"],
                "Вы действительно хотите перезагрузить бота",
            )

    def handle_stop(self, message: dict) -> None:
        """Ask whether the bot should stop."""
        if self._authorized(message):
            self.send_yes_no_dialog(
                message["chat"]["id"],
                "stop",
                message["message_id"],
                "Вы действительно хотите остановить бота",
            )

    def handle_reload_cookies(self, message: dict) -> None:
        """Run the cookie updater script."""
        if not self._authorized(message):
            return
        script = os.path.join(self.env.working_dir, "firefoxCookiesUpdater", "start.sh")
        self._run([script])
        self.client.send_message(message["chat"]["id"], "Куки обновлены")

    def handle_update_ytdlp(self, message: dict) -> None:
        """Let yt-dlp update itself."""
        if not self._authorized(message):
            return
        self._run(["yt-dlp", "-U"])
        self.client.send_message(message["chat"]["id"], "Утилита yt-dlp обновлена")

    def handle_restart_callback(self, query: dict) -> None:
        """Answer to the restart dialog."""
        self._dialog(query, self._self_restart)

    def handle_stop_callback(self, query: dict) -> None:
        """Answer to the stop dialog."""
        self._dialog(query, self._self_stop)

    def send_yes_no_dialog(self, chat_id, command, reason_message_id, text):
        """Send ``text`` with yes/no buttons bound to ``command``."""
        return self.client.send_message(
            chat_id, text, reply_markup=yes_no_keyboard(command, reason_message_id)
        )

    def kill_other_processes(self) -> None:
        """Terminate a registered bot process other than this one."""
        own_pid = os.getpid()
        while (process := self.storage.remove_next_process_except(own_pid)) is not None:
            try:
                os.kill(process.pid, signal.SIGTERM)
            except OSError as exc:
                log.warning("Could not stop process %d: %s", process.pid, exc)

    @staticmethod
    def _run(command: list[str]) -> None:
        try:
            subprocess.run(command, check=False)
        except OSError as exc:
            log.warning("Could not run %s: %s", command[0], exc)

    def _dialog(self, query: dict, action) -> None:
        self.client.answer_callback_query(query["id"], False)
        parts = query.get("data", "").split("#")
        try:
            init_message_id = int(parts[2])
        except (IndexError, ValueError):
            init_message_id = 0
        choice = parts[1] if len(parts) > 1 else ""
        dialog = query["message"]
        if choice in (YES, NO):
            self.client.delete_messages(
                dialog["chat"]["id"], [init_message_id, dialog["message_id"]]
            )
        if choice == YES:
            action(query)

    def _shutdown_others(self) -> None:
        self.kill_other_processes()
        self.storage.remove_next_process_except(-1)

    def _self_restart(self, query: dict) -> None:
        self._shutdown_others()
        if self.env.stage == "DEBUG":
            script = os.path.join(self.env.working_dir, self.env.run_script_name)
            try:
                subprocess.Popen([script, "-r"])
            except OSError as exc:
                log.warning("Could not start %s: %s", script, exc)
            raise SystemExit(0)
        if self.env.stage == "DEPLOY":
            self._run(["systemctl", "restart", SERVICE_NAME])

    def _self_stop(self, query: dict) -> None:
        self._shutdown_others()
        if self.env.stage == "DEBUG":
            self.client.send_message(query["message"]["chat"]["id"], "Бот остановлен")
            raise SystemExit(0)
        if self.env.stage == "DEPLOY":
            self._run(["systemctl", "stop", SERVICE_NAME])