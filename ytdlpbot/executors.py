"""Background downloading of queued videos and the chat status board."""

import logging
import os
import subprocess
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack
from datetime import datetime, timedelta, timezone

from ytdlpbot.bot import DATE_FORMAT
from ytdlpbot.links import SHORTS_PLAYLIST
from ytdlpbot.telegram import TelegramError

log = logging.getLogger(__name__)

DOWNLOADING = "⏬"
DONE = "✅"
FAILED = "❌"
BOARD_SIZE = 10
TRY_LIMIT = 3
QUEUE_SIZE = 8
MESSAGE_LIFETIME = timedelta(hours=1)
_LOG_STAMP = "%Y:%m:%d %H:%M:%S"


class DownloadBoard:
    """A pinned chat message listing recent downloads and their status."""

    def __init__(self, bot):
        self.bot = bot
        self.message_id = 0
        self._tasks: dict[str, str] = {}
        self._lock = threading.RLock()

    def set_status(self, title: str, status: str) -> None:
        """Set the status of a download and update the message."""
        with self._lock:
            self._tasks[title] = status
            self.refresh()

    def _trim(self) -> None:
        for title, status in list(self._tasks.items()):
            if status != DOWNLOADING:
                del self._tasks[title]
            if len(self._tasks) == BOARD_SIZE:
                break

    def render(self) -> str:
        """Text of the board; finished downloads are dropped once it overflows."""
        with self._lock:
            if len(self._tasks) > BOARD_SIZE:
                self._trim()
            lines = ["Список загрузки:\n"]
            if not self._tasks:
                lines.append("_пусто_")
            for number, (title, status) in enumerate(self._tasks.items(), start=1):
                if number > BOARD_SIZE:
                    break
                lines.append(f"{number}. {title} {status}\n")
            return "".join(lines)

    def refresh(self) -> None:
        """Show the current board, pinning it when a new message had to be sent."""
        with self._lock:
            old_id = self.message_id
            try:
                new_id = self.bot.edit_message_create_if_not_exist(old_id, self.render())
            except TelegramError as exc:
                log.warning("Download list could not be shown: %s", exc)
                return
            self.message_id = new_id
            if new_id != old_id:
                self.bot.pin_message(new_id)


class Downloader:
    """Takes entries from the queue and downloads them with yt-dlp."""

    def __init__(self, bot, storage, env, workers=None):
        self.bot = bot
        self.storage = storage
        self.env = env
        self.workers = workers if workers is not None else max(1, (os.cpu_count() or 2) - 1)
        self.board = DownloadBoard(bot)
        self._tries: dict[str, int] = {}
        self._tries_lock = threading.Lock()

    def target_dir(self, entry) -> str:
        """Directory an entry is saved to; it and the log directory are created."""
        root = self.env.download_root
        if entry.playlist_title == SHORTS_PLAYLIST:
            path = f"{root}/Youtube/!Shorts/"
        else:
            path = f"{root}/Youtube/{entry.channel_title}/{entry.playlist_title}/"
        os.makedirs(path, exist_ok=True)
        os.makedirs(f"{self.env.working_dir}/logs/", exist_ok=True)
        return path

    @staticmethod
    def _open_log(stack: ExitStack, path: str):
        try:
            return stack.enter_context(open(path, "wb"))
        except OSError:
            log.error("Could not create log file %s", path)
            return subprocess.DEVNULL

    def download(self, entry) -> bool:
        """Run one download attempt; return True if the file was produced."""
        self.board.set_status(entry.video_title, DOWNLOADING)
        with self._tries_lock:
            self._tries[entry.video_id] = self._tries.get(entry.video_id, 0) + 1
        path = self.target_dir(entry)
        file_name = f"{path}{entry.video_title}.mp4"
        command = [
            "yt-dlp", "-t", "mp4", "-U",
            "-o", f"{path}%(title&{entry.video_title})s.%(ext)s",
            "--cookies", "./cookies.txt",
            f"https://www.youtube.com/watch?v={entry.video_id}",
        ]
        log.info("%s", " ".join(command))
        stamp = datetime.now().strftime(_LOG_STAMP)
        prefix = f"{self.env.working_dir}/logs/{stamp}_{entry.video_id}"
        out_path, err_path = f"{prefix}_out.txt", f"{prefix}_err.txt"
        with ExitStack() as stack:
            out = self._open_log(stack, out_path)
            err = self._open_log(stack, err_path)
            try:
                subprocess.run(command, stdout=out, stderr=err, check=False)
            except OSError as exc:
                log.error("Could not run yt-dlp: %s", exc)
        success = self.check_success(file_name, entry, err_path)
        if success and SHORTS_PLAYLIST in entry.playlist_title:
            self.bot.send_video(entry.video_title, f"{entry.video_title}.mp4", file_name)
        return success

    def check_success(self, file_name: str, entry, err_file_path: str) -> bool:
        """Settle an attempt: finish, give up after the try limit, or requeue."""
        if os.path.exists(file_name):
            log.info("%s downloaded", entry.video_title)
            self.storage.remove_entry(entry)
            with self._tries_lock:
                self._tries.pop(entry.video_id, None)
            self.board.set_status(entry.video_title, DONE)
            return True
        with self._tries_lock:
            tries = self._tries.get(entry.video_id, 0)
            exhausted = tries >= TRY_LIMIT
            if exhausted:
                del self._tries[entry.video_id]
        if exhausted:
            self.storage.remove_entry(entry)
            log.warning("%s not downloaded, try limit reached", entry.video_title)
            self.bot.send_document(
                f"Ошибка скачивания видео{entry.video_title}", "Stderr.txt", err_file_path
            )
            self.board.set_status(entry.video_title, FAILED)
        else:
            self.storage.reset_in_work(entry)
            log.info("%s not downloaded, will retry", entry.video_title)
        return False

    def _work(self, entry) -> None:
        try:
            self.download(entry)
        except Exception:
            log.exception("Download of %s failed", entry.video_id)
            self.storage.reset_in_work(entry)

    def run(self, stop_event) -> None:
        """Download queued entries until ``stop_event`` is set."""
        self.board.refresh()
        self.storage.reset_all_in_work()
        if os.environ.get("USER") == "root":
            try:
                subprocess.Popen(["wg-quick", "up", "yt-dlp"])
            except OSError as exc:
                log.warning("Could not bring up the tunnel: %s", exc)
        slots = threading.BoundedSemaphore(self.workers + QUEUE_SIZE)
        pool = ThreadPoolExecutor(max_workers=self.workers)
        try:
            while not stop_event.is_set():
                if not slots.acquire(timeout=1):
                    continue
                entry = self.storage.take_next_entry()
                if entry is None:
                    slots.release()
                    stop_event.wait(1)
                    continue
                future = pool.submit(self._work, entry)
                future.add_done_callback(lambda _future: slots.release())
        finally:
            pool.shutdown(wait=False, cancel_futures=True)


def clean_old_messages(bot, storage, exclude_id, now=None) -> list[int]:
    """Delete recorded messages older than an hour, except ``exclude_id``.

    Messages whose date cannot be read count as old. Returns the deleted ids.
    """
    if now is None:
        now = datetime.now(timezone.utc).replace(tzinfo=None)
    deleted = []
    for message in storage.messages_excluding(exclude_id):
        try:
            created = datetime.strptime(message.date, DATE_FORMAT)
        except ValueError:
            created = datetime.min
        if now - created >= MESSAGE_LIFETIME:
            bot.delete_message(message.id)
            deleted.append(message.id)
    return deleted