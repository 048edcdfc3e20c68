"""SQLite persistence for the download queue, sent messages and processes."""

import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass

log = logging.getLogger(__name__)


@dataclass
class QueueEntry:
    """A video waiting to be downloaded."""

    video_id: str
    video_title: str
    channel_title: str
    playlist_title: str
    in_work: int = 0


@dataclass
class Message:
    """A chat message the bot has sent."""

    id: int
    date: str


@dataclass
class RegisteredProcess:
    """A running bot process."""

    pid: int
    date: str


_SCHEMA = (
    "CREATE TABLE IF NOT EXISTS DOWNLOAD_QUEUE ("
    "VIDEO_ID TEXT PRIMARY KEY NOT NULL, VIDEO_TITLE TEXT NOT NULL, "
    "CHANNEL_TITLE TEXT NOT NULL, PLAYLIST_TITLE TEXT NOT NULL, "
    "IN_WORK INTEGER NOT NULL)",
    "CREATE TABLE IF NOT EXISTS MESSAGES ("
    "ID INTEGER PRIMARY KEY NOT NULL, DATE_TIME_OF_CREATION TEXT NOT NULL)",
    "CREATE TABLE IF NOT EXISTS PIDS ("
    "PID INTEGER PRIMARY KEY NOT NULL, DATE_TIME_OF_CREATION TEXT NOT NULL)",
)

_INSERT_ENTRY = (
    "INSERT INTO DOWNLOAD_QUEUE "
    "(VIDEO_ID, VIDEO_TITLE, CHANNEL_TITLE, PLAYLIST_TITLE, IN_WORK) "
    "VALUES (?, ?, ?, ?, ?)"
)


def _entry_row(entry: QueueEntry) -> tuple:
    return (
        entry.video_id,
        entry.video_title,
        entry.channel_title,
        entry.playlist_title,
        entry.in_work,
    )


class Storage:
    """Access to the bot's SQLite database file."""

    def __init__(self, path):
        self.path = path

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.path, timeout=30, isolation_level=None)
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    def create_tables(self) -> None:
        """Create the tables that do not exist yet."""
        log.info("Creating tables")
        with self._transaction() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)

    # Download queue

    def put_entries(self, entries: Iterable[QueueEntry]) -> None:
        """Queue all entries; if any is already queued, none are added."""
        rows = [_entry_row(entry) for entry in entries]
        if not rows:
            return
        try:
            with self._transaction() as conn:
                conn.executemany(_INSERT_ENTRY, rows)
        except sqlite3.IntegrityError as exc:
            log.warning("Entries not queued: %s", exc)

    def put_entry(self, entry: QueueEntry) -> None:
        """Queue one entry."""
        self.put_entries([entry])

    def remove_entry(self, entry: QueueEntry) -> None:
        """Drop an entry from the queue."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM DOWNLOAD_QUEUE WHERE VIDEO_ID=?", (entry.video_id,))

    def reset_all_in_work(self) -> None:
        """Mark every entry as not being worked on."""
        with self._transaction() as conn:
            conn.execute("UPDATE DOWNLOAD_QUEUE SET IN_WORK=0 WHERE IN_WORK=1")

    def reset_in_work(self, entry: QueueEntry) -> None:
        """Mark one entry as not being worked on."""
        with self._transaction() as conn:
            conn.execute(
                "UPDATE DOWNLOAD_QUEUE SET IN_WORK=0 WHERE VIDEO_ID=?", (entry.video_id,)
            )

    def take_next_entry(self) -> QueueEntry | None:
        """Claim the next idle entry, or return None if there is none.

        The claimed entry is re-inserted, so it moves to the back of the queue.
        """
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT VIDEO_ID, VIDEO_TITLE, CHANNEL_TITLE, PLAYLIST_TITLE, IN_WORK "
                "FROM DOWNLOAD_QUEUE WHERE IN_WORK=0 LIMIT 1"
            ).fetchone()
            if row is None:
                return None
            entry = QueueEntry(*row)
            entry.in_work = 1
            conn.execute("DELETE FROM DOWNLOAD_QUEUE WHERE VIDEO_ID=?", (entry.video_id,))
            conn.execute(_INSERT_ENTRY, _entry_row(entry))
        return entry

    def clear_queue(self) -> None:
        """Drop every queued entry."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM DOWNLOAD_QUEUE")

    # Messages

    def message_ids(self, clear: bool = False) -> list[int]:
        """Ids of all recorded messages, optionally forgetting them."""
        with self._transaction() as conn:
            ids = [row[0] for row in conn.execute("SELECT ID FROM MESSAGES")]
            if clear:
                conn.execute("DELETE FROM MESSAGES")
        return ids

    def put_message(self, message: Message) -> None:
        """Record a sent message; a repeated id is ignored."""
        try:
            with self._transaction() as conn:
                conn.execute(
                    "INSERT INTO MESSAGES (ID, DATE_TIME_OF_CREATION) VALUES (?, ?)",
                    (message.id, message.date),
                )
        except sqlite3.IntegrityError:
            log.warning("Message with id=%d is already recorded", message.id)

    def messages_excluding(self, message_id: int) -> list[Message]:
        """All recorded messages except the one with ``message_id``."""
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT ID, DATE_TIME_OF_CREATION FROM MESSAGES WHERE ID!=?",
                (message_id,),
            ).fetchall()
        return [Message(*row) for row in rows]

    def delete_message(self, message_id: int) -> None:
        """Forget a recorded message."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM MESSAGES WHERE ID=?", (message_id,))

    # Processes

    def clear_processes(self) -> None:
        """Forget all registered processes."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM PIDS")

    def put_process(self, process: RegisteredProcess) -> None:
        """Register a process; a repeated pid raises ``sqlite3.IntegrityError``."""
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO PIDS (PID, DATE_TIME_OF_CREATION) VALUES (?, ?)",
                (process.pid, process.date),
            )

    def remove_next_process_except(self, pid: int) -> RegisteredProcess | None:
        """Return one process other than ``pid`` and forget all of those.

        Returns None when no other process is registered.
        """
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT PID, DATE_TIME_OF_CREATION FROM PIDS WHERE NOT PID=? LIMIT 1",
                (pid,),
            ).fetchone()
            if row is None:
                return None
            conn.execute("DELETE FROM PIDS WHERE NOT PID=?", (pid,))
        return RegisteredProcess(*row)