"""Command-line entry point that starts the bot and the downloader."""

import logging
import os
import sys
import threading
from datetime import datetime

from ytdlpbot.bot import DATE_FORMAT, YtBot
from ytdlpbot.environment import ConfigError, load_environment
from ytdlpbot.executors import Downloader
from ytdlpbot.handlers import CommandHandlers
from ytdlpbot.storage import RegisteredProcess, Storage
from ytdlpbot.telegram import TelegramClient, TelegramError
from ytdlpbot.youtube import YouTubeClient

log = logging.getLogger(__name__)


def bot_start_text(argv) -> str:
    """Announcement for the chat: a restart when ``-r`` was given."""
    return "Бот перезапущен" if "-r" in argv else "Бот запущен"


def main(argv=None) -> int:
    """Run the bot until interrupted."""
    if argv is None:
        argv = sys.argv[1:]
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    try:
        env = load_environment()
    except ConfigError as exc:
        log.error("%s", exc)
        return 1

    storage = Storage(env.db_file)
    storage.create_tables()
    client = TelegramClient(env.telegram_token)
    youtube = YouTubeClient(env.google_token)
    handlers = CommandHandlers(client, storage, youtube, env)
    bot = YtBot(env, client, storage, handlers)

    log.info("Starting bot (pid=%d)", os.getpid())
    bot.init_commands()
    bot.delete_all_messages()
    try:
        bot.send_message(bot_start_text(argv))
    except TelegramError as exc:
        log.error("Start message not sent: %s", exc)

    stop = threading.Event()
    downloader = Downloader(bot, storage, env)
    worker = threading.Thread(target=downloader.run, args=(stop,), daemon=True)
    worker.start()
    storage.put_process(RegisteredProcess(pid=os.getpid(), date=datetime.now().strftime(DATE_FORMAT)))
    try:
        bot.run(stop)
    except KeyboardInterrupt:
        log.info("Interrupted")
    finally:
        stop.set()
    return 0


if __name__ == "__main__":
    sys.exit(main())