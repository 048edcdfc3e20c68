# ytdlpbot

A personal Telegram bot that takes YouTube links, puts the videos in a
download queue kept in SQLite, and downloads them with `yt-dlp` in the
background. A pinned message in the chat lists the last downloads with
their status (⏬ downloading, ✅ done, ❌ failed). Videos from a playlist
whose title contains "Shorts" are uploaded back to the chat once they are
on disk.

## What it understands

Send the bot any of these links:

- `https://www.youtube.com/watch?v=...`: one video. If the link also has a
  `list=` parameter, the playlist title is used as the folder name.
- `https://www.youtube.com/playlist?list=...`: every video of the playlist.
- `https://youtu.be/...` and `.../live/...`: one video.
- `https://www.youtube.com/shorts/...`: a short, stored under `!Shorts`.

Any other text gets the reply "Неизвестная ссылка". This reply is also sent
when the YouTube API cannot resolve the link. A link that was understood is
deleted from the chat once its videos are queued, and so is `/start`.

Titles are cleaned before use. Hashtags and characters other than Latin and
Cyrillic letters, digits and a few punctuation marks are removed. A title
that ends up empty gets a random 12-letter name.

Videos are saved to `<DOWNLOAD_ROOT>/Youtube/<channel>/<playlist>/<title>.mp4`.
Shorts are saved to `<DOWNLOAD_ROOT>/Youtube/!Shorts/<title>.mp4`.

The stdout and stderr of every `yt-dlp` run are written to `<WORKING_DIR>/logs/`.
A failed download goes back into the queue. After the third failure it is
dropped, and its stderr log is sent to the chat as `Stderr.txt`.

## Commands

Only the configured root user and the bot itself are accepted. Anyone else
is told that their id is not authorised.

| Command           | Action                                                  |
|-------------------|---------------------------------------------------------|
| `/restart`        | restart the bot, after a yes/no confirmation            |
| `/stop`           | stop the bot, after a yes/no confirmation               |
| `/reload_cookies` | run `<WORKING_DIR>/firefoxCookiesUpdater/start.sh`      |
| `/update_ytdlp`   | run `yt-dlp -U`                                         |

When a restart or stop is confirmed, the bot first sends SIGTERM to every
other bot process registered in the database. What happens next depends on
the stage:

- In the `DEBUG` stage, a restart starts `<WORKING_DIR>/<RUN_SCRIPT_NAME> -r`
  and the bot exits. A stop posts "Бот остановлен" and the bot exits.
- In the `DEPLOY` stage, the bot runs `systemctl restart bot-app.service` or
  `systemctl stop bot-app.service`.

## Requirements

- `yt-dlp` on `PATH`.
- A `cookies.txt` in the directory the bot runs from.
- A Telegram bot token and a YouTube Data API v3 key.

If the bot runs as `root`, it also runs `wg-quick up yt-dlp` when the
downloader starts.

## Configuration

All settings are read from the environment. Each name may be given with the
`MYAPP_` prefix or without it; the prefixed form wins. A missing required
setting stops the program with an error.

| Variable          | Meaning                                              |
|-------------------|------------------------------------------------------|
| `TELEGRAM_TOKEN`  | Telegram bot token                                   |
| `GOOGLE_TOKEN`    | YouTube Data API key                                 |
| `CHAT_ID`         | chat the bot reports to (integer)                    |
| `DB_FILE`         | path of the SQLite database                          |
| `DOWNLOAD_ROOT`   | where videos are stored                              |
| `WORKING_DIR`     | where logs and helper scripts live                   |
| `RUN_SCRIPT_NAME` | script in `WORKING_DIR` used to restart in `DEBUG`   |
| `ROOT_USER_ID`    | Telegram id of the user allowed to use the bot       |
| `STAGE`           | `DEBUG` (default) or `DEPLOY`                        |

## Running

```sh
pip install .
export TELEGRAM_TOKEN=token GOOGLE_TOKEN=placeholder CHAT_ID=1 \
       DB_FILE=bot.db DOWNLOAD_ROOT=/srv/media WORKING_DIR=$PWD \
       RUN_SCRIPT_NAME=run.sh ROOT_USER_ID=1
ytdlpbot
```

On start the bot does the following:

1. Creates its tables and publishes its command menu.
2. Deletes the messages it recorded on earlier runs.
3. Posts "Бот запущен", or "Бот перезапущен" when it is started as
   `ytdlpbot -r`.
4. Long-polls Telegram for updates.

Stop it with Ctrl+C.

## Using it as a library

The parts can be used on their own:

- `ytdlpbot.storage.Storage`: the SQLite queue, message and process tables.
- `ytdlpbot.links.entries_from_link`: turns a link into queue entries.
- `ytdlpbot.links.video_title_filter`: cleans a video title.
- `ytdlpbot.youtube.YouTubeClient`: video and playlist lookups.
- `ytdlpbot.telegram.TelegramClient`: the Bot API calls the bot makes.
- `ytdlpbot.executors.Downloader`: the download loop.

`ytdlpbot.executors.clean_old_messages(bot, storage, exclude_id)` deletes
recorded messages older than an hour. The bot itself never calls it.

## Limitations

- Updates arrive only by long polling; there is no webhook mode.
- A playlist link queues at most the videos returned by a single API request.

## Tests

```sh
pip install .[test]
pytest
```