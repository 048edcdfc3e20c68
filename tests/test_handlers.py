import os
from unittest import mock

import pytest

from ytdlpbot.environment import Environment
from ytdlpbot.handlers import CommandHandlers, yes_no_keyboard
from ytdlpbot.storage import RegisteredProcess, Storage
from ytdlpbot.youtube import YouTubeError

ROOT_ID = 1001
BOT_ID = 2002
CHAT_ID = -500
STRANGER_ID = 3003


class FakeClient:
    def __init__(self):
        self.sent = []
        self.deleted = []
        self.answered = []

    def bot_id(self):
        return BOT_ID

    def send_message(self, chat_id, text, parse_mode=None, reply_markup=None):
        self.sent.append((chat_id, text, reply_markup))
        return {"message_id": len(self.sent)}

    def delete_messages(self, chat_id, message_ids):
        self.deleted.append((chat_id, list(message_ids)))
        return True

    def answer_callback_query(self, callback_query_id, show_alert=False):
        self.answered.append((callback_query_id, show_alert))
        return True


class FakeYouTube:
    def __init__(self, fail=False):
        self.fail = fail

    def video_info(self, video_id):
        if self.fail:
            raise YouTubeError("no items")
        return "Channel", "Video"

    def playlist_title(self, list_id):
        return "List"

    def playlist_items(self, list_id):
        return ["v1"], ["Video"], "Channel"


def make_env(tmp_path, stage="DEBUG"):
    return Environment(
        telegram_token=":".join((str(BOT_ID), "token")),
        google_token="placeholder",
        chat_id=CHAT_ID,
        db_file=str(tmp_path / "bot.db"),
        download_root=str(tmp_path / "downloads"),
        working_dir=str(tmp_path),
        run_script_name="run.sh",
        root_user_id=ROOT_ID,
        stage=stage,
    )


@pytest.fixture
def setup(tmp_path):
    def build(stage="DEBUG", fail=False):
        env = make_env(tmp_path, stage)
        storage = Storage(env.db_file)
        storage.create_tables()
        client = FakeClient()
        return CommandHandlers(client, storage, FakeYouTube(fail), env), client, storage

    return build


def message(text, user_id=ROOT_ID, message_id=10):
    return {"message_id": message_id, "from": {"id": user_id}, "chat": {"id": CHAT_ID}, "text": text}


def query(data, message_id=20):
    return {"id": "q1", "data": data, "message": {"message_id": message_id, "chat": {"id": CHAT_ID}}}


def test_keyboard_callback_data():
    keyboard = yes_no_keyboard("restart", 42)
    buttons = keyboard["inline_keyboard"][0]
    assert [b["text"] for b in buttons] == ["Да", "Нет"]
    assert buttons[0]["callback_data"] == "restart#dialog_button_yes#42"
    assert buttons[1]["callback_data"] == "restart#dialog_button_no#42"


def test_unauthorized_user(setup):
    handlers, client, storage = setup()
    handlers.handle_message(message("https://youtu.be/abc", user_id=STRANGER_ID))
    assert client.sent == [(CHAT_ID, f"Пользователь с id {STRANGER_ID} не авторизован", None)]
    assert storage.take_next_entry() is None


def test_message_from_bot_is_ignored(setup):
    handlers, client, storage = setup()
    handlers.handle_message(message("https://youtu.be/abc", user_id=BOT_ID))
    assert client.sent == [] and client.deleted == []
    assert storage.take_next_entry() is None


def test_start_command_is_deleted(setup):
    handlers, client, _ = setup()
    handlers.handle_message(message("/start"))
    assert client.deleted == [(CHAT_ID, [10])]
    assert client.sent == []


def test_link_is_queued_and_message_deleted(setup):
    handlers, client, storage = setup()
    handlers.handle_message(message("https://www.youtube.com/watch?v=abc"))
    entry = storage.take_next_entry()
    assert entry.video_id == "abc"
    assert entry.channel_title == "Channel"
    assert client.deleted == [(CHAT_ID, [10])]


def test_unknown_link_reply(setup):
    handlers, client, _ = setup()
    handlers.handle_message(message("hello"))
    assert client.sent == [(CHAT_ID, "Неизвестная ссылка", None)]


def test_unresolvable_link_reply(setup):
    handlers, client, storage = setup(fail=True)
    handlers.handle_message(message("https://youtu.be/abc"))
    assert client.sent == [(CHAT_ID, "Неизвестная ссылка", None)]
    assert storage.take_next_entry() is None


def test_restart_sends_dialog(setup):
    handlers, client, _ = setup()
    handlers.handle_restart(message("/restart", message_id=33))
    chat_id, text, markup = client.sent[0]
    assert chat_id == CHAT_ID
    assert text == "Вы действительно хотите перезагрузить бота"
    assert markup == yes_no_keyboard("restart", 33)


def test_stop_sends_dialog(setup):
    handlers, client, _ = setup()
    handlers.handle_stop(message("/stop", message_id=34))
    assert client.sent[0][1] == "Вы действительно хотите остановить бота"
    assert client.sent[0][2] == yes_no_keyboard("stop", 34)


def test_reload_cookies_runs_script(setup, tmp_path):
    handlers, client, _ = setup()
    with mock.patch("subprocess.run") as run:
        handlers.handle_reload_cookies(message("/reload_cookies"))
    run.assert_called_once_with(
        [os.path.join(str(tmp_path), "firefoxCookiesUpdater", "start.sh")], check=False
    )
    assert client.sent[-1][1] == "Куки обновлены"


def test_update_ytdlp(setup):
    handlers, client, _ = setup()
    with mock.patch("subprocess.run") as run:
        handlers.handle_update_ytdlp(message("/update_ytdlp"))
    run.assert_called_once_with(["yt-dlp", "-U"], check=False)
    assert client.sent[-1][1] == "Утилита yt-dlp обновлена"


def test_dialog_no_only_deletes(setup):
    handlers, client, _ = setup()
    handlers.handle_stop_callback(query("stop#dialog_button_no#33"))
    assert client.answered == [("q1", False)]
    assert client.deleted == [(CHAT_ID, [33, 20])]
    assert client.sent == []


def test_kill_other_processes(setup):
    handlers, _, storage = setup()
    storage.put_process(RegisteredProcess(pid=os.getpid(), date="now"))
    storage.put_process(RegisteredProcess(pid=999991, date="then"))
    with mock.patch("os.kill") as kill:
        handlers.kill_other_processes()
    assert kill.call_args_list[0].args[0] == 999991
    assert storage.remove_next_process_except(-1).pid == os.getpid()


def test_stop_yes_in_debug_exits(setup):
    handlers, client, storage = setup()
    storage.put_process(RegisteredProcess(pid=os.getpid(), date="now"))
    with mock.patch("os.kill"), pytest.raises(SystemExit):
        handlers.handle_stop_callback(query("stop#dialog_button_yes#33"))
    assert client.deleted == [(CHAT_ID, [33, 20])]
    assert client.sent[-1][1] == "Бот остановлен"
    assert storage.remove_next_process_except(-1) is None


def test_restart_yes_in_debug_starts_script(setup, tmp_path):
    handlers, _, _ = setup()
    with mock.patch("subprocess.Popen") as popen, pytest.raises(SystemExit):
        handlers.handle_restart_callback(query("restart#dialog_button_yes#33"))
    popen.assert_called_once_with([os.path.join(str(tmp_path), "run.sh"), "-r"])


def test_restart_yes_in_deploy_uses_systemctl(setup):
    handlers, client, storage = setup(stage="DEPLOY")
    storage.put_process(RegisteredProcess(pid=os.getpid(), date="now"))
    with mock.patch("subprocess.run") as run, mock.patch("os.kill"):
        handlers.handle_restart_callback(query("restart#dialog_button_yes#33"))
    run.assert_called_once_with(["systemctl", "restart", "bot-app.service"], check=False)
    assert client.answered == [("q1", False)]
    assert client.deleted == [(CHAT_ID, [33, 20])]
    assert storage.remove_next_process_except(-1) is None