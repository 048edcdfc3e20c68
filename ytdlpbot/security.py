"""Access control for incoming updates."""

from ytdlpbot.environment import Environment


def _bot_user_id(telegram_token: str) -> int:
    """The numeric id that prefixes a bot token, or 0 when there is none."""
    try:
        return int(telegram_token.split(":")[0])
    except ValueError:
        return 0


def check_auth(user_id: int, env: Environment) -> bool:
    """Whether ``user_id`` is the configured root user or the bot itself."""
    return user_id in (env.root_user_id, _bot_user_id(env.telegram_token))