"""Configuration read from environment variables."""

import dataclasses
import os
from collections.abc import Mapping
from dataclasses import dataclass

_PREFIX = "MYAPP"


class ConfigError(Exception):
    """Raised when the environment does not hold a usable configuration."""


@dataclass(frozen=True)
class Environment:
    """Settings the bot needs to run."""

    telegram_token: str
    google_token: str
    chat_id: int
    db_file: str
    download_root: str
    working_dir: str
    run_script_name: str
    root_user_id: int
    stage: str = "DEBUG"


def _lookup(environ: Mapping[str, str], name: str) -> str | None:
    """Find a setting under the prefixed key first, then the bare key."""
    prefixed = f"{_PREFIX}_{name}".upper()
    if prefixed in environ:
        return environ[prefixed]
    bare = name.upper()
    if bare in environ:
        return environ[bare]
    return None


def load_environment(environ: Mapping[str, str] | None = None) -> Environment:
    """Build an :class:`Environment` from ``environ`` (``os.environ`` by default)."""
    if environ is None:
        environ = os.environ
    values = {}
    for field in dataclasses.fields(Environment):
        raw = _lookup(environ, field.name)
        if raw is None:
            if field.default is dataclasses.MISSING:
                key = f"{_PREFIX}_{field.name}".upper()
                raise ConfigError(f"required key {key} missing value")
            raw = field.default
        if field.type is int:
            try:
                values[field.name] = int(raw, 0)
            except ValueError as exc:
                raise ConfigError(
                    f"{field.name.upper()}: cannot parse {raw!r} as an integer"
                ) from exc
        else:
            values[field.name] = raw
    return Environment(**values)