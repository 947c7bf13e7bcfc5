"""Settings read from the environment, with a .env fallback."""

import os
from pathlib import Path


def read_env_file(keys: list[str]) -> dict[str, str]:
    """Return the requested keys from ./.env without touching os.environ."""
    env_file = Path.cwd() / ".env"
    try:
        content = env_file.read_text()
    except OSError:
        return {}

    result: dict[str, str] = {}
    wanted = set(keys)

    for line in content.splitlines():
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue
        key, sep, value = trimmed.partition("=")
        if not sep:
            continue
        key = key.strip()
        if key not in wanted:
            continue
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]
        if value:
            result[key] = value

    return result


_KEYS = ["LOG_LEVEL", "MI_MAX_DEPTH", "MI_ENCODING", "MI_HOST", "MI_PORT", "MI_MAX_SESSIONS"]
_env_config = read_env_file(_KEYS)


def _get(key: str, default: str) -> str:
    return os.environ.get(key) or _env_config.get(key, default)


LOG_LEVEL: str = _get("LOG_LEVEL", "INFO").upper()

# Deepest tuple/list nesting accepted on one line before it is reported as a parse error.
# JSON encoding (json, Flask) recurses about twice per level, so the
# configured value is capped at MAX_DEPTH_CEILING.
MAX_DEPTH_CEILING: int = 300
MAX_DEPTH: int = min(MAX_DEPTH_CEILING, max(1, int(_get("MI_MAX_DEPTH", "256"))))
ENCODING: str = _get("MI_ENCODING", "utf-8")

HOST: str = _get("MI_HOST", "127.0.0.1")
PORT: int = int(_get("MI_PORT", "5000"))
MAX_SESSIONS: int = max(1, int(_get("MI_MAX_SESSIONS", "64")))
