"""Utility helpers and configuration loading."""

from __future__ import annotations

import configparser
import os
import yaml
from dotenv import load_dotenv


config = configparser.ConfigParser()


def is_root_dir() -> bool:
    """Return True if the current working directory is the project root."""

    current_dir = os.getcwd()
    sentinels = ("config.ini", "callback_fields.yaml")
    return all(os.path.exists(os.path.join(current_dir, sentinel)) for sentinel in sentinels)


def load_yaml(file_path: str) -> dict:
    with open(file_path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


# Determine root_dir and load config.ini
if is_root_dir():
    root_dir = os.getcwd()
else:
    root_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

config_path = os.path.join(root_dir, "config.ini")
config.read(config_path, encoding="utf-8")
if not config.sections():
    raise FileNotFoundError("config.ini not found in current or parent directories.")

# .env values never override variables already exported by the shell
load_dotenv(os.path.join(root_dir, ".env"))


def setting(section: str, option: str, env: str | None = None, fallback: str = "") -> str:
    """Resolve a value from the environment first, then config.ini, then ``fallback``."""

    if env:
        value = os.environ.get(env)
        if value is not None and value.strip():
            return value.strip()
    return config.get(section, option, fallback=fallback).strip()


def _getint(section: str, option: str, fallback: int, env: str | None = None) -> int:
    value = setting(section, option, env=env, fallback=str(fallback))
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return int(fallback)


def _resolve_path(path: str) -> str:
    if path and not os.path.isabs(path):
        return os.path.join(root_dir, path)
    return path


# =========================
# [SERVER]
# =========================
HOST = setting("SERVER", "HOST", env="HOST", fallback="0.0.0.0")
PORT = _getint("SERVER", "PORT", 8080, env="PORT")

# [AUTH] empty token means every route is public
AUTH_TOKEN = setting("AUTH", "AUTH_TOKEN", env="AUTH_TOKEN", fallback="")

# [STORE]
CALLBACK_DB_PATH = _resolve_path(
    setting("STORE", "DB_PATH", env="CALLBACK_DB_PATH", fallback="callbacks-db.json")
)
MAX_RECORDS = _getint("STORE", "MAX_RECORDS", 500)

# [DASHBOARD]
DASHBOARD_ROWS = _getint("DASHBOARD", "MAX_ROWS", 50)

# [INGEST]
MAX_BODY_MB = _getint("INGEST", "MAX_BODY_MB", 10)

# Candidate payload paths for status / taskId / downloadUrl
FIELD_PATHS = load_yaml(os.path.join(root_dir, "callback_fields.yaml"))


__all__ = [
    "root_dir",
    "setting",
    "HOST",
    "PORT",
    "AUTH_TOKEN",
    "CALLBACK_DB_PATH",
    "MAX_RECORDS",
    "DASHBOARD_ROWS",
    "MAX_BODY_MB",
    "FIELD_PATHS",
]
