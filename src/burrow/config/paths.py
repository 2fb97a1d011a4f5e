"""Filesystem locations for config, persisted data and the daemon runtime.

Each location can be overridden through an environment variable so tests
and parallel installs never touch the user's real directories.
"""

import os
from pathlib import Path

CONFIG_DIR_ENV = "BURROW_CONFIG_DIR"
DATA_DIR_ENV = "BURROW_DATA_DIR"
RUNTIME_DIR_ENV = "BURROW_RUNTIME_DIR"

APP_NAME = "burrow"
SOCKET_FILE = "burrow.sock"
PID_FILE = "burrow.pid"
VECTOR_DB_FILE = "vectors.db"
HISTORY_DB_FILE = "history.db"


def config_dir() -> Path:
    if override := os.environ.get(CONFIG_DIR_ENV):
        return Path(override)
    base = os.environ.get("XDG_CONFIG_HOME")
    return (Path(base) if base else Path.home() / ".config") / APP_NAME


def config_path() -> Path:
    return config_dir() / "config.yaml"


def data_dir() -> Path:
    if override := os.environ.get(DATA_DIR_ENV):
        return Path(override)
    base = os.environ.get("XDG_DATA_HOME")
    return (Path(base) if base else Path.home() / ".local" / "share") / APP_NAME


def runtime_dir() -> Path:
    """Directory holding the socket and PID file.

    Falls back to a directory under data_dir when XDG_RUNTIME_DIR is unset.
    """
    if override := os.environ.get(RUNTIME_DIR_ENV):
        return Path(override)
    if xdg := os.environ.get("XDG_RUNTIME_DIR"):
        return Path(xdg) / APP_NAME
    return data_dir() / "run"


def socket_path() -> Path:
    return runtime_dir() / SOCKET_FILE


def pid_path() -> Path:
    return runtime_dir() / PID_FILE


def vector_db_path() -> Path:
    return data_dir() / VECTOR_DB_FILE


def history_db_path() -> Path:
    return data_dir() / HISTORY_DB_FILE


def log_dir() -> Path:
    return data_dir() / "logs"
