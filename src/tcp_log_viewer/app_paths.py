from __future__ import annotations

import configparser
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_BIND_IP = "0.0.0.0"
DIAGNOSTICS_LOG_NAME = "diagnostics.log"


@dataclass
class AppPathsConfig:
    """
    Runtime-configurable paths for TCP Log Viewer.

    The config file lives in the per-user config location:
      macOS:   ~/Library/Application Support/<org>/<app>/config.ini
      Windows: %APPDATA%\\<org>\\<app>\\config.ini
      Linux:   ~/.config/<org>/<app>/config.ini

    Users may edit config.ini to move the diagnostics log directory or to
    restrict the listener to one interface ([net] bind_ip).
    """
    config_path: Path
    logs_dir: Path
    bind_ip: str
    app_version: str

    @property
    def diagnostics_log(self) -> Path:
        return self.logs_dir / DIAGNOSTICS_LOG_NAME


def _user_app_dir(app_org: str, app_name: str) -> Path:
    """Writable per-user directory for app config and logs."""
    if sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    elif os.name == "nt":
        base = Path(os.environ.get("APPDATA", str(Path.home())))
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config")))
    return base / app_org / app_name


def _default_logs_dir(app_dir: Path) -> Path:
    return app_dir / "logs"


def load_or_create_config(
    app_org: str,
    app_name: str,
    app_version: str,
    *,
    app_dir: Path | None = None,
) -> AppPathsConfig:
    """
    Load config.ini if present; otherwise create it with defaults.

    Always writes the current application version:
      [app]
      version = <app_version>
    """
    app_dir = app_dir or _user_app_dir(app_org, app_name)
    cfg_path = app_dir / "config.ini"

    cp = configparser.ConfigParser()
    if cfg_path.exists():
        try:
            cp.read(cfg_path, encoding="utf-8")
        except configparser.Error as e:
            logger.warning("Ignoring unreadable %s: %s", cfg_path, e)
            cp = configparser.ConfigParser()

    for section in ("paths", "net", "app"):
        if section not in cp:
            cp[section] = {}

    raw_logs = cp["paths"].get("logs_dir", "").strip()
    logs_dir = Path(raw_logs).expanduser() if raw_logs else _default_logs_dir(app_dir)

    bind_ip = cp["net"].get("bind_ip", "").strip() or DEFAULT_BIND_IP
    cp["net"]["bind_ip"] = bind_ip

    cp["app"]["version"] = str(app_version)

    try:
        app_dir.mkdir(parents=True, exist_ok=True)
        with open(cfg_path, "w", encoding="utf-8", newline="\n") as f:
            cp.write(f)
    except OSError as e:
        # Still usable with defaults; only the file could not be written.
        logger.warning("Could not write %s: %s", cfg_path, e)

    return AppPathsConfig(
        config_path=cfg_path,
        logs_dir=logs_dir,
        bind_ip=bind_ip,
        app_version=str(app_version),
    )
