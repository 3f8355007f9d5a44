"""Configuration: application definitions (YAML) and persisted CLI settings."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from .exceptions import BackupWardenConfigError
from .models import AppConfig, BackupConfig

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "BACKUPWARDEN_CONFIG_DIR"
CONFIG_FILE_NAME = "config.json"

EXAMPLE_APP_CONFIG = """\
# BackupWarden application definitions.
# Paths ending in a separator are directories, anything else a single file.
apps:
  - id: notepadpp
    name: Notepad++
    paths:
      - "%AppData%/Notepad++/"
  - id: git
    name: Git
    paths:
      - "%UserProfile%/.gitconfig"
"""


def load_app_config(path: Union[str, Path]) -> BackupConfig:
    """Load application definitions from a YAML file.

    The file holds a top-level ``apps`` list; each entry has an ``id``, an
    optional ``name`` and a ``paths`` list.

    Args:
        path: YAML file to read

    Returns:
        BackupConfig with the applications in file order

    Raises:
        BackupWardenConfigError: If the file cannot be read or is malformed
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise BackupWardenConfigError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise BackupWardenConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        logger.debug(f"Config file {path} is empty")
        return BackupConfig()
    if not isinstance(data, dict):
        raise BackupWardenConfigError(
            f"Config file {path} must contain a mapping with an 'apps' list"
        )

    entries = data.get("apps") or []
    if not isinstance(entries, list):
        raise BackupWardenConfigError(f"'apps' in {path} must be a list")

    apps: list[AppConfig] = []
    for index, entry in enumerate(entries):
        try:
            apps.append(AppConfig.from_dict(entry))
        except BackupWardenConfigError as e:
            raise BackupWardenConfigError(f"{path}, entry {index + 1}: {e}") from e

    logger.debug(f"Loaded {len(apps)} application(s) from {path}")
    return BackupConfig(apps=apps)


def load_app_configs(paths: list[Union[str, Path]]) -> BackupConfig:
    """Load and merge several YAML files.

    Raises:
        BackupWardenConfigError: If a file is invalid or an id is defined
            twice
    """
    merged = BackupConfig()
    origins: dict[str, Path] = {}
    for path in paths:
        for app in load_app_config(path).apps:
            if app.id in origins:
                raise BackupWardenConfigError(
                    f"Application id '{app.id}' is defined in both "
                    f"{origins[app.id]} and {path}"
                )
            origins[app.id] = Path(path)
            merged.apps.append(app)
    return merged


class Config:
    """Persisted CLI settings: backup root and application config files.

    Stored as JSON in ``~/.config/backupwarden/config.json``. The directory
    can be overridden with the ``BACKUPWARDEN_CONFIG_DIR`` environment
    variable.
    """

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        """Initialize settings.

        Args:
            config_dir: Directory holding the settings file
        """
        self._config_dir = Path(config_dir) if config_dir else None
        self._data: Optional[dict[str, Any]] = None

    @property
    def config_dir(self) -> Path:
        if self._config_dir is not None:
            return self._config_dir
        env_dir = os.environ.get(CONFIG_DIR_ENV)
        if env_dir:
            return Path(env_dir)
        return Path.home() / ".config" / "backupwarden"

    def get_config_path(self) -> Path:
        return self.config_dir / CONFIG_FILE_NAME

    def _load(self) -> dict[str, Any]:
        if self._data is not None:
            return self._data

        path = self.get_config_path()
        if not path.exists():
            self._data = {}
            return self._data

        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise BackupWardenConfigError(
                f"Cannot read settings file {path}: {e}"
            ) from e
        if not isinstance(data, dict):
            raise BackupWardenConfigError(f"Settings file {path} is not a JSON object")

        self._data = data
        return self._data

    def _save(self) -> None:
        path = self.get_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self._load(), f, indent=2)
        logger.debug(f"Saved settings to {path}")

    @property
    def backup_root(self) -> Optional[str]:
        return self._load().get("backup_root")

    @property
    def config_files(self) -> list[str]:
        return list(self._load().get("config_files") or [])

    def is_configured(self) -> bool:
        return bool(self.backup_root) and bool(self.config_files)

    def save_backup_root(self, backup_root: Union[str, Path]) -> None:
        self._load()["backup_root"] = str(Path(backup_root).expanduser().resolve())
        self._save()

    def add_config_file(self, path: Union[str, Path]) -> bool:
        """Remember an application config file.

        Returns:
            False if the file was already registered
        """
        resolved = str(Path(path).expanduser().resolve())
        files = self.config_files
        if resolved in files:
            return False
        files.append(resolved)
        self._load()["config_files"] = files
        self._save()
        return True

    def remove_config_file(self, path: Union[str, Path]) -> bool:
        resolved = str(Path(path).expanduser().resolve())
        files = self.config_files
        if resolved not in files:
            return False
        files.remove(resolved)
        self._load()["config_files"] = files
        self._save()
        return True


config = Config()
