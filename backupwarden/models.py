"""Application records consumed by the sync engine."""

from dataclasses import dataclass, field
from typing import Any, Optional

from .exceptions import BackupWardenConfigError


@dataclass
class AppConfig:
    """A logical backup unit: an id plus an ordered list of path specs.

    A path spec ending in a path separator denotes a whole directory tree,
    anything else a single file. Specs may contain special-folder tokens
    such as ``%Documents%``.

    Examples:
        >>> app = AppConfig(id="notepad", paths=["%AppData%/Notepad/"])
        >>> app.display_name
        'notepad'
    """

    id: str
    """Identifier, also the folder name under the backup root"""

    paths: list[str] = field(default_factory=list)
    """Ordered path specifications"""

    name: str = ""
    """Optional human-readable name"""

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppConfig":
        """Create an AppConfig from a parsed YAML mapping.

        Args:
            data: Mapping with ``id``, optional ``name`` and ``paths``

        Returns:
            AppConfig instance

        Raises:
            BackupWardenConfigError: If the mapping is malformed
        """
        if not isinstance(data, dict):
            raise BackupWardenConfigError(
                f"Application entry must be a mapping, got {type(data).__name__}"
            )

        app_id = data.get("id")
        if app_id is None or not str(app_id).strip():
            raise BackupWardenConfigError("Application entry is missing an 'id'")

        paths = data.get("paths") or []
        if isinstance(paths, str):
            paths = [paths]
        if not isinstance(paths, list):
            raise BackupWardenConfigError(
                f"'paths' of application '{app_id}' must be a list"
            )

        # Keep blank entries: the scanner reports them as path issues
        return cls(
            id=str(app_id).strip(),
            paths=["" if p is None else str(p) for p in paths],
            name=str(data.get("name") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "paths": list(self.paths)}


@dataclass
class BackupConfig:
    """Collection of application records loaded from one or more files."""

    apps: list[AppConfig] = field(default_factory=list)

    def get_app(self, app_id: str) -> Optional[AppConfig]:
        for app in self.apps:
            if app.id == app_id:
                return app
        return None

    def select(self, app_ids: Optional[list[str]] = None) -> list[AppConfig]:
        """Return the apps with the given ids, in the given order.

        Args:
            app_ids: Ids to select; all apps if empty or None

        Raises:
            BackupWardenConfigError: If an id is not configured
        """
        if not app_ids:
            return list(self.apps)

        selected = []
        for app_id in app_ids:
            app = self.get_app(app_id)
            if app is None:
                raise BackupWardenConfigError(f"Unknown application id: {app_id}")
            selected.append(app)
        return selected
