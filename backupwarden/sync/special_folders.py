"""Special-folder tokens and portable relative keys.

Path specs may contain tokens such as ``%Documents%`` or ``%AppData%``.
The resolver expands them to real paths for I/O and, in the other
direction, rewrites real paths into machine-independent keys so that the
same file produces the same key on every machine. Those keys are also the
layout of an application's folder under the backup root.
"""

import logging
import os
import re
import sys
from collections.abc import Mapping
from typing import Any, Callable, Optional, Union

logger = logging.getLogger(__name__)

FolderValue = Union[str, Callable[[], Optional[str]]]

SPECIAL_FOLDER_TOKENS: tuple[str, ...] = (
    "%LocalAppData%",
    "%AppData%",
    "%UserProfile%",
    "%Documents%",
    "%Desktop%",
    "%ProgramFiles%",
    "%ProgramFiles(x86)%",
    "%ProgramData%",
    "%SystemRoot%",
    "%SystemDrive%",
)

# A token-looking first component, e.g. "%Unknown%/file.txt"
_TOKEN_PREFIX = re.compile(r"^%[^%/\\]+%")
# Drive-letter-relative key, e.g. "D/Games/save.dat"
_DRIVE_KEY = re.compile(r"^[A-Za-z](/|$)")


def _windows_folders() -> dict[str, FolderValue]:
    env = os.environ.get
    profile = env("USERPROFILE") or os.path.expanduser("~")
    return {
        "%LocalAppData%": env("LOCALAPPDATA", ""),
        "%AppData%": env("APPDATA", ""),
        "%UserProfile%": profile,
        "%Documents%": os.path.join(profile, "Documents"),
        "%Desktop%": os.path.join(profile, "Desktop"),
        "%ProgramFiles%": env("ProgramFiles", ""),
        "%ProgramFiles(x86)%": env("ProgramFiles(x86)", ""),
        "%ProgramData%": env("ProgramData", ""),
        "%SystemRoot%": env("SystemRoot", ""),
        "%SystemDrive%": env("SystemDrive", ""),
    }


def _posix_folders() -> dict[str, FolderValue]:
    home = os.path.expanduser("~")
    if sys.platform == "darwin":
        local = roaming = os.path.join(home, "Library", "Application Support")
    else:
        local = os.environ.get("XDG_DATA_HOME") or os.path.join(
            home, ".local", "share"
        )
        roaming = os.environ.get("XDG_CONFIG_HOME") or os.path.join(home, ".config")

    # Windows-only locations have no equivalent and stay unresolved
    return {
        "%LocalAppData%": local,
        "%AppData%": roaming,
        "%UserProfile%": home,
        "%Documents%": os.path.join(home, "Documents"),
        "%Desktop%": os.path.join(home, "Desktop"),
        "%ProgramFiles%": "",
        "%ProgramFiles(x86)%": "",
        "%ProgramData%": "",
        "%SystemRoot%": "",
        "%SystemDrive%": "",
    }


def _default_case_sensitive(pathmod: Any) -> bool:
    if pathmod.normcase("A") != "A":
        return False
    # Default APFS and HFS+ volumes ignore case
    return not (pathmod is os.path and sys.platform == "darwin")


def default_special_folders() -> dict[str, FolderValue]:
    """Return the token table for the running platform."""
    if os.name == "nt":
        return _windows_folders()
    return _posix_folders()


class SpecialFolderResolver:
    """Bidirectional mapping between special-folder tokens and real paths.

    Tokens are matched case-insensitively. The table and the path flavour
    are injectable, which lets tests exercise Windows path rules on any
    platform.

    Examples:
        >>> import posixpath
        >>> resolver = SpecialFolderResolver(
        ...     {"%Documents%": "/home/ann/Documents"}, pathmod=posixpath
        ... )
        >>> resolver.expand("%documents%/game/save.dat")
        '/home/ann/Documents/game/save.dat'
        >>> resolver.relative_key("/home/ann/Documents/game/save.dat")
        '%Documents%/game/save.dat'
    """

    def __init__(
        self,
        folders: Optional[Mapping[str, FolderValue]] = None,
        pathmod: Any = None,
        case_sensitive: Optional[bool] = None,
    ):
        """Initialize the resolver.

        Args:
            folders: Token to path (or zero-argument callable) mapping.
                Defaults to :func:`default_special_folders`.
            pathmod: ``os.path``-compatible module (``ntpath``/``posixpath``)
            case_sensitive: Whether relative keys differing only in case name
                different files. Defaults to the path flavour's rule (case
                is ignored on Windows and macOS).
        """
        self.pathmod = pathmod or os.path
        if case_sensitive is None:
            case_sensitive = _default_case_sensitive(self.pathmod)
        self.case_sensitive = case_sensitive
        source = default_special_folders() if folders is None else folders

        self._folders: list[tuple[str, str]] = []
        for token, value in source.items():
            resolved = value() if callable(value) else value
            self._folders.append((token, resolved or ""))

        self._by_token = {token.lower(): value for token, value in self._folders}
        tokens = sorted(self._by_token, key=len, reverse=True)
        self._pattern = (
            re.compile("|".join(re.escape(t) for t in tokens), re.IGNORECASE)
            if tokens
            else None
        )

        seps = [self.pathmod.sep]
        if self.pathmod.altsep:
            seps.append(self.pathmod.altsep)
        self._separators = "".join(seps)

    @property
    def folders(self) -> dict[str, str]:
        """Token table with resolved values (empty string if unresolved)."""
        return dict(self._folders)

    def get(self, token: str) -> Optional[str]:
        """Return the resolved value of a token, None if unknown."""
        return self._by_token.get(token.lower())

    def starts_with_token(self, path: str) -> bool:
        lowered = path.lower()
        return any(lowered.startswith(token) for token in self._by_token)

    def expand(self, path_spec: Optional[str]) -> Optional[str]:
        """Replace every known token in a path spec with its real path.

        Unknown tokens are left verbatim. If a known token has no value on
        this machine the result is an empty string, so that callers can
        report the spec as unexpandable instead of touching a wrong path.

        Args:
            path_spec: Path specification, possibly containing tokens

        Returns:
            Expanded path; empty input is returned unchanged
        """
        if not path_spec or self._pattern is None:
            return path_spec

        unresolved: list[str] = []

        def _replace(match: "re.Match[str]") -> str:
            value = self._by_token[match.group(0).lower()]
            if not value:
                unresolved.append(match.group(0))
            return value

        expanded = self._pattern.sub(_replace, path_spec)
        if unresolved:
            logger.debug(
                f"Cannot expand {path_spec}: no value for {', '.join(unresolved)}"
            )
            return ""
        return expanded

    def to_portable_form(self, full_path: str) -> str:
        """Rewrite a real path into its machine-independent form.

        The longest special-folder prefix (on a separator boundary) is
        replaced by its token. Without a match, a drive-rooted path becomes
        drive-letter-relative (``D:\\x\\y`` -> ``D\\x\\y``) and anything
        else is returned normalized, which keeps network paths intact.

        Args:
            full_path: Real filesystem path

        Returns:
            Portable path using the flavour's native separator
        """
        if not full_path or self.starts_with_token(full_path):
            return full_path

        p = self.pathmod
        normalized = p.normpath(
            full_path if p.isabs(full_path) else p.abspath(full_path)
        )

        best: Optional[tuple[tuple[int, int], str, str]] = None
        for token, value in self._folders:
            if not value or self._is_root(value):
                continue
            prefix = p.normpath(value)
            if not self._has_prefix(normalized, prefix):
                continue
            rank = (len(prefix), sum(prefix.count(s) for s in self._separators))
            if best is None or rank > best[0]:
                best = (rank, token, prefix)

        if best is not None:
            _, token, prefix = best
            remainder = normalized[len(prefix) :].lstrip(self._separators)
            return token + (p.sep + remainder if remainder else "")

        drive, rest = p.splitdrive(normalized)
        if len(drive) == 2 and drive[1] == ":" and drive[0].isalpha():
            rest = rest.lstrip(self._separators)
            return drive[0] + (p.sep + rest if rest else "")

        return normalized

    def relative_key(self, full_path: str) -> str:
        """Return the canonical relative key of a real path.

        The key is the portable form with ``/`` as the only separator and
        no leading separator, so it can be joined below a backup folder.
        """
        portable = self.to_portable_form(full_path)
        if self.pathmod.altsep:
            portable = portable.replace(self.pathmod.sep, "/")
        return portable.lstrip("/")

    def fold_key(self, key: str) -> str:
        """Return the form of a relative key used for equality checks."""
        return key if self.case_sensitive else key.lower()

    def resolve_relative_key(self, key: str) -> str:
        """Map a relative key back to a real path on this machine.

        Args:
            key: Key as produced by :meth:`relative_key`

        Returns:
            Absolute, normalized path, or an empty string if the key cannot
            be mapped unambiguously (unknown or unresolved token)
        """
        if not key or not key.strip():
            return ""

        p = self.pathmod
        native = key.replace("/", p.sep) if p.altsep else key

        if self.starts_with_token(native):
            candidate = self.expand(native) or ""
        elif _TOKEN_PREFIX.match(key):
            logger.debug(f"Relative key {key} starts with an unknown token")
            return ""
        elif p.altsep and _DRIVE_KEY.match(key):
            candidate = key[0] + ":" + p.sep + native[2:]
        elif p.altsep:
            candidate = p.sep * 2 + native
        else:
            candidate = p.sep + native

        if not candidate or not p.isabs(candidate):
            return ""
        return p.normpath(candidate)

    def _is_root(self, value: str) -> bool:
        _, rest = self.pathmod.splitdrive(self.pathmod.normpath(value))
        return not rest.strip(self._separators)

    def _has_prefix(self, path: str, prefix: str) -> bool:
        p = self.pathmod
        path_cmp, prefix_cmp = p.normcase(path), p.normcase(prefix)
        if not path_cmp.startswith(prefix_cmp):
            return False
        if len(path_cmp) == len(prefix_cmp):
            return True
        return path_cmp[len(prefix_cmp)] in self._separators
