"""Path helpers for locating itack data directories and issue files."""

import os
import re
from pathlib import Path, PurePosixPath

from platformdirs import user_data_dir

ITACK_APP_NAME = "itack"
ISSUES_DIRNAME = ".itack"
METADATA_FILENAME = "metadata.json"
CONFIG_FILENAME = "config.json"

_ISSUE_FILENAME_RE = re.compile(r"^(?:\d{4}-\d{2}-\d{2}-)?issue-(\d+)\.md$")
_LEGACY_FILENAME_RE = re.compile(r"^(\d+)\.md$")


def itack_home() -> Path:
    """Return the base directory for user-level itack files.

    ``ITACK_HOME`` overrides the platform data directory.

    Example:
        >>> isinstance(itack_home(), Path)
        True
    """
    override = os.environ.get("ITACK_HOME", "").strip()
    if override:
        return Path(override).expanduser()
    return Path(user_data_dir(ITACK_APP_NAME))


def global_config_path() -> Path:
    """Return the path to the global config file.

    Example:
        >>> global_config_path().name
        'config.json'
    """
    return itack_home() / CONFIG_FILENAME


def issue_relative_path(issue_id: int) -> str:
    """Return the repo-relative path of an issue record.

    The name depends on the id alone.

    Example:
        >>> issue_relative_path(7)
        '.itack/issue-007.md'
        >>> issue_relative_path(1234)
        '.itack/issue-1234.md'
    """
    return f"{ISSUES_DIRNAME}/issue-{issue_id:03d}.md"


def metadata_relative_path() -> str:
    """Return the repo-relative path of the project metadata file.

    Example:
        >>> metadata_relative_path()
        '.itack/metadata.json'
    """
    return f"{ISSUES_DIRNAME}/{METADATA_FILENAME}"


def issue_id_from_path(path: str) -> int | None:
    """Return the issue id encoded in a record file name.

    Accepts the current ``issue-NNN.md`` name, the date-prefixed
    ``YYYY-MM-DD-issue-NNN.md`` name and the bare ``N.md`` name.

    Example:
        >>> issue_id_from_path(".itack/issue-012.md")
        12
        >>> issue_id_from_path(".itack/2024-01-28-issue-001.md")
        1
        >>> issue_id_from_path(".itack/metadata.json") is None
        True
    """
    name = PurePosixPath(path).name
    match = _ISSUE_FILENAME_RE.match(name) or _LEGACY_FILENAME_RE.match(name)
    if not match:
        return None
    return int(match.group(1))


def is_issue_path(path: str) -> bool:
    """Return whether ``path`` is an issue record inside the issues directory."""
    pure = PurePosixPath(path)
    return pure.parent.as_posix() == ISSUES_DIRNAME and pure.suffix == ".md"
