"""
Gopkg.lock parsing.

Reads a dep lockfile and turns its ``[[projects]]`` tables into dependency
records, validating the file before it is loaded.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from .cli_config import get_config
from .dependency import DependencyRecord
from .error_handling import InputError, log_parsing_error


@dataclass(frozen=True)
class LockedProject:
    """One locked project, parsed from a Gopkg.lock file."""

    name: str
    revision: str
    branch: Optional[str] = None
    version: Optional[str] = None
    source: Optional[str] = None
    packages: List[str] = field(default_factory=list)

    def to_dependency(self) -> DependencyRecord:
        return DependencyRecord(
            import_path=self.name,
            revision=self.revision,
            source_url=self.source,
        )


def _validate_file_path(file_path: str) -> Path:
    """
    Validate a lockfile path before reading it.

    Raises:
        InputError: If the path is empty, missing, not a file, of a
            disallowed type or too large
    """
    if not file_path or not file_path.strip():
        raise InputError("Lockfile path must be a non-empty string")

    try:
        path = Path(file_path.strip()).resolve()
    except (OSError, ValueError) as e:
        raise InputError(f"Invalid file path: {e}")

    if not path.exists():
        raise InputError(f"File does not exist: {path}")
    if not path.is_file():
        raise InputError(f"Path is not a file: {path}")

    security = get_config().security
    if path.suffix.lower() not in set(security.allowed_file_extensions):
        allowed = ", ".join(security.allowed_file_extensions)
        raise InputError(
            f"File type not allowed: {path.suffix or path.name} (allowed: {allowed}; "
            "extend security.allowed_file_extensions in the config file to accept it)"
        )

    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise InputError(f"Cannot access file: {e}")
    if file_size > security.max_file_size_bytes:
        raise InputError(
            f"File too large: {file_size} bytes (max: {security.max_file_size_bytes})"
        )

    return path


def _read_file(path: Path) -> str:
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except UnicodeDecodeError:
        raise InputError("File contains invalid UTF-8 characters")
    except PermissionError:
        raise InputError("Permission denied reading file")
    except OSError as e:
        raise InputError(f"Error reading file: {e}")


def _optional_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _parse_project(entry: Dict[str, Any], index: int) -> LockedProject:
    if not isinstance(entry, dict):
        raise InputError(f"projects[{index}] is not a table")

    name = entry.get("name")
    revision = entry.get("revision")
    if not isinstance(name, str) or not name.strip():
        raise InputError(f"projects[{index}] is missing 'name'")
    if not isinstance(revision, str) or not revision.strip():
        raise InputError(f"projects[{index}] ({name}) is missing 'revision'")

    packages = entry.get("packages") or []
    if not isinstance(packages, list):
        raise InputError(f"projects[{index}] ({name}) has invalid 'packages'")

    return LockedProject(
        name=name.strip(),
        revision=revision.strip(),
        branch=_optional_str(entry.get("branch")),
        version=_optional_str(entry.get("version")),
        source=_optional_str(entry.get("source")),
        packages=[str(package) for package in packages],
    )


def parse_gopkg_lock(file_path: str) -> List[LockedProject]:
    """
    Parse a Gopkg.lock file into its locked projects, in file order.

    Args:
        file_path: Path to the Gopkg.lock file

    Returns:
        List[LockedProject]: Locked projects

    Raises:
        InputError: If the file cannot be read or is not a valid lockfile
    """
    path = _validate_file_path(file_path)
    content = _read_file(path)

    try:
        data = toml.loads(content)
    except toml.TomlDecodeError as e:
        log_parsing_error(
            f"Invalid TOML format in lockfile: {e}",
            "parsers",
            "parse_gopkg_lock",
            file_path=str(path),
            exception=e,
        )
        raise InputError(f"failed to parse {path.name}: {e}")

    projects = data.get("projects", [])
    if not isinstance(projects, list):
        raise InputError(f"failed to parse {path.name}: 'projects' must be an array of tables")

    return [_parse_project(entry, index) for index, entry in enumerate(projects)]


def parse_dependency_file(file_path: str) -> List[DependencyRecord]:
    """Parse a lockfile straight into dependency records."""
    return [project.to_dependency() for project in parse_gopkg_lock(file_path)]
