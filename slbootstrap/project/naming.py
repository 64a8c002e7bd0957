"""Project name validation."""

import re

from slbootstrap.core.exceptions import ProjectError

MAX_NAME_LENGTH = 64

_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")

# Device names Windows refuses as file or directory names
_RESERVED = {"con", "prn", "aux", "nul"} | {f"com{i}" for i in range(1, 10)} | {
    f"lpt{i}" for i in range(1, 10)
}


def validate_project_name(name: str) -> str:
    """
    Validate a project name and return it stripped.

    Names must be 1-64 characters of letters, digits, '.', '-' or '_',
    start with a letter or digit, not end with '.', and not be a Windows
    reserved device name.

    Raises:
        ProjectError: If the name is invalid
    """
    if name is None:
        raise ProjectError("Project name is required")

    name = name.strip()
    if not name:
        raise ProjectError("Project name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ProjectError(
            f"Project name is too long ({len(name)} > {MAX_NAME_LENGTH} characters)"
        )
    if not _NAME_RE.match(name):
        raise ProjectError(
            f"Invalid project name '{name}': use letters, digits, '.', '-' or '_', "
            "starting with a letter or digit"
        )
    if name.endswith("."):
        raise ProjectError(f"Invalid project name '{name}': cannot end with '.'")
    if name.split(".")[0].lower() in _RESERVED:
        raise ProjectError(f"'{name}' is a reserved name on Windows")

    return name
