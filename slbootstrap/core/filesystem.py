"""
Filesystem helpers shared by state and workspace generators.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


def get_bootstrap_home() -> Path:
    """
    Get the per-user directory holding run state and downloaded installers.

    Honours SLBOOT_HOME; otherwise ~/.strangeloop-bootstrap.
    """
    override = os.environ.get("SLBOOT_HOME")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".strangeloop-bootstrap"


def get_download_dir() -> Path:
    """Directory where installers are downloaded."""
    return get_bootstrap_home() / "downloads"


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    If the write fails, the original file (if any) remains unchanged.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Temp file in the same directory keeps the rename on one filesystem
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding) as f:
                f.write(content)
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)

        temp_path.replace(file_path)

    except Exception:
        try:
            temp_path.unlink(missing_ok=True)
        except OSError:
            pass
        raise


def is_empty_directory(path: Path) -> bool:
    """True if path is a directory without any entries."""
    return path.is_dir() and not any(path.iterdir())
