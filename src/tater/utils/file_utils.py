"""File utilities module."""

import shutil
import logging
from pathlib import Path
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)


def list_files(directory: Path, suffixes: Optional[Sequence[str]] = None) -> List[Path]:
    """
    List regular files directly inside a directory, sorted by name.

    Args:
        directory: Directory to list
        suffixes: Optional allowed file suffixes (e.g. ['.yml'])

    Returns:
        List of file paths

    Raises:
        FileNotFoundError: If the directory does not exist
    """
    files = [p for p in directory.iterdir() if p.is_file()]
    if suffixes is not None:
        files = [p for p in files if p.suffix.lower() in suffixes]
    return sorted(files)


def read_text_file(file_path: Path, encoding: str = 'utf-8',
                   errors: str = 'ignore') -> Optional[str]:
    """
    Safely read text file content.

    Args:
        file_path: Path to file
        encoding: Text encoding
        errors: How to handle encoding errors

    Returns:
        File content or None if error
    """
    try:
        return file_path.read_text(encoding=encoding, errors=errors)
    except OSError as e:
        logger.debug(f"Error reading {file_path}: {e}")
        return None


def ensure_directory(directory: Path) -> bool:
    """
    Ensure directory exists, creating if necessary.

    Args:
        directory: Directory path

    Returns:
        True if the directory was created, False if it already existed
    """
    if directory.is_dir():
        return False
    directory.mkdir(parents=True, exist_ok=True)
    return True


def remove_tree(directory: Path) -> None:
    """Remove a directory tree, ignoring a missing directory."""
    if directory.exists():
        shutil.rmtree(directory, ignore_errors=True)


def find_prefixed_file(directory: Path, prefix: str) -> Optional[Path]:
    """
    Find the first file (by name) directly inside directory starting with prefix.

    Args:
        directory: Directory to scan (not recursive)
        prefix: File name prefix

    Returns:
        Matching path or None
    """
    if not directory.is_dir():
        return None
    for entry in sorted(directory.iterdir()):
        if entry.is_file() and entry.name.startswith(prefix):
            return entry
    return None


def relocate_file(src: Path, dst: Path) -> bool:
    """
    Copy a file to dst then remove the source.

    Args:
        src: Source file path
        dst: Destination file path (overwritten)

    Returns:
        True if the copy succeeded
    """
    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dst)
    except OSError as e:
        logger.warning(f"Failed to copy {src} to {dst}: {e}")
        return False
    try:
        src.unlink()
    except OSError as e:
        logger.debug(f"Could not remove {src} after copy: {e}")
    return True
