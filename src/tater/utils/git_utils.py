"""Git utilities module."""

import logging
from pathlib import Path
from typing import Optional, Dict
from urllib.parse import urlparse

from git import Repo
from git.exc import GitError as GitPythonError

logger = logging.getLogger(__name__)

CLONE_DEPTH = 1


class CloneError(Exception):
    """Raised when a repository cannot be cloned."""


def is_git_repo(directory: Path) -> bool:
    """
    Check if directory is a git repository.

    Args:
        directory: Directory to check

    Returns:
        True if git repository
    """
    return (directory / '.git').exists()


def clone_repository(repo_url: str, destination: Path) -> None:
    """
    Shallow clone a repository, including its submodules.

    Args:
        repo_url: Repository URL
        destination: Destination directory

    Raises:
        CloneError: If git reports a failure or cannot be launched
    """
    logger.debug(f"Cloning {repo_url} into {destination}")
    try:
        Repo.clone_from(
            repo_url,
            str(destination),
            depth=CLONE_DEPTH,
            multi_options=['--recurse-submodules'],
        )
    except GitPythonError as e:
        raise CloneError(f"Git clone of {repo_url} failed: {e}") from e
    except OSError as e:
        raise CloneError(f"Git may not be installed: {e}") from e
    logger.info(f"{destination.name} cloned successfully")


def parse_git_url(url: str) -> Optional[Dict[str, str]]:
    """
    Parse git URL to extract components.

    Args:
        url: Git repository URL

    Returns:
        Dictionary with URL components or None
    """
    if url.startswith('git@'):
        # Format: git@github.com:owner/repo.git
        host, _, path = url[len('git@'):].partition(':')
        parts = [p for p in path.split('/') if p]
        if host and parts:
            return {
                'host': host,
                'owner': '/'.join(parts[:-1]),
                'repo': _strip_git_suffix(parts[-1])
            }
        return None

    # HTTP(S)/SSH URLs, plus file URLs and local paths which have no host
    parsed = urlparse(url)
    path_parts = [p for p in parsed.path.split('/') if p]
    if path_parts and (parsed.netloc or parsed.scheme in ('', 'file')):
        return {
            'host': parsed.netloc,
            'owner': '/'.join(path_parts[:-1]),
            'repo': _strip_git_suffix(path_parts[-1])
        }
    return None


def get_repo_name_from_url(url: str) -> Optional[str]:
    """
    Extract repository name from URL.

    Args:
        url: Git repository URL

    Returns:
        Repository name or None
    """
    parsed = parse_git_url(url)
    if parsed and parsed['repo']:
        return parsed['repo']
    return None


def _strip_git_suffix(name: str) -> str:
    return name[:-len('.git')] if name.endswith('.git') else name
