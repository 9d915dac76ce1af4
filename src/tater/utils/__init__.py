"""Utilities package initialization."""

from .file_utils import (
    list_files,
    read_text_file,
    ensure_directory,
    remove_tree,
    find_prefixed_file,
    relocate_file
)

from .git_utils import (
    CloneError,
    is_git_repo,
    clone_repository,
    parse_git_url,
    get_repo_name_from_url
)

__all__ = [
    # File utilities
    'list_files',
    'read_text_file',
    'ensure_directory',
    'remove_tree',
    'find_prefixed_file',
    'relocate_file',

    # Git utilities
    'CloneError',
    'is_git_repo',
    'clone_repository',
    'parse_git_url',
    'get_repo_name_from_url'
]
