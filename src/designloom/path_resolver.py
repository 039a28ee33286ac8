# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Data directory resolution.

Relative data paths resolve against the git working directory, except inside
a git worktree, where they resolve against the main repository so every
worktree shares one set of design documents.

The working directory used for git commands is ``DESIGNLOOM_GIT_CWD`` when
set, else the process cwd. Any git failure (not a repository, git missing)
falls back to plain resolution against that directory.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)

GIT_CWD_ENV = "DESIGNLOOM_GIT_CWD"

# Seconds before a git query is abandoned
GIT_TIMEOUT = 5


def get_git_working_directory() -> Path:
    """Directory git commands run in."""
    return Path(os.environ.get(GIT_CWD_ENV) or os.getcwd())


def _git(*args: str) -> Optional[str]:
    cwd = get_git_working_directory()
    try:
        completed = subprocess.run(
            ["git", *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"git {' '.join(args)} failed in {cwd}: {e}")
        return None
    return completed.stdout.strip()


def is_in_worktree() -> bool:
    """True when the git working directory is a linked worktree."""
    git_dir = _git("rev-parse", "--git-dir")
    common_dir = _git("rev-parse", "--git-common-dir")
    if git_dir is None or common_dir is None:
        return False
    return git_dir != common_dir


def get_main_repo_path() -> Optional[Path]:
    """Root of the main repository when inside a worktree, else None."""
    if not is_in_worktree():
        return None
    common_dir = _git("rev-parse", "--git-common-dir")
    if common_dir is None:
        return None
    common = Path(common_dir)
    if not common.is_absolute():
        common = get_git_working_directory() / common
    # The common dir is <repo>/.git
    return common.resolve().parent


def resolve_data_path(configured: Union[str, Path]) -> Path:
    """Resolve the configured data directory to an absolute path.

    Args:
        configured: Path from configuration or the command line.

    Returns:
        ``configured`` unchanged when absolute; otherwise the path joined to
        the main repository (inside a worktree) or the git working directory.
    """
    path = Path(configured).expanduser()
    if path.is_absolute():
        return path

    main_repo = get_main_repo_path()
    if main_repo is not None:
        resolved = main_repo / path
        logger.info(f"Running inside a git worktree, using data path {resolved}")
        return resolved

    return (get_git_working_directory() / path).resolve()
