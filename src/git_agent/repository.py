"""
Git repository detection and status summary for the session header.
"""

import subprocess
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel

from git_agent.errors import RepositoryError


class RepositoryInfo(BaseModel):
    path: str
    current_branch: str
    modified_files: list[str] = []
    untracked_files: list[str] = []
    staged_files: list[str] = []

    @property
    def has_uncommitted_changes(self) -> bool:
        return bool(self.modified_files or self.untracked_files or self.staged_files)

    @property
    def is_clean(self) -> bool:
        return not self.has_uncommitted_changes

    @property
    def name(self) -> str:
        return Path(self.path).name or "Repository"


def detect_git_repository(start: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """Walk up from ``start`` (default: cwd) to the nearest directory holding ``.git``."""
    current = Path(start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        if (directory / ".git").exists():
            return directory
    return None


def _git(repo: Path, *args: str) -> str:
    try:
        result = subprocess.run(
            ["git", *args], cwd=repo, capture_output=True, text=True, check=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        stderr = getattr(e, "stderr", None) or str(e)
        raise RepositoryError(f"git {' '.join(args)} failed: {stderr.strip()}")
    return result.stdout


def validate_git_repository(path: Union[str, Path]) -> Path:
    repo = Path(path)
    if not repo.exists():
        raise RepositoryError(f"Directory does not exist: {repo}")
    if not (repo / ".git").exists():
        raise RepositoryError(f"Not a git repository: {repo}")
    _git(repo, "status")
    return repo.resolve()


def parse_porcelain(output: str) -> tuple[list[str], list[str], list[str]]:
    """Split ``git status --porcelain`` output into (modified, untracked, staged)."""
    modified: list[str] = []
    untracked: list[str] = []
    staged: list[str] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        status, file_path = line[:2], line[3:]
        if status == "??":
            untracked.append(file_path)
            continue
        if status[0] != " ":
            staged.append(file_path)
        if status[1] == "M":
            modified.append(file_path)
    return modified, untracked, staged


def analyze_repository(path: Union[str, Path]) -> RepositoryInfo:
    repo = Path(path)
    branch = _git(repo, "rev-parse", "--abbrev-ref", "HEAD").strip()
    modified, untracked, staged = parse_porcelain(_git(repo, "status", "--porcelain"))
    return RepositoryInfo(
        path=str(repo),
        current_branch=branch,
        modified_files=modified,
        untracked_files=untracked,
        staged_files=staged,
    )
