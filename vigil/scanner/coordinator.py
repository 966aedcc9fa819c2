# Vigil: Static Security Analyzer for Python
# Copyright (C) 2026 Vigil Project Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""Source discovery: which .py files under a target get scanned.

Inside a git checkout the tracked and untracked-but-not-ignored files are
taken from ``git ls-files``; anywhere else the tree is walked, pruning
virtualenvs, VCS metadata and build output as it goes. A ``.vigilignore``
at the target root adds fnmatch patterns (one per line, ``#`` comments)
to both strategies, and configured excluded directories (a name such as
"vendor", or a root-relative path such as "app/legacy") drop everything
beneath them. A single .py file may also be given as the target.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import subprocess
from pathlib import Path
from typing import Sequence

logger = logging.getLogger(__name__)

# Directory names never descended into.
SKIP_DIRECTORIES = frozenset({
    "__pycache__",
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    ".tox",
    ".nox",
    ".eggs",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    "site-packages",
    "node_modules",
    "build",
    "dist",
})

SOURCE_SUFFIX = ".py"
IGNORE_FILE = ".vigilignore"


def read_ignore_file(root: Path) -> list[str]:
    """Patterns from ``root/.vigilignore``, without comments and blanks."""
    path = root / IGNORE_FILE
    if not path.is_file():
        return []
    patterns = []
    for raw in path.read_text(encoding="utf-8").splitlines():
        entry = raw.strip().rstrip("/")
        if entry and not entry.startswith("#"):
            patterns.append(entry)
    return patterns


def is_ignored(relative: Path, patterns: list[str]) -> bool:
    """True when any component of ``relative`` is skipped or matches a pattern.

    A pattern matches a single path component ("vendored", "*_pb2.py") or
    the whole relative path ("app/legacy/*").
    """
    parts = relative.parts
    if any(part in SKIP_DIRECTORIES or part.endswith(".egg-info") for part in parts[:-1]):
        return True
    posix = relative.as_posix()
    for pattern in patterns:
        if fnmatch.fnmatch(posix, pattern):
            return True
        if any(fnmatch.fnmatch(part, pattern) for part in parts):
            return True
    return False


def in_excluded_dir(relative: Path, exclude_dirs: Sequence[str]) -> bool:
    """True when a directory above ``relative`` matches an ``exclude_dirs`` entry.

    An entry matches a single directory name or a root-relative directory
    path, both as fnmatch patterns. The file name itself is never matched.
    """
    directories = relative.parts[:-1]
    for depth, name in enumerate(directories, start=1):
        prefix = "/".join(directories[:depth])
        for entry in exclude_dirs:
            if fnmatch.fnmatch(name, entry) or fnmatch.fnmatch(prefix, entry):
                return True
    return False


def list_git_files(root: Path) -> list[Path] | None:
    """Files git knows about under ``root``, or None when git cannot answer."""
    try:
        proc = subprocess.run(
            ["git", "ls-files", "--cached", "--others", "--exclude-standard", "-z"],
            cwd=str(root),
            capture_output=True,
            text=True,
            timeout=30,
        )
    except FileNotFoundError:
        logger.debug("git executable not found, walking %s instead", root)
        return None
    except subprocess.TimeoutExpired:
        logger.warning("git ls-files timed out in %s", root)
        return None

    if proc.returncode != 0:
        logger.debug("git ls-files failed in %s: %s", root, proc.stderr.strip())
        return None
    return [Path(entry) for entry in proc.stdout.split("\0") if entry]


def walk_tree(root: Path) -> list[Path]:
    """Every file under ``root``, relative to it, skipping ignored directories."""
    found = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames if d not in SKIP_DIRECTORIES and not d.endswith(".egg-info")
        )
        base = Path(dirpath).relative_to(root)
        found.extend(base / name for name in filenames)
    return found


def get_python_files(all_files: list[Path]) -> list[Path]:
    """Keep only Python sources, in path order."""
    return sorted(f for f in all_files if f.suffix == SOURCE_SUFFIX)


def discover_files(target: Path, exclude_dirs: Sequence[str] = ()) -> tuple[Path, list[Path], str]:
    """Find the files to scan under ``target``.

    Returns ``(root, files, source)``: ``files`` are relative to ``root``
    and ``source`` says how they were found ("git", "directory" or
    "file").

    Raises:
        FileNotFoundError: ``target`` does not exist.
        ValueError: ``target`` is a file but not a .py source.
    """
    target = target.resolve()
    if not target.exists():
        raise FileNotFoundError(f"Target path does not exist: {target}")

    if target.is_file():
        if target.suffix != SOURCE_SUFFIX:
            raise ValueError(f"Target file is not a Python source file: {target}")
        return target.parent, [Path(target.name)], "file"

    patterns = read_ignore_file(target)
    source = "directory"
    files = None
    if (target / ".git").exists():
        files = list_git_files(target)
        if files is not None:
            source = "git"
            files = [f for f in files if (target / f).is_file()]
    if files is None:
        files = walk_tree(target)

    kept = sorted(
        f for f in files if not is_ignored(f, patterns) and not in_excluded_dir(f, exclude_dirs)
    )
    logger.info("Discovered %d file(s) under %s via %s", len(kept), target, source)
    return target, kept, source
