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

"""Load a source tree into packages of parsed compilation units.

Each .py file becomes a CompilationUnit: its syntax tree, its lines and
its comments (from ``tokenize``, which ``ast`` drops). Files are grouped by
directory into PackageModels, and each package gets one TypeModel built
over all of its units.

A file that cannot be read or parsed does not stop the load. It is
recorded as a FileError under its relative path and left out of its
package, so callers always get whatever could be loaded.
"""

from __future__ import annotations

import ast
import io
import logging
import re
import tokenize
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from vigil.models.issue import FileError
from vigil.scanner.coordinator import discover_files, get_python_files
from vigil.scanner.type_model import TypeModel, build_type_model, module_name_for

logger = logging.getLogger(__name__)

_GENERATED_COMMENT = re.compile(r"^# Code generated .* DO NOT EDIT\.$")
_GENERATED_HEADER_LINES = 10

TEST_DIRECTORIES = {"tests", "test"}


@dataclass(frozen=True)
class Comment:
    """A source comment. ``own_line`` is True when no code precedes it."""

    line: int
    col: int
    text: str
    own_line: bool


@dataclass
class CompilationUnit:
    """One parsed source file."""

    path: Path
    relative_path: str
    module_name: str
    source: str
    lines: list[str]
    tree: ast.Module
    comments: list[Comment] = field(default_factory=list)
    generated: bool = False
    test: bool = False


@dataclass
class PackageModel:
    """A directory's units plus the type model shared by them."""

    name: str
    units: list[CompilationUnit] = field(default_factory=list)
    types: TypeModel = field(default_factory=TypeModel)

    @property
    def files(self) -> list[str]:
        return [u.relative_path for u in self.units]


@dataclass
class LoadResult:
    """Packages that loaded, and errors for files that did not."""

    root: Path
    packages: list[PackageModel] = field(default_factory=list)
    errors: dict[str, list[FileError]] = field(default_factory=dict)


def extract_comments(source: str) -> list[Comment]:
    """Every comment token in ``source``, in order."""
    comments: list[Comment] = []
    lines = source.splitlines()
    try:
        for tok in tokenize.generate_tokens(io.StringIO(source).readline):
            if tok.type != tokenize.COMMENT:
                continue
            line, col = tok.start
            prefix = lines[line - 1][:col] if line - 1 < len(lines) else ""
            comments.append(Comment(line=line, col=col + 1, text=tok.string, own_line=not prefix.strip()))
    except (tokenize.TokenError, SyntaxError) as e:
        logger.warning("Could not tokenize source for comments: %s", e)
    return comments


def is_test_file(relative_path: Path) -> bool:
    name = relative_path.name
    if name == "conftest.py" or name.startswith("test_") or name.endswith("_test.py"):
        return True
    return any(part in TEST_DIRECTORIES for part in relative_path.parts[:-1])


def is_generated(source: str, comments: Optional[list[Comment]] = None) -> bool:
    """True for files carrying a code-generator header."""
    if comments is None:
        comments = extract_comments(source)
    for comment in comments:
        if comment.line > _GENERATED_HEADER_LINES:
            break
        if _GENERATED_COMMENT.match(comment.text) or "@generated" in comment.text:
            return True
    return False


def parse_unit(root: Path, relative: Path) -> CompilationUnit | FileError:
    """Parse one file, or describe why it could not be parsed."""
    file_path = root / relative
    try:
        source = file_path.read_text(encoding="utf-8")
    except (UnicodeDecodeError, OSError) as e:
        logger.warning("Could not read %s: %s", file_path, e)
        return FileError(line=0, column=0, message=f"could not read file: {e}")

    try:
        tree = ast.parse(source, filename=str(file_path))
    except SyntaxError as e:
        logger.warning("Syntax error in %s: %s", file_path, e)
        return FileError(line=e.lineno or 0, column=e.offset or 0, message=e.msg or str(e))
    except ValueError as e:
        # Null bytes in source
        logger.warning("Could not parse %s: %s", file_path, e)
        return FileError(line=0, column=0, message=str(e))

    comments = extract_comments(source)
    rel = relative.as_posix()
    return CompilationUnit(
        path=file_path,
        relative_path=rel,
        module_name=module_name_for(rel),
        source=source,
        lines=source.splitlines(),
        tree=tree,
        comments=comments,
        generated=is_generated(source, comments),
        test=is_test_file(relative),
    )


def load_packages(target: Path, exclude_dirs: Sequence[str] = ()) -> LoadResult:
    """Discover, parse and group every Python file under ``target``.

    Files inside a directory named by ``exclude_dirs`` are never read.
    Raises FileNotFoundError when ``target`` does not exist.
    """
    root, all_files, source = discover_files(Path(target), exclude_dirs)
    python_files = get_python_files(all_files)
    logger.debug("Loading %d Python file(s) from %s (%s)", len(python_files), root, source)

    result = LoadResult(root=root)
    grouped: dict[str, list[CompilationUnit]] = {}
    for relative in python_files:
        parsed = parse_unit(root, relative)
        if isinstance(parsed, FileError):
            result.errors.setdefault(relative.as_posix(), []).append(parsed)
            continue
        grouped.setdefault(relative.parent.as_posix(), []).append(parsed)

    for name in sorted(grouped):
        units = sorted(grouped[name], key=lambda u: u.relative_path)
        result.packages.append(PackageModel(name=name, units=units, types=build_type_model(units)))

    logger.info(
        "Loaded %d package(s), %d file(s), %d file error(s)",
        len(result.packages),
        sum(len(p.units) for p in result.packages),
        len(result.errors),
    )
    return result


def load_source(source: str, relative_path: str = "main.py", package: str = ".") -> PackageModel:
    """Build a single-unit package from a string. Raises SyntaxError."""
    tree = ast.parse(source, filename=relative_path)
    comments = extract_comments(source)
    unit = CompilationUnit(
        path=Path(relative_path),
        relative_path=relative_path,
        module_name=module_name_for(relative_path),
        source=source,
        lines=source.splitlines(),
        tree=tree,
        comments=comments,
        generated=is_generated(source, comments),
        test=is_test_file(Path(relative_path)),
    )
    return PackageModel(name=package, units=[unit], types=build_type_model([unit]))
