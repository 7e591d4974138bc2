"""
Project sources: the host-side file enumeration and file reading used by the
call-chain builder for every lookup beyond the root file.

    FileSystemProject   walks a directory tree on disk
    InMemoryProject     serves a dict of path -> text (editors, tests)
"""

import fnmatch
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from call_chain.config import CallChainConfig, DEFAULT_CONFIG
from call_chain.exceptions import SourceNotFoundError, SourceReadError

logger = logging.getLogger(__name__)

# Directories never worth scanning for sources
DEFAULT_EXCLUDE_DIRS = frozenset({
    ".git", ".svn", ".hg", ".idea", ".vscode", ".gradle", ".mvn",
    "build", "target", "out", "bin", "node_modules", "__pycache__",
})


class ProjectSource(ABC):
    """Enumerates project files and reads their text."""

    @abstractmethod
    def list_files(self) -> List[str]:
        """All source files of the project, in a stable order."""

    @abstractmethod
    def read_file(self, file_path: str) -> str:
        """
        Return the text of ``file_path``.

        Raises:
            SourceNotFoundError: the file is not part of the project.
            SourceReadError: the file exists but could not be read.
        """

    def normalize_path(self, file_path: str) -> str:
        """The form of ``file_path`` that ``list_files`` reports for the same file."""
        return file_path


class InMemoryProject(ProjectSource):
    """
    Project backed by a mapping of file path to source text.

    Usage:
        project = InMemoryProject({"A.java": "class A { void a(){ b(); } }"})
    """

    def __init__(self, files: Optional[Dict[str, str]] = None):
        self._files: Dict[str, str] = dict(files or {})

    def add_file(self, file_path: str, text: str) -> None:
        self._files[file_path] = text

    def list_files(self) -> List[str]:
        return list(self._files)

    def read_file(self, file_path: str) -> str:
        if file_path not in self._files:
            raise SourceNotFoundError(file_path)
        return self._files[file_path]


class FileSystemProject(ProjectSource):
    """
    Project rooted at a directory on disk.

    Files are discovered with ``os.walk``; excluded directory names are
    pruned in place and ``exclude_globs`` are matched (case-insensitively)
    against the root-relative POSIX path.
    """

    def __init__(
        self,
        root: str,
        extensions: Optional[Iterable[str]] = None,
        exclude_dirs: Optional[Iterable[str]] = None,
        exclude_globs: Optional[Iterable[str]] = None,
        encoding: str = "utf-8",
        max_files: int = 20000,
    ):
        self.root = Path(root).resolve()
        self.extensions = {e.lower() if e.startswith(".") else f".{e.lower()}"
                           for e in (extensions or [".java"])}
        self.exclude_dirs = set(DEFAULT_EXCLUDE_DIRS) | set(exclude_dirs or [])
        self.exclude_globs = [g.lower() for g in (exclude_globs or [])]
        self.encoding = encoding
        self.max_files = max_files
        self._file_cache: Optional[List[str]] = None

    @classmethod
    def from_config(cls, root: str, config: Optional[CallChainConfig] = None) -> "FileSystemProject":
        config = config or DEFAULT_CONFIG
        return cls(
            root,
            extensions=config.extensions,
            exclude_dirs=config.exclude_dirs,
            exclude_globs=config.exclude_globs,
            encoding=config.file_encoding,
            max_files=config.max_files,
        )

    def _is_excluded(self, path: Path) -> bool:
        try:
            rel_path = path.relative_to(self.root)
        except ValueError:
            return True

        for part in rel_path.parts[:-1]:
            if part in self.exclude_dirs:
                return True

        rel_path_str = rel_path.as_posix().lower()
        return any(fnmatch.fnmatch(rel_path_str, pattern) for pattern in self.exclude_globs)

    def list_files(self) -> List[str]:
        if self._file_cache is not None:
            return list(self._file_cache)

        if not self.root.is_dir():
            raise SourceNotFoundError(str(self.root))

        files: List[str] = []
        for root, dirs, filenames in os.walk(self.root):
            # Prune excluded directories in-place
            dirs[:] = sorted(d for d in dirs if d not in self.exclude_dirs)

            for filename in sorted(filenames):
                if len(files) >= self.max_files:
                    logger.warning(f"File limit reached ({self.max_files}), ignoring the rest of {self.root}")
                    self._file_cache = files
                    return list(files)

                file_path = Path(root) / filename
                if file_path.suffix.lower() not in self.extensions:
                    continue
                if self._is_excluded(file_path):
                    continue
                files.append(str(file_path))

        logger.debug(f"Discovered {len(files)} source files under {self.root}")
        self._file_cache = files
        return list(files)

    def normalize_path(self, file_path: str) -> str:
        """
        Absolute path as ``list_files`` builds it: relative paths are taken
        from the project root and the directory part is resolved, the file
        name is kept as given.
        """
        path = Path(file_path)
        if not path.is_absolute():
            path = self.root / path
        return str(path.parent.resolve() / path.name)

    def read_file(self, file_path: str) -> str:
        path = Path(file_path)
        if not path.is_absolute():
            path = self.root / path
        if not path.is_file():
            raise SourceNotFoundError(str(file_path), str(self.root))
        try:
            with open(path, "r", encoding=self.encoding, errors="replace") as f:
                return f.read()
        except OSError as e:
            raise SourceReadError(str(file_path), str(e)) from e

    def refresh(self) -> None:
        """Forget the cached file list."""
        self._file_cache = None
