"""
Shared utility functions for the call_chain package.

Consolidates path and line handling used by the project sources, the
locator and the report writers.
"""

import os
import re
from pathlib import Path
from typing import List


def split_source_lines(text: str) -> List[str]:
    """
    Split source text into physical lines, tolerating CRLF endings.

    Unlike ``str.splitlines`` this keeps a trailing empty line and never
    splits on form feeds or other Unicode line separators, so line indices
    match what an editor shows.

    Examples:
        >>> split_source_lines("a\\r\\nb")
        ['a', 'b']
        >>> split_source_lines("")
        ['']
    """
    return [line.rstrip("\r") for line in (text or "").split("\n")]


def is_comment_line(line: str) -> bool:
    """True if the trimmed line starts a line / block comment or a Javadoc continuation."""
    stripped = line.strip()
    return stripped.startswith(("//", "/*", "*"))


def normalize_whitespace(text: str) -> str:
    """Collapse runs of whitespace to a single space and trim."""
    return re.sub(r"\s+", " ", text).strip()


def to_uri(path: str) -> str:
    """
    Convert a filesystem path to a file:// URI.

    Examples:
        >>> to_uri("/home/user/src/A.java")
        'file:///home/user/src/A.java'
    """
    return f"file://{Path(path).resolve()}"


def resolve_file_path(input_path: str, project_root: str) -> str:
    """
    Resolve a potentially relative file path against a project root.

    Resolution order:
        1. Try joining with project_root (handles relative paths like './src/A.java')
        2. Try as a pure absolute path
        3. Fallback: return the root-relative version anyway

    Returns:
        Absolute path string. Empty string if input_path is empty.
    """
    if not input_path:
        return ""

    if os.path.isabs(input_path) and os.path.exists(input_path):
        return os.path.abspath(input_path)

    cleaned_input = input_path[2:] if input_path.startswith("./") else input_path
    root_relative = os.path.abspath(os.path.join(project_root, cleaned_input))

    if os.path.exists(root_relative):
        return root_relative

    abs_input = os.path.abspath(input_path)
    if os.path.exists(abs_input):
        return abs_input

    return root_relative


def display_path(path: str, project_root: str = "") -> str:
    """Path relative to the project root when it lies inside it, else unchanged."""
    if not project_root or not os.path.isabs(path):
        return path
    try:
        rel = os.path.relpath(path, project_root)
    except ValueError:
        return path
    return path if rel.startswith("..") else rel
