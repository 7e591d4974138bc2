"""
call_sites.py

Textual detection of method invocations inside a method body.

Two entry points:

    CallSiteExtractor.extract()   every call site in a line range (downward)
    contains_method_call()        does a body call a given method? (upward)

Matching is purely syntactic; no receiver type is resolved.
"""

import logging
import re
from typing import List, Optional

from call_chain.models import CallSite
from call_chain.utils import is_comment_line

logger = logging.getLogger(__name__)

# Receivers that mark a control-flow construct rather than a call
_CONTROL_KEYWORDS = frozenset({
    "if", "for", "while", "switch", "catch", "try", "return", "new",
    "super", "this", "null",
})

_BARE_CALL_EXCLUDED = _CONTROL_KEYWORDS | {"true", "false"}

_QUALIFIED_CALL_RE = re.compile(r"(\w+)\.(\w+)\s*\(")
_STATIC_CALL_RE = re.compile(r"([A-Z]\w*)\.(\w+)\s*\(")
_BARE_CALL_RE = re.compile(r"(\w+)\s*\(")
_CONSTRUCTOR_CALL_RE = re.compile(r"\bnew\s+([A-Z]\w*)\s*\(")


class CallSiteExtractor:
    """
    Collects candidate callees from a range of source lines.

    The four patterns are applied independently and every match is kept,
    so one token may be reported more than once:

        recv.name(          receiver + callee
        Capitalized.name(   static-style call
        name(               bare call, no receiver
        new Capitalized(    constructor call, callee == class name

    Usage:
        sites = CallSiteExtractor().extract(lines, start=10, end=24)
    """

    def extract(self, lines: List[str], start: int = 0, end: Optional[int] = None,
                first_column: int = 0) -> List[CallSite]:
        """
        Scan ``lines[start..end]`` (inclusive, 0-based).  Text before
        ``first_column`` on the first line is ignored.  Comment-only lines
        are skipped.  Reported line numbers are 1-based.
        """
        if end is None:
            end = len(lines) - 1
        end = min(end, len(lines) - 1)

        sites: List[CallSite] = []
        for index in range(max(start, 0), end + 1):
            line = lines[index]
            if index == start and first_column:
                line = line[first_column:]
            if is_comment_line(line):
                continue
            sites.extend(self.extract_line(line, index + 1))
        return sites

    def extract_line(self, line: str, line_number: int) -> List[CallSite]:
        sites = []

        for match in _QUALIFIED_CALL_RE.finditer(line):
            if match.group(1) not in _CONTROL_KEYWORDS:
                sites.append(CallSite(match.group(2), match.group(1), line_number))

        for match in _STATIC_CALL_RE.finditer(line):
            sites.append(CallSite(match.group(2), match.group(1), line_number))

        for match in _BARE_CALL_RE.finditer(line):
            if match.group(1) not in _BARE_CALL_EXCLUDED:
                sites.append(CallSite(match.group(1), None, line_number))

        for match in _CONSTRUCTOR_CALL_RE.finditer(line):
            sites.append(CallSite(match.group(1), None, line_number))

        return sites


def call_patterns(target_name: str, class_name: Optional[str] = None) -> List[re.Pattern]:
    """
    Patterns that identify a call to ``target_name``:

        receiver.target(    ClassName.target(    target(
        new ClassName(      (constructors only)
        this.target(        super.target(        .target(   (chained)
    """
    name = re.escape(target_name)
    patterns = [
        re.compile(r"\w+\s*\.\s*" + name + r"\s*\("),
        re.compile(r"(?<![\w$])" + name + r"\s*\("),
        re.compile(r"\bthis\s*\.\s*" + name + r"\s*\("),
        re.compile(r"\bsuper\s*\.\s*" + name + r"\s*\("),
        re.compile(r"\.\s*" + name + r"\s*\("),
    ]
    if class_name:
        cls = re.escape(class_name)
        patterns.insert(1, re.compile(r"\b" + cls + r"\s*\.\s*" + name + r"\s*\("))
        if class_name == target_name:
            patterns.append(re.compile(r"\bnew\s+" + cls + r"\s*(?:<[^>]*>\s*)?\("))
    return patterns


def contains_method_call(body_lines: List[str], target_name: str,
                         class_name: Optional[str] = None) -> bool:
    """True if any non-comment line of ``body_lines`` calls ``target_name``."""
    patterns = call_patterns(target_name, class_name)
    for line in body_lines:
        if is_comment_line(line):
            continue
        if any(p.search(line) for p in patterns):
            return True
    return False
