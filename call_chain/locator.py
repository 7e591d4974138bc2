"""
locator.py

Finds classes, method declarations and method bodies in Java-like source
text using regex matching over lexically cleaned lines.

Every scan first runs the ``LexicalClassifier`` over the file to obtain a
"code only" view of each line (strings, comments and annotation arguments
blanked), so declarations that only appear inside comments or string
literals are never reported.

Two public classes:

    MethodLocator          find_enclosing_class / find_method_at /
                           find_all_method_definitions
    MethodRangeResolver    find_range / range_from

Signatures may span several lines; the buffer is extended forward until the
body's opening brace is reached, as in:

    public Map<String, Integer>
        computeCounts(List<String> items,
                      boolean strict) {
"""

import logging
import re
from typing import List, NamedTuple, Optional, Tuple

from call_chain.lexer import LexicalClassifier, ScanContext
from call_chain.models import MethodDescriptor, MethodRange
from call_chain.utils import normalize_whitespace, split_source_lines

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
#  Patterns
# ═══════════════════════════════════════════════════════════════════════════════

_MODIFIERS = (
    "public", "protected", "private", "static", "final", "abstract",
    "synchronized", "native", "strictfp", "default", "transient",
    "volatile", "sealed", "non-sealed",
)

_MODIFIER_ALT = "|".join(re.escape(m) for m in _MODIFIERS)

# Annotations and modifiers, then an optional method type parameter list
_DECL_PREFIX = (
    r"^(?:(?:@[\w.$]+(?:\s*\([^)]*\))?|(?:" + _MODIFIER_ALT + r"))\s+)*"
    r"(?:<[^()]*?>\s*)?"
)

_TYPE = r"[\w.$]+(?:\s*<[^()]*>)?(?:\s*\[\s*\])*"

_METHOD_DECL_RE = re.compile(
    _DECL_PREFIX + r"(?P<return>" + _TYPE + r")\s+(?P<name>[A-Za-z_$][\w$]*)\s*\("
)

_CONSTRUCTOR_DECL_RE = re.compile(_DECL_PREFIX + r"(?P<name>[A-Z_$][\w$]*)\s*\(")

# A return type alone at the end of a line; the name follows on the next line
_TYPE_ONLY_RE = re.compile(_DECL_PREFIX + _TYPE + r"\s*$")

_CLASS_DECL_RE = re.compile(
    r"(?:^|[\s;{}@])(?:(?:" + _MODIFIER_ALT + r")\s+)*"
    r"(?:class|interface|enum|record)\s+(?P<name>[A-Za-z_$][\w$]*)"
)

_ANNOTATION_RE = re.compile(r"^@[\w.$]+\s*")

# Words that can never be a return type or a method name
_NON_DECLARATION_WORDS = frozenset({
    "return", "new", "throw", "else", "case", "if", "for", "while", "do",
    "switch", "try", "catch", "finally", "synchronized", "assert", "yield",
    "break", "continue", "import", "package", "class", "interface", "enum",
    "record", "extends", "implements", "throws", "instanceof", "this",
    "super", "null", "true", "false",
}) | frozenset(_MODIFIERS)

# Upper bound on the physical lines a single signature may span
MAX_SIGNATURE_LINES = 32


# ═══════════════════════════════════════════════════════════════════════════════
#  Declaration parsing
# ═══════════════════════════════════════════════════════════════════════════════

class ParsedDeclaration(NamedTuple):
    name: str
    return_type: Optional[str]
    parameters: List[str]


def _matching_paren(text: str, open_index: int) -> int:
    depth = 0
    for j in range(open_index, len(text)):
        if text[j] == "(":
            depth += 1
        elif text[j] == ")":
            depth -= 1
            if depth == 0:
                return j
    return -1


def split_parameters(parameter_text: str) -> List[str]:
    """
    Split a parameter list on top-level commas.  Commas nested inside
    ``<...>`` or ``(...)`` (generic arguments, annotation arguments) do not
    split.  Each parameter is whitespace-normalized; empty entries dropped.
    """
    params = []
    depth = 0
    current = []
    for ch in parameter_text:
        if ch in "<(":
            depth += 1
        elif ch in ">)":
            depth -= 1
        elif ch == "," and depth <= 0:
            params.append("".join(current))
            current = []
            continue
        current.append(ch)
    params.append("".join(current))
    return [p for p in (normalize_whitespace(p) for p in params) if p]


def parse_method_declaration(buffer: str, class_name: Optional[str] = None) -> Optional[ParsedDeclaration]:
    """
    Parse a (possibly multi-line) declaration buffer.

    Returns ``None`` for anything that is not a method or constructor
    declaration; malformed input never raises.  Constructors are only
    recognised when ``class_name`` is given and matches.
    """
    text = normalize_whitespace(buffer)
    if not text:
        return None

    match = _METHOD_DECL_RE.match(text)
    if match and (match.group("return") in _NON_DECLARATION_WORDS
                  or match.group("name") in _NON_DECLARATION_WORDS):
        match = None

    return_type = None
    if match:
        return_type = normalize_whitespace(match.group("return"))
    else:
        match = _CONSTRUCTOR_DECL_RE.match(text)
        if not match or not class_name or match.group("name") != class_name:
            return None

    open_index = match.end() - 1
    close_index = _matching_paren(text, open_index)
    if close_index < 0:
        return None

    return ParsedDeclaration(
        name=match.group("name"),
        return_type=return_type,
        parameters=split_parameters(text[open_index + 1:close_index]),
    )


def _looks_like_declaration_head(segment: str) -> bool:
    text = normalize_whitespace(segment)
    if not text:
        return False
    first_word = text.split(" ", 1)[0].split("(", 1)[0]
    if first_word in _NON_DECLARATION_WORDS and first_word not in _MODIFIERS:
        return False
    return bool(
        _METHOD_DECL_RE.match(text)
        or _CONSTRUCTOR_DECL_RE.match(text)
        or _TYPE_ONLY_RE.match(text)
    )


def _signature_state(buffer: str) -> Optional[bool]:
    """
    True once the buffer holds a complete signature followed by a body '{',
    False when it cannot be a declaration with a body (a ';' or '=' shows up
    first), None while more lines are needed.
    """
    paren = buffer.find("(")
    head = buffer if paren < 0 else buffer[:paren]
    if any(ch in head for ch in "{};="):
        return False
    if paren < 0:
        return None

    # Annotation argument lists come before the parameter list
    while True:
        close = _matching_paren(buffer, paren)
        if close < 0:
            return None
        rest = buffer[close + 1:]
        next_paren = rest.find("(")
        stop = min((rest.find(ch) for ch in "{;" if ch in rest), default=-1)
        if next_paren < 0 or (0 <= stop < next_paren):
            break
        between = rest[:next_paren]
        if any(ch in between for ch in "{};="):
            return False
        paren = close + 1 + next_paren

    for ch in rest:
        if ch == "{":
            return True
        if ch in ";=":
            return False
    return None


def _strip_annotations(segment: str) -> str:
    text = segment.strip()
    while True:
        match = _ANNOTATION_RE.match(text)
        if not match:
            return text
        text = text[match.end():]


# ═══════════════════════════════════════════════════════════════════════════════
#  Class tracking
# ═══════════════════════════════════════════════════════════════════════════════

class _OpenClass:
    __slots__ = ("name", "depth", "entered", "fresh")

    def __init__(self, name: str, depth: int):
        self.name = name
        self.depth = depth
        self.entered = False
        self.fresh = True


class _ClassTracker:
    """
    Tracks the stack of class declarations over a forward scan.

    A class is pushed when its header is seen and popped once its body has
    been entered and code depth falls back to the depth it was declared at.
    """

    def __init__(self):
        self.depth = 0
        self._stack: List[_OpenClass] = []

    @property
    def current(self) -> Optional[str]:
        return self._stack[-1].name if self._stack else None

    def begin_line(self, code: str) -> None:
        for entry in self._stack:
            entry.fresh = False
        match = _CLASS_DECL_RE.search(code)
        if not match:
            return
        before = code[:match.start("name")]
        header_depth = self.depth + before.count("{") - before.count("}")
        entry = _OpenClass(match.group("name"), header_depth)
        entry.entered = "{" in code[match.end():]
        self._stack.append(entry)

    def end_line(self, opens: int, closes: int) -> None:
        self.depth += opens - closes
        if self._stack and not self._stack[-1].entered and opens:
            self._stack[-1].entered = True
        while self._stack and self._stack[-1].entered and self.depth <= self._stack[-1].depth:
            self._stack.pop()

    def is_member_depth(self, depth: int) -> bool:
        """True if ``depth`` is directly inside the body of the current class."""
        if not self._stack:
            return False
        top = self._stack[-1]
        return depth == top.depth + 1 or (top.fresh and not top.entered and depth == top.depth)


class CodeLine(NamedTuple):
    """A physical line with its code-only view and brace counts."""
    raw: str
    code: str
    opens: int
    closes: int


def _segment_starts(code: str) -> List[int]:
    """Column 0 plus every column following a code '{', ';' or '}'."""
    return [0] + [i + 1 for i, ch in enumerate(code) if ch in "{;}"]


# ═══════════════════════════════════════════════════════════════════════════════
#  MethodLocator
# ═══════════════════════════════════════════════════════════════════════════════

class MethodLocator:
    """
    Regex-based locator for classes and method declarations.

    Usage:
        locator = MethodLocator()
        method = locator.find_method_at(text, line=42)       # 0-based line
        defs = locator.find_all_method_definitions(text, "src/A.java")
    """

    def __init__(self, classifier: Optional[LexicalClassifier] = None):
        self.classifier = classifier or LexicalClassifier()

    def code_lines(self, text: str) -> List[CodeLine]:
        """Run the classifier over the whole file once."""
        context = ScanContext()
        result = []
        for raw in split_source_lines(text):
            code, next_context = self.classifier.code_text(raw, context)
            result.append(CodeLine(raw, code, code.count("{"), code.count("}")))
            context = next_context
        return result

    # --- Classes ---

    def find_enclosing_class(self, text: str, line: int) -> Optional[str]:
        """Name of the innermost class whose declaration is active on ``line`` (0-based)."""
        lines = self.code_lines(text)
        if line < 0 or line >= len(lines):
            return None
        tracker = _ClassTracker()
        for index, entry in enumerate(lines):
            tracker.begin_line(entry.code)
            if index == line:
                return tracker.current
            tracker.end_line(entry.opens, entry.closes)
        return None

    # --- Methods ---

    def find_method_at(self, text: str, line: int, file_path: str = "") -> Optional[MethodDescriptor]:
        """
        Find the method declaration at or before ``line`` (0-based), scanning
        backward to the start of the file.  Returns ``None`` if no
        declaration with a body is found.
        """
        lines = self.code_lines(text)
        if not lines:
            return None
        line = min(line, len(lines) - 1)

        for index in range(line, -1, -1):
            code = lines[index].code
            if not code.strip():
                continue
            for start in _segment_starts(code):
                signature = self._collect_signature(lines, index, start)
                if signature is None:
                    continue
                class_name = self.find_enclosing_class(text, index)
                parsed = parse_method_declaration(signature, class_name)
                if parsed is None:
                    continue
                logger.debug(f"Method at line {line + 1}: {parsed.name} (declared line {index + 1})")
                return MethodDescriptor(
                    name=parsed.name,
                    enclosing_class=class_name,
                    file_path=file_path,
                    declaration_line=index + 1,
                    parameters=parsed.parameters,
                    return_type=parsed.return_type,
                )
        return None

    def find_all_method_definitions(self, text: str, file_path: str = "") -> List[MethodDescriptor]:
        """
        Single forward pass collecting every method and constructor declared
        directly in a class body, each tagged with its class and 1-based
        declaration line.
        """
        lines = self.code_lines(text)
        tracker = _ClassTracker()
        definitions: List[MethodDescriptor] = []
        resume_at = 0

        for index, entry in enumerate(lines):
            tracker.begin_line(entry.code)
            if index >= resume_at and tracker.current is not None:
                for start in _segment_starts(entry.code):
                    before = entry.code[:start]
                    depth = tracker.depth + before.count("{") - before.count("}")
                    if not tracker.is_member_depth(depth):
                        continue
                    completed = self._collect_signature(lines, index, start, with_end=True)
                    if completed is None:
                        continue
                    signature, last_line = completed
                    parsed = parse_method_declaration(signature, tracker.current)
                    if parsed is None:
                        continue
                    definitions.append(MethodDescriptor(
                        name=parsed.name,
                        enclosing_class=tracker.current,
                        file_path=file_path,
                        declaration_line=index + 1,
                        parameters=parsed.parameters,
                        return_type=parsed.return_type,
                    ))
                    if last_line > index:
                        resume_at = last_line + 1
                        break
            tracker.end_line(entry.opens, entry.closes)

        logger.debug(f"{file_path or '<text>'}: {len(definitions)} method definitions")
        return definitions

    def _collect_signature(self, lines: List[CodeLine], index: int, start: int,
                           with_end: bool = False):
        """
        Buffer a declaration beginning at column ``start`` of line ``index``,
        appending following lines until the body's '{' is reached.  Returns
        the buffer (and the last line used, if ``with_end``), or ``None``.
        """
        segment = _strip_annotations(lines[index].code[start:])
        if not segment or not _looks_like_declaration_head(segment):
            return None

        buffer = segment
        last = index
        while True:
            state = _signature_state(buffer)
            if state is not None:
                break
            last += 1
            if last >= len(lines) or last - index >= MAX_SIGNATURE_LINES:
                return None
            buffer += " " + lines[last].code
        if not state:
            return None
        return (buffer, last) if with_end else buffer


# ═══════════════════════════════════════════════════════════════════════════════
#  MethodRangeResolver
# ═══════════════════════════════════════════════════════════════════════════════

class MethodRangeResolver:
    """
    Resolves the line range of a method body from its declaration to the
    matching closing brace.

    Usage:
        resolver = MethodRangeResolver()
        rng = resolver.find_range(text, "computeCounts")
        # MethodRange(start=10, end=24, ...)
    """

    def __init__(self, classifier: Optional[LexicalClassifier] = None,
                 locator: Optional[MethodLocator] = None):
        self.classifier = classifier or LexicalClassifier()
        self.locator = locator or MethodLocator(self.classifier)

    def find_range(self, text: str, method_name: str,
                   class_name: Optional[str] = None) -> Optional[MethodRange]:
        for method in self.locator.find_all_method_definitions(text):
            if method.name != method_name:
                continue
            if class_name is not None and method.enclosing_class != class_name:
                continue
            return self.range_from(split_source_lines(text), method.declaration_line - 1, method_name)
        return None

    def range_from(self, lines: List[str], start: int,
                   method_name: Optional[str] = None) -> MethodRange:
        """
        Range starting at declaration line ``start`` (0-based).  Counting
        begins at the first code '{' (after ``method_name(`` when given) and
        ends on the line where the running depth returns to zero.  An
        unterminated body runs to the last line.
        """
        name_re = re.compile(r"(?<![\w$])" + re.escape(method_name) + r"\s*\(") if method_name else None
        context = ScanContext()
        depth = 0
        named = name_re is None
        body: Optional[Tuple[int, int]] = None

        for index in range(start, len(lines)):
            code, context = self.classifier.code_text(lines[index], context)
            column = 0
            if body is None:
                if not named:
                    match = name_re.search(code)
                    if not match:
                        continue
                    named = True
                    column = match.end()
                brace = code.find("{", column)
                if brace < 0:
                    continue
                body = (index, brace + 1)
                column = brace
            depth += code.count("{", column) - code.count("}", column)
            if depth <= 0:
                return MethodRange(start, index, body[0], body[1])

        end = max(start, len(lines) - 1)
        if body is None:
            return MethodRange(start, end)
        return MethodRange(start, end, body[0], body[1])
