"""
lexer.py

Lexical classification of Java-like source lines.

A hand-rolled, character-level state machine that answers one question per
physical line: how many *real* code braces open and close on it?  Braces that
sit inside string / character literals, text blocks, annotation bodies,
generic parameter lists, comments or (optionally) regex literals are ignored.

The scanner is called once per line, in file order, and carries a small
``ScanContext`` value from one line to the next:

    context = ScanContext()
    for line in lines:
        delta, context = classifier.classify(line, context)

Only one context is active at a time; while it is open, checks for every
other context are suspended.

The generic and regex detections are heuristics, kept as plain predicate
functions (``is_generic_start``, ``is_regex_start``, ``is_regex_end``) and
injected into ``LexicalClassifier`` so they can be refined independently of
the state machine.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Callable, Iterable, List, NamedTuple, Optional, Tuple

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
#  Constants
# ═══════════════════════════════════════════════════════════════════════════════

# Methods whose argument is conventionally a pattern
_REGEX_METHODS = ("matches", "replaceAll", "replaceFirst", "split")

_REGEX_FLAGS_RE = re.compile(r"^[gimsux]*")

# Characters that may legitimately follow a closing regex slash (after flags)
_REGEX_TERMINATORS = frozenset(";,)]}+-*/=<>!&|")

# Non-alphanumeric characters allowed between the angle brackets of a type
# argument list: List<String>, Map<K, V[]>, Foo<? extends Bar & Baz>
_TYPE_ARGUMENT_CHARS = frozenset("_$.,?[]& \t@")

# Previous non-blank characters after which a slash starts a regex literal
_REGEX_OPERATOR_PREFIXES = frozenset("=+-*!&|?:(,")

TEXT_BLOCK_DELIMITER = '"""'

GenericPredicate = Callable[[str, int], bool]
RegexPredicate = Callable[[str, int], bool]


def _is_identifier_char(ch: str) -> bool:
    return bool(ch) and (ch.isalnum() or ch == "_")


# ═══════════════════════════════════════════════════════════════════════════════
#  Heuristic predicates
# ═══════════════════════════════════════════════════════════════════════════════

def _closes_as_type_arguments(line: str, index: int) -> bool:
    """
    True if the '<' at ``index`` is matched on the same line by a '>' and the
    text in between only contains what a type argument list can contain.

    Rejects comparisons such as ``i < n; i++) {`` or ``a < b && c > d``.
    """
    depth = 0
    for j in range(index, len(line)):
        ch = line[j]
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
            if depth == 0:
                return True
        elif ch == "&" and line[j + 1:j + 2] == "&":
            return False
        elif not (ch.isalnum() or ch in _TYPE_ARGUMENT_CHARS):
            return False
    return False


def is_generic_start(line: str, index: int) -> bool:
    """
    Decide whether the '<' at ``index`` opens a generic parameter list.

    Positional rules: directly preceded by an identifier character or '>'
    (``List<``, ``Map<K, List<V>>``), or by a space that follows an
    identifier (``public <T>``), or by a space in an assignment, parameter
    list or array position (``= <``, ``, <``, ``[ <``, ``( <``).  The
    candidate must also close like a type argument list on the same line.
    """
    before = line[index - 1] if index > 0 else ""
    before2 = line[index - 2] if index > 1 else ""

    positional = (
        _is_identifier_char(before)
        or before == ">"
        or (before == " " and (_is_identifier_char(before2) or before2 in "=,[("))
    )
    if not positional:
        return False
    return _closes_as_type_arguments(line, index)


def is_regex_start(line: str, index: int) -> bool:
    """
    Decide whether a bare '/' at ``index`` (already known not to start a
    comment) opens a regex literal rather than being a division.

    A regex is assumed after an operator, an opening parenthesis or comma,
    a pattern-producing method name (matches, replaceAll, replaceFirst,
    split, Pattern.compile), ``return`` or ``throw``.
    """
    before_text = line[:index].rstrip()
    if not before_text:
        return False

    # Inside an (unclosed) string or char literal on this line
    if _count_unescaped(before_text, '"') % 2 == 1:
        return False
    if _count_unescaped(before_text, "'") % 2 == 1:
        return False

    prev = before_text[-1]
    if prev == "/" or (prev == "*" and before_text.endswith("*/")):
        return False
    if prev in _REGEX_OPERATOR_PREFIXES:
        return True

    words = before_text.split()
    last_word = words[-1] if words else ""
    if last_word in _REGEX_METHODS or last_word in ("return", "throw"):
        return True
    if last_word.endswith("Pattern.compile"):
        return True
    return any(last_word.endswith("." + name) for name in _REGEX_METHODS)


def is_regex_end(line: str, index: int) -> bool:
    """
    Decide whether the '/' at ``index`` closes an open regex literal: it may
    be followed by flag letters, then a terminator (; , closing bracket,
    whitespace, an operator) or the end of the line.
    """
    after = line[index + 1:]
    rest = after[_REGEX_FLAGS_RE.match(after).end():]
    if not rest:
        return True
    return rest[0].isspace() or rest[0] in _REGEX_TERMINATORS


def _count_unescaped(text: str, quote: str) -> int:
    count = 0
    for j, ch in enumerate(text):
        if ch == quote and (j == 0 or text[j - 1] != "\\"):
            count += 1
    return count


# ═══════════════════════════════════════════════════════════════════════════════
#  Data Classes
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class ScanContext:
    """Lexical state carried from one line to the next within a file scan."""
    in_string: bool = False
    in_char_literal: bool = False
    in_text_block: bool = False
    in_annotation: bool = False
    annotation_level: int = 0
    in_generic: bool = False
    generic_level: int = 0
    in_line_comment: bool = False
    in_block_comment: bool = False
    in_regex_literal: bool = False
    pending_escape: bool = False

    @property
    def in_code(self) -> bool:
        """True when no non-code context is open."""
        return not (
            self.in_string or self.in_char_literal or self.in_text_block
            or self.in_annotation or self.in_generic or self.in_line_comment
            or self.in_block_comment or self.in_regex_literal
        )

    def copy(self) -> "ScanContext":
        return replace(self)

    def carry(self) -> "ScanContext":
        """
        The context to hand to the next line.  Line comments, regex literals,
        pending escapes and ordinary string / char literals end with the
        line; block comments, text blocks, annotation bodies and generic
        parameter lists continue.
        """
        return replace(
            self,
            in_line_comment=False,
            in_regex_literal=False,
            pending_escape=False,
            in_string=False,
            in_char_literal=False,
        )


class BraceCount(NamedTuple):
    """Code braces found on one line plus the context to carry forward."""
    open: int
    close: int
    context: ScanContext

    @property
    def delta(self) -> int:
        return self.open - self.close


# ═══════════════════════════════════════════════════════════════════════════════
#  LexicalClassifier
# ═══════════════════════════════════════════════════════════════════════════════


class LexicalClassifier:
    """
    Per-line brace classifier.

    Usage:
        classifier = LexicalClassifier()
        delta, ctx = classifier.classify('String s = "{";', ScanContext())
        # -> (0, ScanContext(...))

    ``detect_regex=False`` gives the simpler variant without regex-literal
    handling, for sources known not to contain ambiguous slashes.
    """

    def __init__(
        self,
        detect_regex: bool = True,
        generic_predicate: GenericPredicate = is_generic_start,
        regex_start_predicate: RegexPredicate = is_regex_start,
        regex_end_predicate: RegexPredicate = is_regex_end,
    ):
        self.detect_regex = detect_regex
        self._is_generic_start = generic_predicate
        self._is_regex_start = regex_start_predicate
        self._is_regex_end = regex_end_predicate

    def classify(self, line: str, context_in: ScanContext) -> Tuple[int, ScanContext]:
        """Return ``(net_brace_delta, context_out)`` for one physical line."""
        counts = self.count_braces(line, context_in)
        return counts.delta, counts.context

    def scan(self, lines: Iterable[str]) -> List[int]:
        """Run a fresh context over ``lines`` and return the per-line deltas."""
        context = ScanContext()
        deltas = []
        for line in lines:
            delta, context = self.classify(line, context)
            deltas.append(delta)
        return deltas

    def count_braces(self, line: str, context_in: ScanContext) -> BraceCount:
        """Scan one line, counting code-context '{' and '}' separately."""
        open_braces, close_braces, context_out = self._scan(line, context_in, None)
        return BraceCount(open_braces, close_braces, context_out)

    def code_text(self, line: str, context_in: ScanContext) -> Tuple[str, ScanContext]:
        """
        Return the line with every non-code character blanked to a space,
        plus the context to carry forward.

        Column positions are preserved.  Generic parameter lists and marker
        annotations stay visible since they are part of declarations; string
        and char literals, comments, annotation arguments and regex literals
        are blanked.
        """
        code = [" "] * len(line)
        _, _, context_out = self._scan(line, context_in, code)
        return "".join(code), context_out

    def _scan(self, line: str, context_in: ScanContext,
              code: Optional[List[str]]) -> Tuple[int, int, ScanContext]:
        ctx = context_in.copy()
        open_braces = 0
        close_braces = 0
        length = len(line)
        i = 0

        while i < length:
            ch = line[i]

            # Escapes apply regardless of the active context
            if ctx.pending_escape:
                ctx.pending_escape = False
                i += 1
                continue
            if ch == "\\":
                ctx.pending_escape = True
                i += 1
                continue

            nxt = line[i + 1] if i + 1 < length else ""

            if ctx.in_block_comment:
                if ch == "*" and nxt == "/":
                    ctx.in_block_comment = False
                    i += 2
                    continue
                i += 1
                continue

            if ctx.in_text_block:
                if line.startswith(TEXT_BLOCK_DELIMITER, i):
                # Either side empty opens; any later delimiter closes (looser than
                # requiring an empty prefix to open and an empty suffix to close)
                    ctx.in_text_block = False
                    i += 3
                    continue
                i += 1
                continue

            if ctx.in_string:
                if ch == '"':
                    ctx.in_string = False
                i += 1
                continue

            if ctx.in_char_literal:
                if ch == "'":
                    ctx.in_char_literal = False
                i += 1
                continue

            if ctx.in_regex_literal:
                if ch == "/" and self._is_regex_end(line, i):
                    ctx.in_regex_literal = False
                i += 1
                continue

            if ctx.in_annotation:
                if ch in "({":
                    ctx.annotation_level += 1
                elif ch in ")}":
                    ctx.annotation_level -= 1
                    if ctx.annotation_level <= 0:
                        ctx.in_annotation = False
                        ctx.annotation_level = 0
                i += 1
                continue

            if ctx.in_generic:
                if ch == "<":
                    ctx.generic_level += 1
                elif ch == ">":
                    ctx.generic_level -= 1
                    if ctx.generic_level <= 0:
                        ctx.in_generic = False
                        ctx.generic_level = 0
                if code is not None:
                    code[i] = ch
                i += 1
                continue

            # --- code context ---

            if ch == "/":
                if nxt == "/":
                    ctx.in_line_comment = True
                    break
                if nxt == "*":
                    ctx.in_block_comment = True
                    i += 2
                    continue
                if self.detect_regex and self._is_regex_start(line, i):
                    ctx.in_regex_literal = True
                elif code is not None:
                    code[i] = ch
                i += 1
                continue

            if line.startswith(TEXT_BLOCK_DELIMITER, i):
                before = line[:i].strip()
                after = line[i + 3:].strip()
                # Looser than "empty before opens, empty after closes": either
                # side empty opens, and the next delimiter always closes
                if not before or not after:
                    ctx.in_text_block = True
                i += 3
                continue

            if ch == '"':
                ctx.in_string = True
                i += 1
                continue

            if ch == "'":
                ctx.in_char_literal = True
                i += 1
                continue

            if ch == "@":
                end = self._enter_annotation(line, i, ctx)
                if code is not None and not ctx.in_annotation:
                    code[i:end] = line[i:end]
                i = end
                continue

            if ch == "<" and self._is_generic_start(line, i):
                ctx.in_generic = True
                ctx.generic_level = 1
                if code is not None:
                    code[i] = ch
                i += 1
                continue

            if ch == "{":
                open_braces += 1
            elif ch == "}":
                close_braces += 1
            if code is not None:
                code[i] = ch
            i += 1

        return open_braces, close_braces, ctx.carry()

    @staticmethod
    def _enter_annotation(line: str, index: int, ctx: ScanContext) -> int:
        """
        Consume an annotation name starting at '@'.  Only an annotation with
        an argument list opens annotation mode; marker annotations such as
        ``@Override`` (and ``@interface``) end with their name.
        """
        j = index + 1
        length = len(line)
        while j < length and line[j] == " ":
            j += 1
        while j < length and (_is_identifier_char(line[j]) or line[j] in ".$"):
            j += 1
        k = j
        while k < length and line[k] in " \t":
            k += 1
        if k < length and line[k] == "(":
            ctx.in_annotation = True
            ctx.annotation_level = 0
            return k
        return j
