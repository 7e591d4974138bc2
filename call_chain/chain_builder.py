"""
chain_builder.py

Recursive construction of call-chain trees across a project.

    ┌──────────────┐  find_method_at   ┌─────────────────┐
    │ cursor       │ ────────────────► │ root method     │
    │ (file, line) │                   └────────┬────────┘
    └──────────────┘                            │
                          ┌─────────────────────┴─────────────────────┐
                          ▼                                           ▼
                 build_down (callees)                       build_up (callers)
          range → call sites → resolve →           every definition in every file
          recurse / external leaf                  whose body calls the target

Each top-level call creates a fresh ``TraversalContext`` holding the visited
set and per-file caches, so a builder holds no traversal state of its own.
Both the depth bound and the visited check are applied on every recursive
entry.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from call_chain.call_sites import CallSiteExtractor, contains_method_call
from call_chain.config import CallChainConfig, DEFAULT_CONFIG
from call_chain.exceptions import CallChainError, InvalidDirectionError
from call_chain.graph_metrics import calculate_depth, count_total_methods
from call_chain.lexer import LexicalClassifier
from call_chain.locator import MethodLocator, MethodRangeResolver
from call_chain.metrics import MetricsCollector, get_metrics
from call_chain.models import (
    CallChainNode, CallChainResult, CallSite, Direction, MethodDescriptor,
    MethodRange, EXTERNAL_FILE, UNKNOWN_CLASS,
)
from call_chain.project import ProjectSource
from call_chain.utils import split_source_lines

logger = logging.getLogger(__name__)

MethodKey = Tuple[str, str, str]


@dataclass
class TraversalContext:
    """
    State owned by exactly one top-level traversal.

    ``visited`` holds ``(file_path, class, method)`` keys of expanded
    methods; the caches avoid re-reading and re-scanning files within the
    traversal and are discarded with it.
    """
    direction: Direction
    max_depth: int
    visited: Set[MethodKey] = field(default_factory=set)
    texts: Dict[str, Optional[str]] = field(default_factory=dict)
    lines: Dict[str, List[str]] = field(default_factory=dict)
    definitions: Dict[str, List[MethodDescriptor]] = field(default_factory=dict)
    ranges: Dict[MethodKey, MethodRange] = field(default_factory=dict)
    files: Optional[List[str]] = None

    def should_stop(self, key: MethodKey, depth: int) -> bool:
        # The root sits at depth 0, so a node at max_depth - 1 is the last level
        return depth >= self.max_depth - 1 or key in self.visited


class CallChainBuilder:
    """
    Builds upward (callers) or downward (callees) call-chain trees.

    Usage:
        builder = CallChainBuilder(FileSystemProject("/path/to/repo"))
        result = builder.analyze_call_chain("src/Foo.java", line=41)   # 0-based
        if result:
            print(result.depth, result.total_methods)

    One builder may be shared; each ``analyze_call_chain`` call gets its own
    ``TraversalContext``.
    """

    def __init__(
        self,
        project: ProjectSource,
        config: Optional[CallChainConfig] = None,
        classifier: Optional[LexicalClassifier] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.project = project
        self.config = config or DEFAULT_CONFIG
        self.classifier = classifier or LexicalClassifier(detect_regex=self.config.detect_regex_literals)
        self.locator = MethodLocator(self.classifier)
        self.resolver = MethodRangeResolver(self.classifier, self.locator)
        self.extractor = CallSiteExtractor()
        self.metrics = metrics or get_metrics()

    @property
    def max_depth(self) -> int:
        return self.config.max_depth

    # ═══════════════════════════════════════════════════════════════════════
    #  Entry point
    # ═══════════════════════════════════════════════════════════════════════

    def new_context(self, direction: Direction) -> TraversalContext:
        return TraversalContext(direction=direction, max_depth=self.max_depth)

    def analyze_call_chain(
        self,
        file_path: str,
        line: int,
        text: Optional[str] = None,
        direction=None,
    ) -> Optional[CallChainResult]:
        """
        Build the call chain of the method enclosing ``line`` (0-based).

        ``text`` is the current content of ``file_path`` as the host sees it;
        it is read from the project when omitted.  ``direction`` defaults to
        the configured direction.  Returns ``None`` when no method (or no
        enclosing class) is found at the cursor.
        """
        resolved = self._resolve_direction(direction)
        # The root key must match the paths the project enumerates
        file_path = self.project.normalize_path(file_path)

        with self.metrics.timer("analyze_call_chain", {"file": file_path, "direction": resolved.value}):
            if text is None:
                text = self.project.read_file(file_path)

            ctx = self.new_context(resolved)
            ctx.texts[file_path] = text

            method = self.locator.find_method_at(text, line, file_path)
            if method is None:
                logger.info(f"No method found at {file_path}:{line + 1}")
                return None
            if method.enclosing_class is None:
                logger.info(f"Method '{method.name}' at {file_path}:{line + 1} has no enclosing class")
                return None

            logger.info(
                f"Building {resolved.display_name} chain for "
                f"{method.qualified_name} (max depth {ctx.max_depth})"
            )
            if resolved is Direction.UP:
                root = self.build_up(method, file_path, text, 0, ctx)
            else:
                root = self.build_down(method, file_path, text, 0, ctx)

            result = CallChainResult(
                root=root,
                depth=calculate_depth(root),
                total_methods=count_total_methods(root),
                direction=resolved,
            )
            logger.info(
                f"Call chain for {method.qualified_name}: depth={result.depth}, "
                f"methods={result.total_methods}, visited={len(ctx.visited)}"
            )
            return result

    def _resolve_direction(self, direction) -> Direction:
        if isinstance(direction, Direction):
            return direction
        value = direction if direction is not None else self.config.default_direction
        resolved = Direction.from_string(value)
        if resolved is None:
            raise InvalidDirectionError(str(value))
        return resolved

    # ═══════════════════════════════════════════════════════════════════════
    #  Downward traversal (callees)
    # ═══════════════════════════════════════════════════════════════════════

    def build_down(self, method: MethodDescriptor, file_path: str, text: str,
                   depth: int, ctx: TraversalContext) -> CallChainNode:
        key = self._key(method, file_path)
        if ctx.should_stop(key, depth):
            return self._stopped_node(method, file_path)

        ctx.visited.add(key)
        node = self._node(method, file_path)

        lines = self._lines_of(file_path, text, ctx)
        method_range = self._range_of(method, file_path, lines, ctx)
        if method_range.body_line is None:
            sites = self.extractor.extract(lines, method_range.start, method_range.end)
        else:
            sites = self.extractor.extract(
                lines, method_range.body_line, method_range.end, method_range.body_column
            )
        logger.debug(f"{method.qualified_name}: {len(sites)} call sites at depth {depth}")

        for site in sites:
            resolved = self._resolve_callee(site, file_path, ctx)
            if resolved is None:
                self.metrics.record_unresolved_call(site.callee_name)
                node.children.append(self._unresolved_node(site))
                continue
            callee, callee_file = resolved
            callee_text = self._text_of(callee_file, ctx)
            if callee_text is None:
                node.children.append(self._unresolved_node(site))
                continue
            node.children.append(self.build_down(callee, callee_file, callee_text, depth + 1, ctx))

        return node

    def _resolve_callee(self, site: CallSite, file_path: str,
                        ctx: TraversalContext) -> Optional[Tuple[MethodDescriptor, str]]:
        """
        Same file first (a definition in the receiver's class wins), then
        every other project file in enumeration order, again preferring a
        definition whose class matches the receiver.
        """
        same_file = [d for d in self._definitions_of(file_path, ctx) if d.name == site.callee_name]
        if same_file:
            for definition in same_file:
                if site.receiver and definition.enclosing_class == site.receiver:
                    return definition, file_path
            return same_file[0], file_path

        fallback = None
        for other in self._project_files(ctx):
            if other == file_path:
                continue
            for definition in self._definitions_of(other, ctx):
                if definition.name != site.callee_name:
                    continue
                if site.receiver and definition.enclosing_class == site.receiver:
                    return definition, other
                if fallback is None:
                    fallback = (definition, other)
        return fallback

    # ═══════════════════════════════════════════════════════════════════════
    #  Upward traversal (callers)
    # ═══════════════════════════════════════════════════════════════════════

    def build_up(self, method: MethodDescriptor, file_path: str, text: str,
                 depth: int, ctx: TraversalContext) -> CallChainNode:
        key = self._key(method, file_path)
        if ctx.should_stop(key, depth):
            return self._stopped_node(method, file_path)

        ctx.visited.add(key)
        node = self._node(method, file_path)

        for other in self._project_files(ctx):
            other_text = self._text_of(other, ctx)
            if other_text is None:
                continue
            other_lines = self._lines_of(other, other_text, ctx)

            for definition in self._definitions_of(other, ctx):
                if self._key(definition, other) == key:
                    continue
                caller_range = self._range_of(definition, other, other_lines, ctx)
                body = caller_range.body_lines(other_lines)
                if not contains_method_call(body, method.name, method.enclosing_class):
                    continue
                logger.debug(f"{definition.qualified_name} calls {method.qualified_name}")
                node.children.append(self.build_up(definition, other, other_text, depth + 1, ctx))

        return node

    # ═══════════════════════════════════════════════════════════════════════
    #  Node construction
    # ═══════════════════════════════════════════════════════════════════════

    @staticmethod
    def _key(method: MethodDescriptor, file_path: str) -> MethodKey:
        return (file_path, method.enclosing_class or "", method.name)

    def _node(self, method: MethodDescriptor, file_path: str, external: bool = False) -> CallChainNode:
        self.metrics.record_node(external=external)
        return CallChainNode(
            method_name=method.name,
            class_name=method.enclosing_class or UNKNOWN_CLASS,
            file_path=file_path,
            line_number=method.declaration_line,
            parameters=list(method.parameters),
            return_type=method.return_type,
            is_external=external,
        )

    def _stopped_node(self, method: MethodDescriptor, file_path: str) -> CallChainNode:
        """Leaf for a method cut by the depth bound or an earlier visit."""
        return self._node(method, file_path, external=True)

    def _unresolved_node(self, site: CallSite) -> CallChainNode:
        self.metrics.record_node(external=True)
        return CallChainNode(
            method_name=site.callee_name,
            class_name=site.receiver or UNKNOWN_CLASS,
            file_path=EXTERNAL_FILE,
            line_number=site.line_number,
            is_external=True,
        )

    # ═══════════════════════════════════════════════════════════════════════
    #  Per-traversal caches
    # ═══════════════════════════════════════════════════════════════════════

    def _project_files(self, ctx: TraversalContext) -> List[str]:
        if ctx.files is None:
            try:
                ctx.files = self.project.list_files()
            except CallChainError as e:
                logger.warning(f"Could not enumerate project files: {e}")
                self.metrics.record_error(type(e).__name__, str(e))
                ctx.files = []
            logger.debug(f"Traversal over {len(ctx.files)} project files")
        return ctx.files

    def _text_of(self, file_path: str, ctx: TraversalContext) -> Optional[str]:
        """File text, or ``None`` when it cannot be read (logged, zero contribution)."""
        if file_path in ctx.texts:
            return ctx.texts[file_path]
        try:
            text = self.project.read_file(file_path)
            self.metrics.record_file_read(file_path)
        except (CallChainError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"Skipping unreadable file {file_path}: {e}")
            self.metrics.record_file_read_failure(file_path, str(e))
            text = None
        ctx.texts[file_path] = text
        return text

    def _lines_of(self, file_path: str, text: str, ctx: TraversalContext) -> List[str]:
        if file_path not in ctx.lines:
            ctx.lines[file_path] = split_source_lines(text)
            ctx.texts.setdefault(file_path, text)
        return ctx.lines[file_path]

    def _definitions_of(self, file_path: str, ctx: TraversalContext) -> List[MethodDescriptor]:
        if file_path not in ctx.definitions:
            text = self._text_of(file_path, ctx)
            ctx.definitions[file_path] = (
                self.locator.find_all_method_definitions(text, file_path) if text is not None else []
            )
        return ctx.definitions[file_path]

    def _range_of(self, method: MethodDescriptor, file_path: str, lines: List[str],
                  ctx: TraversalContext) -> MethodRange:
        key = self._key(method, file_path)
        if key not in ctx.ranges:
            start = max(method.declaration_line - 1, 0)
            ctx.ranges[key] = self.resolver.range_from(lines, start, method.name)
        return ctx.ranges[key]
